import logging
from abc import ABC
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Tuple,
    TypedDict,
    Union,
    overload,
)

from graphql import GraphQLSchema

from gqlplug.batch import Batch, Single, coordinate, correlate
from gqlplug.config import Config
from gqlplug.context import ExecutionContext, create_execution_context
from gqlplug.document_providers.base import (
    calculate_document_providers,
    resolve_document,
)
from gqlplug.error import ConfigurationError, InputError, MethodError
from gqlplug.extensions.base_extension import (
    ExtensionsManager,
    init_extensions,
)
from gqlplug.http import HTTPRequest, HTTPResponse, StreamingResponse
from gqlplug.request import (
    RequestEnvelope,
    build_envelope,
    log_request,
    parse_request,
)
from gqlplug.response import Outcome, assemble
from gqlplug.runner import AsyncRunner, Runner

log = logging.getLogger(__name__)


class GraphQLErrorObject(TypedDict):
    message: str


class GraphQLRequest(TypedDict, total=False):
    query: str
    variables: Optional[Dict[str, Any]]
    operationName: Optional[str]


class GraphQLResponse(TypedDict, total=False):
    data: Optional[Dict[str, object]]
    errors: Optional[List[GraphQLErrorObject]]
    extensions: Optional[Dict[str, object]]


BatchedRequest = List[GraphQLRequest]
BatchedResponse = List[Dict[str, Any]]

SingleOrBatchedRequest = Union[GraphQLRequest, BatchedRequest]
SingleOrBatchedResponse = Union[GraphQLResponse, BatchedResponse]

Response = Union[HTTPResponse, StreamingResponse]


class BaseGraphQLEndpoint(ABC):
    """Binds GraphQL schema to HTTP requests

    :py:meth:`handle` accepts framework neutral
    :py:class:`gqlplug.http.HTTPRequest`, see :py:mod:`gqlplug.contrib`
    for integrations with web frameworks. :py:meth:`dispatch` accepts
    already decoded request payload.

    :param schema: graphql-core schema or :py:class:`gqlplug.config.Config`
    :param options: :py:class:`gqlplug.config.Config` options, when schema
                    is given
    """

    config: Config

    def __init__(
        self, schema: Union[GraphQLSchema, Config], **options: Any
    ) -> None:
        if isinstance(schema, Config):
            if options:
                schema = schema.with_overrides(**options)
            self.config = schema
        else:
            self.config = Config(schema, **options)

        self.extensions = init_extensions(self.config.extensions)

        execution_context = create_execution_context(self.config.schema)
        extensions_manager = ExtensionsManager(
            execution_context=execution_context,
            extensions=self.extensions,
        )
        with extensions_manager.init():
            self.middleware = execution_context.middleware
            self.validation_rules = execution_context.validation_rules

    def request_config(self, options: Dict[str, Any]) -> Config:
        return self.config.with_overrides(**options)

    def resolve(self, envelope: RequestEnvelope, config: Config) -> None:
        providers = calculate_document_providers(config)
        for query in envelope.queries:
            resolve_document(query, providers, config)
        log_request(envelope, config)

    def respond(
        self,
        outcome: Outcome,
        config: Config,
        execution_contexts: Optional[List[ExecutionContext]] = None,
    ) -> Response:
        try:
            response = assemble(outcome, config)
            if config.before_send is not None:
                response = config.before_send(
                    response, execution_contexts or []
                )
        except Exception:
            log.exception("Failed to encode GraphQL response")
            return assemble(Outcome.internal_error(), config)
        return response

    def _batch_outcome(
        self, contexts: List[ExecutionContext], plan: Batch, config: Config
    ) -> Outcome:
        results = [ec.response or {} for ec in contexts]
        return Outcome.batch(correlate(results, plan, config))


class GraphQLEndpoint(BaseGraphQLEndpoint):
    """Sync endpoint, subscriptions are not supported

    Example:

    .. code-block:: python

        endpoint = GraphQLEndpoint(schema, context={"db": db})
        response = endpoint.handle(
            HTTPRequest(
                method="POST",
                content_type="application/json",
                body=b'{"query": "{ hello }"}',
            )
        )

    """

    def runner(self, config: Config, http_method: str) -> Runner:
        return Runner(
            config,
            http_method,
            extensions=self.extensions,
            middleware=self.middleware,
            validation_rules=self.validation_rules,
        )

    def execute(
        self, envelope: RequestEnvelope, config: Config, http_method: str
    ) -> Tuple[Outcome, List[ExecutionContext]]:
        """
        :raises InputError: when single query is rejected
        :raises MethodError: when operation is not allowed for the method
        """
        self.resolve(envelope, config)
        plan = coordinate(envelope, config)
        runner = self.runner(config, http_method)
        if isinstance(plan, Single):
            execution_context = runner.run_one(plan.query, envelope)
            outcome = Outcome.from_result(execution_context.response or {})
            return outcome, [execution_context]

        contexts = runner.run_batch(plan.queries, envelope)
        return self._batch_outcome(contexts, plan, config), contexts

    def handle(self, request: HTTPRequest) -> Response:
        """Handles HTTP request

        :param request: :py:class:`gqlplug.http.HTTPRequest`
        :return: :py:class:`gqlplug.http.HTTPResponse`
        """
        config = self.request_config(request.options)
        contexts: List[ExecutionContext] = []
        try:
            envelope = parse_request(request, config)
            outcome, contexts = self.execute(envelope, config, request.method)
        except InputError as e:
            outcome = Outcome.input_error(e.message)
        except MethodError as e:
            outcome = Outcome.method_error(e.message)
        except ConfigurationError:
            raise
        except Exception:
            log.exception("Failed to handle GraphQL request")
            outcome = Outcome.internal_error()
        return self.respond(outcome, config, contexts)

    @overload
    def dispatch(
        self, data: GraphQLRequest, context: Optional[Dict[str, Any]] = None
    ) -> GraphQLResponse: ...

    @overload
    def dispatch(
        self, data: BatchedRequest, context: Optional[Dict[str, Any]] = None
    ) -> BatchedResponse: ...

    def dispatch(
        self,
        data: SingleOrBatchedRequest,
        context: Optional[Dict[str, Any]] = None,
    ) -> SingleOrBatchedResponse:
        """
        Dispatch graphql request to schema

        Example:

        .. code-block:: python

            result = endpoint.dispatch({"query": "{ hello }"})

        :param data: {"query": str, "variables": dict, "operationName": str}
                     or a list of them
        :param dict context: context for operation
        :return: :py:class:`dict` graphql response: data or errors, or
                 a list of batch entries
        """
        config = self.request_config({"context": context or {}})
        try:
            envelope = build_envelope(data, config)
            outcome, _ = self.execute(envelope, config, "POST")
        except (InputError, MethodError) as e:
            outcome = Outcome.input_error(e.message)
        return outcome.payload  # type: ignore[return-value]


class AsyncGraphQLEndpoint(BaseGraphQLEndpoint):
    """Async endpoint, supports async resolvers and subscriptions

    Subscriptions are enabled when ``pubsub`` is configured, the response
    is :py:class:`gqlplug.http.StreamingResponse` then, which should be
    streamed with :py:func:`gqlplug.subscription.stream_subscription`.
    """

    def runner(self, config: Config, http_method: str) -> AsyncRunner:
        return AsyncRunner(
            config,
            http_method,
            extensions=self.extensions,
            middleware=self.middleware,
            validation_rules=self.validation_rules,
            allow_subscriptions=config.pubsub is not None,
        )

    async def execute(
        self, envelope: RequestEnvelope, config: Config, http_method: str
    ) -> Tuple[Outcome, List[ExecutionContext]]:
        """
        :raises InputError: when single query is rejected
        :raises MethodError: when operation is not allowed for the method
        """
        self.resolve(envelope, config)
        plan = coordinate(envelope, config)
        runner = self.runner(config, http_method)
        if isinstance(plan, Single):
            execution_context = await runner.run_one(plan.query, envelope)
            if execution_context.subscription is not None:
                outcome = Outcome.from_subscription(
                    execution_context.subscription
                )
            else:
                outcome = Outcome.from_result(
                    execution_context.response or {}
                )
            return outcome, [execution_context]

        contexts = await runner.run_batch(plan.queries, envelope)
        return self._batch_outcome(contexts, plan, config), contexts

    async def handle(self, request: HTTPRequest) -> Response:
        """Handles HTTP request

        :param request: :py:class:`gqlplug.http.HTTPRequest`
        :return: :py:class:`gqlplug.http.HTTPResponse`, or
                 :py:class:`gqlplug.http.StreamingResponse` for
                 subscriptions
        """
        config = self.request_config(request.options)
        contexts: List[ExecutionContext] = []
        try:
            envelope = parse_request(request, config)
            outcome, contexts = await self.execute(
                envelope, config, request.method
            )
        except InputError as e:
            outcome = Outcome.input_error(e.message)
        except MethodError as e:
            outcome = Outcome.method_error(e.message)
        except ConfigurationError:
            raise
        except Exception:
            log.exception("Failed to handle GraphQL request")
            outcome = Outcome.internal_error()
        return self.respond(outcome, config, contexts)

    @overload
    async def dispatch(
        self, data: GraphQLRequest, context: Optional[Dict[str, Any]] = None
    ) -> GraphQLResponse: ...

    @overload
    async def dispatch(
        self, data: BatchedRequest, context: Optional[Dict[str, Any]] = None
    ) -> BatchedResponse: ...

    async def dispatch(
        self,
        data: SingleOrBatchedRequest,
        context: Optional[Dict[str, Any]] = None,
    ) -> SingleOrBatchedResponse:
        """Dispatch graphql request to schema

        Example:

        .. code-block:: python

            result = await endpoint.dispatch({"query": "{ hello }"})

        :param data: {"query": str, "variables": dict, "operationName": str}
                     or a list of them
        :param dict context: context for operation
        :return: :py:class:`dict` graphql response: data or errors, or
                 a list of batch entries
        """
        config = self.request_config({"context": context or {}})
        try:
            envelope = build_envelope(data, config)
            outcome, _ = await self.execute(envelope, config, "POST")
        except (InputError, MethodError) as e:
            outcome = Outcome.input_error(e.message)
        return outcome.payload  # type: ignore[return-value]
