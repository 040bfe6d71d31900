"""
gqlplug.pipeline
~~~~~~~~~~~~~~~~

Explicit ordered list of phases every query goes through:

.. code-block:: text

    Parse -> CurrentOperation -> [HTTPMethod] -> Validation -> Variables
          -> Resolution -> Result

Phases communicate through :py:class:`gqlplug.context.ExecutionContext`.
Once a phase collects GraphQL errors, remaining phases are skipped, except
the ones with ``halts_on_errors = False`` (:py:class:`Result`).

"""

import abc
from inspect import isawaitable, iscoroutine
from typing import (
    TYPE_CHECKING,
    Iterable,
    Iterator,
    List,
    Type,
    cast,
)

from graphql import (
    ExecutionResult,
    GraphQLError,
    execute,
    specified_rules,
    subscribe,
    validate,
)
from graphql.execution.values import get_variable_values
from graphql.pyutils import AwaitableOrValue

from gqlplug.context import ExecutionContext
from gqlplug.readers.graphql import OperationGetter, parse_query

if TYPE_CHECKING:
    from gqlplug.config import Config


class Phase(abc.ABC):
    #: skip this phase when previous phases collected errors
    halts_on_errors = True

    @abc.abstractmethod
    def run(self, execution_context: ExecutionContext) -> None:
        pass

    async def run_async(self, execution_context: ExecutionContext) -> None:
        self.run(execution_context)

    def __repr__(self) -> str:
        return "<{}>".format(type(self).__name__)


class Parse(Phase):
    def run(self, execution_context: ExecutionContext) -> None:
        with execution_context.extensions.parsing():
            # document may be already provided by extension or provider
            if execution_context.graphql_document is not None:
                return

            assert execution_context.query_src, "query string not provided"
            try:
                if execution_context.cache is not None:
                    document = execution_context.cache.parse(
                        execution_context.schema,
                        execution_context.query_src,
                        execution_context.token_limit,
                    )
                else:
                    document = parse_query(
                        execution_context.query_src,
                        max_tokens=execution_context.token_limit,
                    )
            except GraphQLError as e:
                execution_context.add_errors([e])
            else:
                execution_context.graphql_document = document


class CurrentOperation(Phase):
    def run(self, execution_context: ExecutionContext) -> None:
        if execution_context.operation is not None:
            return

        assert execution_context.graphql_document is not None
        try:
            execution_context.operation = OperationGetter.get(
                execution_context.graphql_document,
                execution_context.request_operation_name,
            )
        except GraphQLError as e:
            execution_context.add_errors([e])


class Validation(Phase):
    def run(self, execution_context: ExecutionContext) -> None:
        with execution_context.extensions.validation():
            if execution_context.errors is not None:
                return

            rules = tuple(specified_rules) + tuple(
                execution_context.validation_rules
            )
            if (
                execution_context.cache is not None
                and execution_context.query_src is not None
            ):
                errors = execution_context.cache.validate(
                    execution_context.schema,
                    execution_context.query_src,
                    rules,
                )
            else:
                assert execution_context.graphql_document is not None
                errors = validate(
                    execution_context.schema,
                    execution_context.graphql_document,
                    rules,
                )
            execution_context.errors = list(errors)


class Variables(Phase):
    """Coerces raw variables, errors are reported before resolution"""

    def run(self, execution_context: ExecutionContext) -> None:
        assert execution_context.operation is not None
        coerced = get_variable_values(
            execution_context.schema,
            execution_context.operation.variable_definitions or (),
            execution_context.variables or {},
        )
        if isinstance(coerced, list):
            execution_context.add_errors(coerced)
        else:
            execution_context.coerced_variables = coerced


def execute_operation(
    execution_context: ExecutionContext,
) -> AwaitableOrValue[ExecutionResult]:
    assert execution_context.graphql_document is not None
    # graphql-core coerces raw variables once more while executing
    return execute(
        execution_context.schema,
        execution_context.graphql_document,
        root_value=execution_context.root_value,
        context_value=execution_context.context,
        variable_values=execution_context.variables,
        operation_name=execution_context.operation_name,
        middleware=list(execution_context.middleware) or None,
    )


def execute_operation_sync(
    execution_context: ExecutionContext,
) -> ExecutionResult:
    result = execute_operation(execution_context)
    if isawaitable(result):
        if iscoroutine(result):
            result.close()
        raise RuntimeError(
            "GraphQL execution failed to complete synchronously,"
            " use AsyncGraphQLEndpoint for async resolvers"
        )
    return cast(ExecutionResult, result)


class Resolution(Phase):
    def run(self, execution_context: ExecutionContext) -> None:
        if execution_context.operation_type == "subscription":
            raise RuntimeError(
                "Subscriptions require AsyncGraphQLEndpoint and pubsub"
            )

        with execution_context.extensions.execution():
            execution_context.result = execute_operation_sync(
                execution_context
            )

    async def run_async(self, execution_context: ExecutionContext) -> None:
        with execution_context.extensions.execution():
            if execution_context.operation_type == "subscription":
                await self._subscribe(execution_context)
                return

            result = execute_operation(execution_context)
            if isawaitable(result):
                result = await result
            execution_context.result = cast(ExecutionResult, result)

    async def _subscribe(self, execution_context: ExecutionContext) -> None:
        assert execution_context.graphql_document is not None
        result = await subscribe(
            execution_context.schema,
            execution_context.graphql_document,
            root_value=execution_context.root_value,
            context_value=execution_context.context,
            variable_values=execution_context.variables,
            operation_name=execution_context.operation_name,
        )
        if isinstance(result, ExecutionResult):
            execution_context.result = result
        else:
            execution_context.subscription = result


class Result(Phase):
    """Formats the execution result or collected errors"""

    halts_on_errors = False

    def run(self, execution_context: ExecutionContext) -> None:
        if execution_context.result is not None:
            execution_context.response = execution_context.result.formatted
        elif execution_context.errors:
            execution_context.response = {
                "errors": [e.formatted for e in execution_context.errors]
            }


class Pipeline:
    """Ordered list of phases

    List operations return new pipelines, so a pipeline can be shared.

    Example:

    .. code-block:: python

        pipeline = default_pipeline(config, "GET")
        pipeline = pipeline.insert_after(CurrentOperation, MyPhase())
        validation_only = pipeline.before(Resolution)

    """

    def __init__(self, phases: Iterable[Phase]) -> None:
        self.phases: List[Phase] = list(phases)

    def __iter__(self) -> Iterator[Phase]:
        return iter(self.phases)

    def __len__(self) -> int:
        return len(self.phases)

    def __contains__(self, phase_type: Type[Phase]) -> bool:
        return any(isinstance(phase, phase_type) for phase in self.phases)

    def __repr__(self) -> str:
        return "<Pipeline {}>".format(self.phases)

    def index(self, phase_type: Type[Phase]) -> int:
        for i, phase in enumerate(self.phases):
            if isinstance(phase, phase_type):
                return i
        raise ValueError(
            "Phase {} is not in the pipeline".format(phase_type.__name__)
        )

    def insert_after(
        self, anchor: Type[Phase], *phases: Phase
    ) -> "Pipeline":
        i = self.index(anchor) + 1
        return Pipeline(self.phases[:i] + list(phases) + self.phases[i:])

    def before(self, phase_type: Type[Phase]) -> "Pipeline":
        """Phases up to, but not including the given one"""
        return Pipeline(self.phases[: self.index(phase_type)])

    def from_(self, phase_type: Type[Phase]) -> "Pipeline":
        """Phases starting with the given one"""
        return Pipeline(self.phases[self.index(phase_type) :])

    def without(self, *phase_types: Type[Phase]) -> "Pipeline":
        return Pipeline(
            phase
            for phase in self.phases
            if not isinstance(phase, phase_types)
        )

    def run(self, execution_context: ExecutionContext) -> ExecutionContext:
        for phase in self.phases:
            if execution_context.errors and phase.halts_on_errors:
                continue
            phase.run(execution_context)
        return execution_context

    async def run_async(
        self, execution_context: ExecutionContext
    ) -> ExecutionContext:
        for phase in self.phases:
            if execution_context.errors and phase.halts_on_errors:
                continue
            await phase.run_async(execution_context)
        return execution_context


def default_pipeline(config: "Config", http_method: str) -> Pipeline:
    return Pipeline(
        [
            Parse(),
            CurrentOperation(),
            Validation(),
            Variables(),
            Resolution(),
            Result(),
        ]
    )
