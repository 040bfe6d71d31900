"""
gqlplug.runner
~~~~~~~~~~~~~~

Runs queries through their pipelines. A single query runs through all the
phases, queries of a batch are prepared separately, query operations are
merged and resolved at once (see :py:mod:`gqlplug.merge`), and then the
result of every query is formatted separately.

"""

import logging
from contextlib import ExitStack
from typing import (
    Any,
    Dict,
    List,
    Sequence,
    Tuple,
)

from graphql import ExecutionResult, GraphQLError

from gqlplug.config import Config
from gqlplug.context import ExecutionContext, create_execution_context
from gqlplug.error import MethodError
from gqlplug.extensions.base_extension import Extension, ExtensionsManager
from gqlplug.merge import (
    MERGED_OPERATION_NAME,
    MergedOperation,
    merge_operations,
    split_result,
)
from gqlplug.pipeline import (
    CurrentOperation,
    Pipeline,
    Resolution,
    Result,
    execute_operation,
    execute_operation_sync,
)
from gqlplug.query import Query
from gqlplug.request import RequestEnvelope
from gqlplug.types import UploadMiddleware
from gqlplug.validation import HTTPMethod, NoSubscriptionOnHTTP

log = logging.getLogger(__name__)


class _BatchItem:
    __slots__ = ("index", "execution_context", "pipeline")

    def __init__(
        self,
        index: int,
        execution_context: ExecutionContext,
        pipeline: Pipeline,
    ) -> None:
        self.index = index
        self.execution_context = execution_context
        self.pipeline = pipeline

    @property
    def resolution(self) -> Pipeline:
        i = self.pipeline.index(Resolution)
        return Pipeline(self.pipeline.phases[i : i + 1])

    @property
    def post_resolution(self) -> Pipeline:
        i = self.pipeline.index(Resolution)
        return Pipeline(self.pipeline.phases[i + 1 :])


class BaseRunner:
    """
    :param config: per-request config
    :param http_method: method of the HTTP request
    :param extensions: initialized extensions
    :param middleware: graphql-core middleware added by extensions
    :param validation_rules: validation rules added by extensions
    :param allow_subscriptions: whether single subscriptions can run,
                                they are never allowed in batches
    """

    def __init__(
        self,
        config: Config,
        http_method: str,
        extensions: Sequence[Extension] = (),
        middleware: Sequence[Any] = (),
        validation_rules: Sequence[Any] = (),
        allow_subscriptions: bool = False,
    ) -> None:
        self.config = config
        self.http_method = http_method.upper()
        self.extensions = extensions
        self.middleware = (
            (UploadMiddleware(),) + tuple(config.middleware) + tuple(middleware)
        )
        self.validation_rules = tuple(config.validation_rules) + tuple(
            validation_rules
        )
        self.allow_subscriptions = allow_subscriptions

    def pipeline_for(self, query: Query, batch: bool = False) -> Pipeline:
        pipeline = self.config.pipeline(self.config, self.http_method)
        if query.provider is not None:
            pipeline = query.provider.pipeline(query, pipeline)

        phases = [HTTPMethod(self.http_method)]
        if batch or not self.allow_subscriptions:
            phases.append(NoSubscriptionOnHTTP())
        return pipeline.insert_after(CurrentOperation, *phases)

    def execution_context(
        self, query: Query, envelope: RequestEnvelope
    ) -> ExecutionContext:
        execution_context = create_execution_context(
            self.config.schema,
            document=query.document,
            variables=query.variables,
            operation_name=query.operation_name,
            context=envelope.context,
            root_value=envelope.root_value,
            http_method=self.http_method,
            middleware=self.middleware,
            validation_rules=self.validation_rules,
            cache=self.config.document_cache,
            token_limit=self.config.token_limit,
        )
        execution_context.extensions = ExtensionsManager(
            execution_context, self.extensions
        )
        return execution_context

    def _reject(
        self, execution_context: ExecutionContext, message: str
    ) -> None:
        execution_context.errors = [GraphQLError(message)]

    def _merge(self, items: List[_BatchItem]) -> MergedOperation:
        operations = []
        for item in items:
            ec = item.execution_context
            assert ec.graphql_document is not None
            assert ec.operation is not None
            operations.append(
                (item.index, ec.graphql_document, ec.operation, ec.variables)
            )
        return merge_operations(operations)

    def _merged_context(
        self, merged: MergedOperation, first: ExecutionContext
    ) -> ExecutionContext:
        merged_context = create_execution_context(
            self.config.schema,
            document=merged.document,
            variables=merged.variables,
            operation_name=MERGED_OPERATION_NAME,
            context=first.context,
            root_value=first.root_value,
            http_method=self.http_method,
            middleware=self.middleware,
        )
        merged_context.operation = merged.operation
        return merged_context

    def _needs_fallback(
        self, result: ExecutionResult, items: List[_BatchItem]
    ) -> bool:
        if result.data is None and len(items) > 1:
            log.warning(
                "Merged batch execution lost all data, "
                "executing %d queries separately",
                len(items),
            )
            return True
        return False

    def _split(
        self,
        result: ExecutionResult,
        merged: MergedOperation,
        items: List[_BatchItem],
    ) -> None:
        for item, item_result in zip(items, split_result(result, merged)):
            item.execution_context.result = item_result

    def _partition(
        self, items: List[_BatchItem]
    ) -> Tuple[List[_BatchItem], List[_BatchItem]]:
        merged, separate = [], []
        for item in items:
            ec = item.execution_context
            if ec.errors:
                continue
            if ec.operation_type == "query":
                merged.append(item)
            else:
                separate.append(item)
        return merged, separate


class Runner(BaseRunner):
    def run_one(
        self, query: Query, envelope: RequestEnvelope
    ) -> ExecutionContext:
        """Runs single query through its pipeline

        :raises MethodError: when operation is not allowed
        """
        execution_context = self.execution_context(query, envelope)
        with execution_context.extensions.operation():
            self.pipeline_for(query).run(execution_context)
        return execution_context

    def run_many(
        self, queries: Sequence[Query], envelope: RequestEnvelope
    ) -> List[Dict[str, Any]]:
        """Runs queries of a batch, results are in the order of queries"""
        return [
            execution_context.response or {}
            for execution_context in self.run_batch(queries, envelope)
        ]

    def run_batch(
        self, queries: Sequence[Query], envelope: RequestEnvelope
    ) -> List[ExecutionContext]:
        """Runs queries of a batch, contexts are in the order of queries

        Query operations are merged and resolved in one pass first, other
        operations (mutations) are resolved one by one after that pass,
        in the order of queries. So a query sees the state before every
        mutation of the batch, wherever the mutation is placed.
        """
        contexts = []
        items = []
        with ExitStack() as operations:
            for index, query in enumerate(queries):
                execution_context = self.execution_context(query, envelope)
                contexts.append(execution_context)
                if query.rejected:
                    assert query.rejection is not None
                    self._reject(execution_context, query.rejection)
                    Result().run(execution_context)
                    continue

                operations.enter_context(
                    execution_context.extensions.operation()
                )
                pipeline = self.pipeline_for(query, batch=True)
                try:
                    pipeline.before(Resolution).run(execution_context)
                except MethodError as e:
                    self._reject(execution_context, e.message)
                items.append(_BatchItem(index, execution_context, pipeline))

            merged, separate = self._partition(items)
            if merged:
                self._resolve_merged(merged)
            for item in separate:
                item.resolution.run(item.execution_context)

            for item in items:
                item.post_resolution.run(item.execution_context)
        return contexts

    def _resolve_merged(self, items: List[_BatchItem]) -> None:
        with ExitStack() as hooks:
            for item in items:
                hooks.enter_context(
                    item.execution_context.extensions.execution()
                )

            merged = self._merge(items)
            merged_context = self._merged_context(
                merged, items[0].execution_context
            )
            result = execute_operation_sync(merged_context)

            if not self._needs_fallback(result, items):
                self._split(result, merged, items)
                return

            for item in items:
                item.execution_context.result = execute_operation_sync(
                    item.execution_context
                )


class AsyncRunner(BaseRunner):
    async def run_one(
        self, query: Query, envelope: RequestEnvelope
    ) -> ExecutionContext:
        """Runs single query through its pipeline, subscriptions included

        :raises MethodError: when operation is not allowed
        """
        execution_context = self.execution_context(query, envelope)
        with execution_context.extensions.operation():
            await self.pipeline_for(query).run_async(execution_context)
        return execution_context

    async def run_many(
        self, queries: Sequence[Query], envelope: RequestEnvelope
    ) -> List[Dict[str, Any]]:
        """Runs queries of a batch, results are in the order of queries"""
        return [
            execution_context.response or {}
            for execution_context in await self.run_batch(queries, envelope)
        ]

    async def run_batch(
        self, queries: Sequence[Query], envelope: RequestEnvelope
    ) -> List[ExecutionContext]:
        """Same as :py:meth:`Runner.run_batch`, resolution is awaited"""
        contexts = []
        items = []
        with ExitStack() as operations:
            for index, query in enumerate(queries):
                execution_context = self.execution_context(query, envelope)
                contexts.append(execution_context)
                if query.rejected:
                    assert query.rejection is not None
                    self._reject(execution_context, query.rejection)
                    await Result().run_async(execution_context)
                    continue

                operations.enter_context(
                    execution_context.extensions.operation()
                )
                pipeline = self.pipeline_for(query, batch=True)
                try:
                    await pipeline.before(Resolution).run_async(
                        execution_context
                    )
                except MethodError as e:
                    self._reject(execution_context, e.message)
                items.append(_BatchItem(index, execution_context, pipeline))

            merged, separate = self._partition(items)
            if merged:
                await self._resolve_merged(merged)
            for item in separate:
                await item.resolution.run_async(item.execution_context)

            for item in items:
                await item.post_resolution.run_async(item.execution_context)
        return contexts

    async def _resolve_merged(self, items: List[_BatchItem]) -> None:
        with ExitStack() as hooks:
            for item in items:
                hooks.enter_context(
                    item.execution_context.extensions.execution()
                )

            merged = self._merge(items)
            merged_context = self._merged_context(
                merged, items[0].execution_context
            )
            result = execute_operation(merged_context)
            if not isinstance(result, ExecutionResult):
                result = await result

            if not self._needs_fallback(result, items):
                self._split(result, merged, items)
                return

            for item in items:
                item_result = execute_operation(item.execution_context)
                if not isinstance(item_result, ExecutionResult):
                    item_result = await item_result
                item.execution_context.result = item_result
