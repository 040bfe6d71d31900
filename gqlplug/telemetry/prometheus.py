import contextvars
import time
from inspect import isawaitable
from typing import Any, Callable, Dict, Optional, Tuple

from graphql import GraphQLResolveInfo
from prometheus_client import Summary


_METRIC = None


def _get_default_metric():
    global _METRIC
    if _METRIC is None:
        _METRIC = Summary(
            "graphql_field_time",
            "GraphQL field time (seconds)",
            ["graph", "type", "field"],
        )
    return _METRIC


class FieldMetrics:
    """graphql-core middleware observing resolve time of every field

    Works with sync and async resolvers, awaitable results are observed
    when they are done. Introspection fields are not observed.
    """

    def __init__(
        self,
        name: str,
        *,
        metric=None,
        ctx_var: Optional[contextvars.ContextVar] = None,
    ):
        self._name = name
        self._metric = metric or _get_default_metric()
        self._ctx = ctx_var
        self._by_field: Dict[Tuple[str, str], Any] = {}

    def get_labels(
        self, graph_name: str, type_name: str, field_name: str, ctx: Any
    ) -> list:
        return [graph_name, type_name, field_name]

    def _observe(self, start_time: float, info: GraphQLResolveInfo) -> None:
        duration = time.perf_counter() - start_time
        type_name = info.parent_type.name
        key = (type_name, info.field_name)
        try:
            field_metric = self._by_field[key]
        except KeyError:
            ctx = self._ctx.get() if self._ctx else None
            field_metric = self._by_field[key] = self._metric.labels(
                *self.get_labels(self._name, type_name, info.field_name, ctx),
            )
        field_metric.observe(duration)

    def resolve(
        self,
        next_: Callable,
        root: Any,
        info: GraphQLResolveInfo,
        **args: Any,
    ) -> Any:
        if info.parent_type.name.startswith("__"):
            return next_(root, info, **args)

        start_time = time.perf_counter()
        result = next_(root, info, **args)
        if isawaitable(result):
            return self._observe_async(start_time, info, result)

        self._observe(start_time, info)
        return result

    async def _observe_async(
        self, start_time: float, info: GraphQLResolveInfo, result: Any
    ) -> Any:
        value = await result
        self._observe(start_time, info)
        return value
