from contextvars import ContextVar
from typing import Iterator

from prometheus_client.metrics import MetricWrapperBase

from gqlplug.context import ExecutionContext
from gqlplug.extensions.base_extension import Extension
from gqlplug.telemetry.prometheus import FieldMetrics


class PrometheusMetrics(Extension):
    """Observes resolve time of every field

    Exposes ``graphql_field_time`` summary with ``graph``, ``type`` and
    ``field`` labels, unless another metric is provided.

    :param str name: value of the ``graph`` label
    :param metric: custom prometheus metric
    :param ctx_var: context variable set to the request context during
                    resolution, available in ``FieldMetrics.get_labels``
    """

    def __init__(
        self,
        name: str,
        *,
        metric: MetricWrapperBase | None = None,
        ctx_var: ContextVar | None = None,
    ):
        self._name = name
        self._metric = metric
        self._ctx_var = ctx_var
        self._middleware = FieldMetrics(
            self._name, metric=self._metric, ctx_var=ctx_var
        )

    def on_init(self, execution_context: ExecutionContext) -> Iterator[None]:
        execution_context.middleware = execution_context.middleware + (
            self._middleware,
        )
        yield

    def on_execute(self, execution_context: ExecutionContext) -> Iterator[None]:
        if self._ctx_var is None:
            yield
        else:
            token = self._ctx_var.set(execution_context.context)
            yield
            self._ctx_var.reset(token)
