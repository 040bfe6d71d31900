"""
gqlplug.validation
~~~~~~~~~~~~~~~~~~

Phases restricting operation types by the transport used.

"""

from typing import Optional

from gqlplug.context import ExecutionContext
from gqlplug.error import MethodError
from gqlplug.pipeline import Phase

POST_ONLY = frozenset(["mutation", "subscription"])


def check_http_method(
    operation_type: Optional[str], http_method: str
) -> Optional[str]:
    """Returns error message when operation is not allowed for the method

    Queries are allowed with any method, mutations and subscriptions
    only with ``POST``.
    """
    if http_method.upper() == "POST":
        return None
    if operation_type in POST_ONLY:
        return "Can only perform a {} from a POST request".format(
            operation_type
        )
    return None


class HTTPMethod(Phase):
    def __init__(self, method: str) -> None:
        self.method = method

    def run(self, execution_context: ExecutionContext) -> None:
        operation_type = execution_context.operation_type
        message = check_http_method(operation_type, self.method)
        if message is not None:
            raise MethodError(message, operation_type)

    def __repr__(self) -> str:
        return "<{} {}>".format(type(self).__name__, self.method)


class NoSubscriptionOnHTTP(Phase):
    """Used when there is no streaming transport for subscriptions"""

    def run(self, execution_context: ExecutionContext) -> None:
        if execution_context.operation_type == "subscription":
            raise MethodError(
                "Subscriptions cannot be run over HTTP.", "subscription"
            )
