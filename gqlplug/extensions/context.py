from typing import Callable, Dict, Iterator

from gqlplug.context import ExecutionContext
from gqlplug.extensions.base_extension import Extension


class CustomContext(Extension):
    """Replaces the request context right before resolution

    In a batch every query builds its own context, the shared resolution
    pass uses the context of the first merged query.

    :param get_context: callable receiving the execution context and
                        returning the new context mapping
    """

    def __init__(
        self,
        get_context: Callable[[ExecutionContext], Dict],
    ):
        self.get_context = get_context

    def on_execute(self, execution_context: ExecutionContext) -> Iterator[None]:
        execution_context.context = self.get_context(execution_context)
        yield
