from __future__ import annotations

import contextlib
import inspect
from types import TracebackType
from typing import (
    TYPE_CHECKING,
    Callable,
    Iterator,
    List,
    NamedTuple,
    Optional,
    Sequence,
    Type,
    Union,
)

if TYPE_CHECKING:
    from gqlplug.context import ExecutionContext


Hook = Callable[["Extension", "ExecutionContext"], Iterator[None]]


class Extension:
    """Hooks into the lifecycle of every query handled by an endpoint.

    Each hook is a generator which yields exactly once: code before
    ``yield`` runs before the step, code after ``yield`` runs after it.

    **Hook order:**

    1. ``on_init()`` - once, when the endpoint is created. The execution
       context is a template, extensions can add graphql-core middleware
       or validation rules to it.
    2. ``on_operation()`` - wraps the processing of one query, including
       every phase below. In a batch, every query gets its own operation.
    3.   ``on_parse()`` - around ``Parse`` phase; if
         ``execution_context.graphql_document`` is set before ``yield``,
         parsing is skipped.
    4.   ``on_validate()`` - around ``Validation`` phase; if
         ``execution_context.errors`` is set before ``yield``, validation
         is skipped.
    5.   ``on_execute()`` - around resolution. In a batch all merged
         queries enter this hook before the shared resolution pass and
         leave it after the pass.

    Example:

    .. code-block:: python

        class Timing(Extension):
            def on_execute(self, execution_context):
                start = time.perf_counter()
                yield
                log.info("took %.3f", time.perf_counter() - start)

    """

    def on_init(self, execution_context: ExecutionContext) -> Iterator[None]:
        yield None

    def on_operation(
        self, execution_context: ExecutionContext
    ) -> Iterator[None]:
        yield None

    def on_parse(self, execution_context: ExecutionContext) -> Iterator[None]:
        yield None

    def on_validate(
        self, execution_context: ExecutionContext
    ) -> Iterator[None]:
        yield None

    def on_execute(
        self, execution_context: ExecutionContext
    ) -> Iterator[None]:
        yield None


def init_extensions(
    extensions: Optional[Sequence[Union[Type[Extension], Extension]]],
) -> List[Extension]:
    return [
        extension if isinstance(extension, Extension) else extension()
        for extension in extensions or ()
    ]


class ExtensionsManager:
    """Per-query extensions manager, calls hooks in the right order"""

    def __init__(
        self,
        execution_context: ExecutionContext,
        extensions: Sequence[Extension],
    ):
        self.execution_context = execution_context
        self.extensions = list(extensions)

    def _hooks(self, name: str) -> "HookContextManager":
        return HookContextManager(
            name, self.extensions, self.execution_context
        )

    def init(self) -> "HookContextManager":
        return self._hooks(Extension.on_init.__name__)

    def operation(self) -> "HookContextManager":
        return self._hooks(Extension.on_operation.__name__)

    def parsing(self) -> "HookContextManager":
        return self._hooks(Extension.on_parse.__name__)

    def validation(self) -> "HookContextManager":
        return self._hooks(Extension.on_validate.__name__)

    def execution(self) -> "HookContextManager":
        return self._hooks(Extension.on_execute.__name__)


class WrappedHook(NamedTuple):
    extension: Extension
    iterator: Iterator[None]


class HookContextManager:
    __slots__ = ("hook_name", "hooks")

    def __init__(
        self,
        hook_name: str,
        extensions: List[Extension],
        execution_context: ExecutionContext,
    ):
        self.hook_name = hook_name
        self.hooks: List[WrappedHook] = []
        default_hook = getattr(Extension, hook_name)
        for extension in extensions:
            hook_fn = getattr(type(extension), hook_name)
            if hook_fn is default_hook:
                continue
            self.hooks.append(
                WrappedHook(
                    extension,
                    self._wrap(extension, hook_fn, execution_context),
                )
            )

    def _wrap(
        self,
        extension: Extension,
        hook_fn: Hook,
        execution_context: ExecutionContext,
    ) -> Iterator[None]:
        if inspect.isgeneratorfunction(hook_fn):
            return hook_fn(extension, execution_context)

        if inspect.iscoroutinefunction(hook_fn) or inspect.isasyncgenfunction(
            hook_fn
        ):
            raise RuntimeError(
                f"Extension hook {extension}.{self.hook_name} is async, "
                "only sync hooks are supported"
            )

        if not callable(hook_fn):
            raise ValueError(
                f"Hook {self.hook_name} on {extension} "
                f"must be callable, received {hook_fn!r}"
            )

        def iterator() -> Iterator[None]:
            hook_fn(extension, execution_context)
            yield

        return iterator()

    def __enter__(self) -> None:
        for hook in self.hooks:
            next(hook.iterator)

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        for hook in reversed(self.hooks):
            with contextlib.suppress(StopIteration):
                next(hook.iterator)
