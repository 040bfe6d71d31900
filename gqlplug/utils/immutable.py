from typing import Any, Generic, Mapping, NoReturn, Optional, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class ImmutableDict(dict, Generic[K, V]):
    """Read-only dict shared between concurrent requests

    Use :py:meth:`merge` to get an updated copy.
    """

    def _immutable(self, *args: Any, **kwargs: Any) -> NoReturn:
        raise TypeError(
            "{} object is immutable".format(self.__class__.__name__)
        )

    __delitem__ = __setitem__ = _immutable  # type: ignore
    clear = pop = popitem = setdefault = update = _immutable  # type: ignore

    def merge(
        self, other: Optional[Mapping[K, V]] = None
    ) -> "ImmutableDict[K, V]":
        if not other:
            return self
        merged = dict(self)
        merged.update(other)
        return ImmutableDict(merged)

    def mutable(self) -> dict:
        return dict(self)


def to_immutable_dict(data: Optional[Mapping[K, V]]) -> ImmutableDict[K, V]:
    if isinstance(data, ImmutableDict):
        return data
    return ImmutableDict(data or {})
