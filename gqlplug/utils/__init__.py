from typing import Any, Dict, Iterable, Mapping

from .immutable import ImmutableDict, to_immutable_dict

FILTERED = "[FILTERED]"


def filter_variables(
    variables: Mapping[str, Any], sensitive: Iterable[str]
) -> Dict[str, Any]:
    """Replaces values of sensitive keys, used before logging variables"""
    sensitive = {key.lower() for key in sensitive}

    def _filter(value: Any) -> Any:
        if isinstance(value, Mapping):
            return {
                k: FILTERED if str(k).lower() in sensitive else _filter(v)
                for k, v in value.items()
            }
        if isinstance(value, list):
            return [_filter(i) for i in value]
        return value

    return _filter(variables)


__all__ = [
    "ImmutableDict",
    "to_immutable_dict",
    "filter_variables",
]
