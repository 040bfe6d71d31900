"""
gqlplug.codec
~~~~~~~~~~~~~

Pluggable serialization used to decode request payloads and to encode
responses.

"""

import abc
import json

from typing import Any, Optional, Union


class DecodeError(ValueError):
    def __init__(
        self,
        message: str,
        token: Optional[str] = None,
        position: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.token = token
        self.position = position


class Codec(abc.ABC):
    @abc.abstractmethod
    def encode(self, value: Any) -> bytes:
        raise NotImplementedError

    @abc.abstractmethod
    def decode(self, data: Union[bytes, str]) -> Any:
        """Decodes payload, raises :py:class:`DecodeError` on failure"""
        raise NotImplementedError


class JSONCodec(Codec):
    """Default codec based on the standard :py:mod:`json` module

    :param dumps_options: overrides for :py:func:`json.dumps`
    """

    def __init__(self, **dumps_options: Any) -> None:
        self.dumps_options = {
            "separators": (",", ":"),
            "ensure_ascii": False,
            **dumps_options,
        }

    def encode(self, value: Any) -> bytes:
        return json.dumps(value, **self.dumps_options).encode("utf-8")

    def decode(self, data: Union[bytes, str]) -> Any:
        if isinstance(data, bytes):
            try:
                data = data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodeError(str(e), position=e.start)
        try:
            return json.loads(data)
        except json.JSONDecodeError as e:
            token = data[e.pos] if e.pos < len(data) else None
            raise DecodeError(e.msg, token=token, position=e.pos)
