"""
gqlplug.response
~~~~~~~~~~~~~~~~

Maps outcome of the request into HTTP response.

"""

import enum
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    Dict,
    List,
    Optional,
    Union,
)

from graphql import ExecutionResult

from gqlplug.config import Config
from gqlplug.http import HTTPResponse, StreamingResponse

INTERNAL_ERROR_MESSAGE = "Internal server error"


class OutcomeKind(enum.Enum):
    INPUT_ERROR = "input_error"
    METHOD_ERROR = "method_error"
    RESULT = "result"
    BATCH = "batch"
    SUBSCRIPTION = "subscription"
    INTERNAL_ERROR = "internal_error"


@dataclass
class Outcome:
    kind: OutcomeKind
    message: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    results: Optional[List[Dict[str, Any]]] = None
    subscription: Optional[AsyncIterator[ExecutionResult]] = None

    @classmethod
    def input_error(cls, message: str) -> "Outcome":
        return cls(OutcomeKind.INPUT_ERROR, message=message)

    @classmethod
    def method_error(cls, message: str) -> "Outcome":
        return cls(OutcomeKind.METHOD_ERROR, message=message)

    @classmethod
    def internal_error(cls) -> "Outcome":
        return cls(OutcomeKind.INTERNAL_ERROR, message=INTERNAL_ERROR_MESSAGE)

    @classmethod
    def from_result(cls, result: Dict[str, Any]) -> "Outcome":
        return cls(OutcomeKind.RESULT, result=result)

    @classmethod
    def batch(cls, results: List[Dict[str, Any]]) -> "Outcome":
        return cls(OutcomeKind.BATCH, results=results)

    @classmethod
    def from_subscription(
        cls, source: AsyncIterator[ExecutionResult]
    ) -> "Outcome":
        return cls(OutcomeKind.SUBSCRIPTION, subscription=source)

    @property
    def payload(self) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        """GraphQL response without HTTP details"""
        if self.kind is OutcomeKind.RESULT:
            assert self.result is not None
            return self.result
        elif self.kind is OutcomeKind.BATCH:
            assert self.results is not None
            return self.results
        elif self.kind is OutcomeKind.SUBSCRIPTION:
            raise TypeError("Subscription outcome has no payload")
        else:
            assert self.message is not None
            return error_result(self.message)


def error_result(message: str) -> Dict[str, Any]:
    return {"errors": [{"message": message}]}


def _encode(
    status: int, payload: Any, config: Config
) -> HTTPResponse:
    assert config.serializer is not None
    return HTTPResponse(
        status=status,
        content_type=config.content_type,
        body=config.serializer.encode(payload),
    )


def assemble(
    outcome: Outcome, config: Config
) -> Union[HTTPResponse, StreamingResponse]:
    """Selects status code and serializes the outcome

    Results which have no ``data`` key were not executed, e.g. because of
    validation errors, they get ``Config.validation_error_status``.
    """
    kind = outcome.kind
    if kind is OutcomeKind.RESULT:
        assert outcome.result is not None
        if "data" in outcome.result:
            status = 200
        else:
            status = config.validation_error_status
        return _encode(status, outcome.result, config)

    elif kind is OutcomeKind.BATCH:
        return _encode(200, outcome.results, config)

    elif kind is OutcomeKind.INPUT_ERROR:
        return _encode(400, outcome.payload, config)

    elif kind is OutcomeKind.METHOD_ERROR:
        assert outcome.message is not None
        if config.method_error_format == "text":
            return HTTPResponse(
                status=405,
                content_type="text/plain; charset=utf-8",
                body=outcome.message.encode("utf-8"),
            )
        return _encode(405, outcome.payload, config)

    elif kind is OutcomeKind.SUBSCRIPTION:
        assert outcome.subscription is not None
        return StreamingResponse(
            source=outcome.subscription,
            headers={"Cache-Control": "no-cache"},
        )

    elif kind is OutcomeKind.INTERNAL_ERROR:
        return _encode(500, outcome.payload, config)

    else:
        raise TypeError(repr(kind))
