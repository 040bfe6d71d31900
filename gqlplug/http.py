"""
gqlplug.http
~~~~~~~~~~~~

Framework neutral request and response shapes. Integrations in
:py:mod:`gqlplug.contrib` convert their framework objects into these.

"""

from dataclasses import dataclass, field, replace
from typing import (
    Any,
    AsyncIterator,
    BinaryIO,
    Dict,
    Mapping,
    Optional,
)

from graphql import ExecutionResult


JSON = "application/json"
GRAPHQL = "application/graphql"
FORM_URLENCODED = "application/x-www-form-urlencoded"
MULTIPART = "multipart/form-data"
EVENT_STREAM = "text/event-stream"


@dataclass
class Upload:
    """File sent as a part of ``multipart/form-data`` request"""

    filename: Optional[str]
    content_type: Optional[str] = None
    file: Optional[BinaryIO] = None


@dataclass
class HTTPRequest:
    method: str = "POST"
    #: mime type without parameters, e.g. ``application/json``
    content_type: Optional[str] = None
    #: URL query string parameters
    query: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    #: already decoded form fields, ``None`` if integration did not parse them
    form: Optional[Mapping[str, str]] = None
    files: Mapping[str, Upload] = field(default_factory=dict)
    #: per-request overrides of the :py:class:`gqlplug.config.Config`
    options: Dict[str, Any] = field(default_factory=dict)

    @property
    def mimetype(self) -> str:
        if not self.content_type:
            return ""
        return self.content_type.split(";", 1)[0].strip().lower()


@dataclass
class HTTPResponse:
    status: int
    content_type: str
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class StreamingResponse:
    """Subscription accepted, events must be streamed by the integration

    See :py:func:`gqlplug.subscription.stream_subscription`
    """

    source: AsyncIterator[ExecutionResult]
    status: int = 200
    content_type: str = EVENT_STREAM
    headers: Dict[str, str] = field(default_factory=dict)


def put_options(request: HTTPRequest, **options: Any) -> HTTPRequest:
    """Returns a copy of the request with updated per-request options

    Example:

    .. code-block:: python

        request = put_options(request, context={"user": user})

    """
    return replace(request, options={**request.options, **options})


def assign_context(request: HTTPRequest, **values: Any) -> HTTPRequest:
    """Returns a copy of the request with values added to the context"""
    context = {**request.options.get("context", {}), **values}
    return put_options(request, context=context)
