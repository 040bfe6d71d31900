"""
gqlplug.request
~~~~~~~~~~~~~~~

Extracts queries from differently shaped HTTP requests:

- ``application/json`` - object is a single query, array is a batch;
- ``application/graphql`` - body is a document, other parameters come from
  the query string;
- ``application/x-www-form-urlencoded`` and ``multipart/form-data`` - form
  fields are parameters, files are uploads, ``operations`` field holds
  a JSON payload;
- anything else - parameters come from the query string, body is a
  document.

"""

import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Optional,
)
from urllib.parse import parse_qsl

from gqlplug.codec import Codec, DecodeError
from gqlplug.config import Config
from gqlplug.error import InputError
from gqlplug.http import (
    FORM_URLENCODED,
    GRAPHQL,
    JSON,
    MULTIPART,
    HTTPRequest,
    Upload,
)
from gqlplug.query import Query
from gqlplug.types import UPLOADS_KEY
from gqlplug.utils import filter_variables

log = logging.getLogger(__name__)

INVALID_STRUCTURE = (
    "Invalid request structure. Expecting an object or list of objects."
)

_NO_PAYLOAD = object()


@dataclass
class RequestEnvelope:
    queries: List[Query]
    is_batch: bool = False
    context: Dict[str, Any] = field(default_factory=dict)
    root_value: Any = None


def decode_json(data: Any, codec: Codec) -> Any:
    try:
        return codec.decode(data)
    except DecodeError as e:
        if e.token is not None:
            raise InputError(
                "Could not parse JSON. Invalid token `{}` at position {}"
                .format(e.token, e.position)
            )
        raise InputError("Could not parse JSON. {}".format(e.message))


def _body_text(body: bytes) -> str:
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        raise InputError("Request body is not valid UTF-8")


def build_context(
    config: Config, uploads: Optional[Mapping[str, Upload]] = None
) -> Dict[str, Any]:
    context = config.context.mutable()
    context[UPLOADS_KEY] = {"uploads": dict(uploads or {})}
    if config.pubsub is not None:
        context.setdefault("pubsub", config.pubsub)
    return context


def build_envelope(
    payload: Any,
    config: Config,
    *,
    body: str = "",
    uploads: Optional[Mapping[str, Upload]] = None,
) -> RequestEnvelope:
    """Builds envelope from already decoded request payload

    :param payload: object with query parameters, or a list of them
    :param config: per-request config
    :param body: request body text, fallback document
    :param uploads: uploaded files by field name
    :raises InputError: when payload has wrong structure or single query
                        has undecodable variables
    """
    codec = config.json_codec
    if isinstance(payload, list):
        queries = [Query.from_entry(entry, codec) for entry in payload]
        is_batch = True
    elif isinstance(payload, Mapping):
        queries = [Query.from_params(body, payload, codec)]
        is_batch = False
    else:
        raise InputError(INVALID_STRUCTURE)

    return RequestEnvelope(
        queries=queries,
        is_batch=is_batch,
        context=build_context(config, uploads),
        root_value=config.root_value,
    )


def parse_request(request: HTTPRequest, config: Config) -> RequestEnvelope:
    """Extracts queries from the HTTP request

    A JSON string is never decoded twice: payload which is a string after
    the first decode is an error.

    :param request: framework neutral request
    :param config: per-request config
    :raises InputError: when request is malformed
    """
    params: Dict[str, Any] = dict(request.query)
    body = ""
    payload: Any = _NO_PAYLOAD
    uploads: Mapping[str, Upload] = {}

    mimetype = request.mimetype
    if mimetype == JSON:
        if request.body.strip():
            payload = decode_json(request.body, config.json_codec)
    elif mimetype == GRAPHQL:
        body = _body_text(request.body)
    elif mimetype in (FORM_URLENCODED, MULTIPART):
        form = request.form
        if form is None and mimetype == FORM_URLENCODED:
            form = dict(
                parse_qsl(_body_text(request.body), keep_blank_values=True)
            )
        params.update(form or {})
        uploads = request.files
        operations = params.get("operations")
        if isinstance(operations, str):
            del params["operations"]
            payload = decode_json(operations, config.json_codec)
    else:
        body = _body_text(request.body)

    if payload is _NO_PAYLOAD:
        payload = params
    elif isinstance(payload, Mapping):
        payload = {**params, **payload}

    return build_envelope(payload, config, body=body, uploads=uploads)


def log_request(envelope: RequestEnvelope, config: Config) -> None:
    if not log.isEnabledFor(config.log_level):
        return
    for query in envelope.queries:
        log.log(
            config.log_level,
            "GraphQL document: %r, operation name: %r, variables: %r",
            query.raw_document,
            query.operation_name,
            filter_variables(query.variables, config.filter_variables),
        )
