"""
gqlplug.config
~~~~~~~~~~~~~~

Endpoint configuration, built once when the application starts and shared
by all requests. Per-request options produce a copy, see
:py:meth:`Config.with_overrides`.

"""

import logging
from dataclasses import dataclass, field, fields, replace
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    List,
    Mapping,
    Optional,
    Sequence,
    Union,
)

from graphql import GraphQLSchema

from gqlplug.codec import Codec, JSONCodec
from gqlplug.document_providers.default import DefaultDocumentProvider
from gqlplug.error import ConfigurationError
from gqlplug.http import JSON
from gqlplug.pipeline import Pipeline, default_pipeline
from gqlplug.utils import ImmutableDict, to_immutable_dict

if TYPE_CHECKING:
    from gqlplug.cache import DocumentCache
    from gqlplug.context import ExecutionContext
    from gqlplug.http import HTTPResponse
    from gqlplug.pubsub import PubSub


DEFAULT_PAYLOAD_KEY = "payload"

METHOD_ERROR_FORMATS = ("json", "text")

BeforeSend = Callable[
    ["HTTPResponse", List["ExecutionContext"]], "HTTPResponse"
]


def _default_document_providers() -> List[DefaultDocumentProvider]:
    return [DefaultDocumentProvider()]


@dataclass(frozen=True)
class Config:
    """
    :param schema: graphql-core schema
    :param context: default context, merged with per-request context
    :param root_value: root value, per-request mapping is merged into it
                       when both are mappings
    :param json_codec: decodes request payloads
    :param serializer: encodes responses, ``json_codec`` by default
    :param content_type: content type of encoded responses
    :param document_providers: list of providers, one provider, provider
                               class, or a callable receiving config and
                               returning a list of providers
    :param no_query_message: error when request has no document
    :param pipeline: callable receiving config and HTTP method and
                     returning :py:class:`gqlplug.pipeline.Pipeline`
    :param middleware: graphql-core middleware
    :param validation_rules: extra graphql-core validation rules
    :param document_cache: :py:class:`gqlplug.cache.DocumentCache`
    :param extensions: :py:class:`gqlplug.extensions.Extension` instances
                       or classes
    :param pubsub: enables subscriptions, available to resolvers as
                   ``context["pubsub"]``
    :param transport_batch_payload_key: key of the result in the batch
                                        entries, ``None`` for flat entries
    :param standard_sse: GraphQL over Server-Sent Events event framing
    :param subscription_heartbeat: seconds without events before a ping
    :param validation_error_status: status of results without data,
                                    ``400`` matches legacy behavior
    :param method_error_format: ``"json"`` or ``"text"`` body for 405
    :param before_send: callable receiving response and execution contexts
                        and returning a response
    :param log_level: level used to log executed queries
    :param filter_variables: variables replaced with ``[FILTERED]`` in logs
    :param token_limit: maximum number of tokens in a query document,
                        larger documents are rejected while parsing
    """

    schema: GraphQLSchema
    context: Mapping[str, Any] = field(default_factory=ImmutableDict)
    root_value: Any = None
    json_codec: Codec = field(default_factory=JSONCodec)
    serializer: Optional[Codec] = None
    content_type: str = JSON
    document_providers: Any = field(
        default_factory=_default_document_providers
    )
    no_query_message: str = "No query document supplied"
    pipeline: Callable[["Config", str], Pipeline] = default_pipeline
    middleware: Sequence[Any] = ()
    validation_rules: Sequence[Any] = ()
    document_cache: Optional["DocumentCache"] = None
    extensions: Sequence[Any] = ()
    pubsub: Optional["PubSub"] = None
    transport_batch_payload_key: Union[str, bool, None] = DEFAULT_PAYLOAD_KEY
    standard_sse: bool = False
    subscription_heartbeat: float = 30.0
    validation_error_status: int = 200
    method_error_format: str = "json"
    before_send: Optional[BeforeSend] = None
    log_level: int = logging.DEBUG
    filter_variables: Sequence[str] = ("token", "password")
    token_limit: Optional[int] = None

    def __post_init__(self) -> None:
        if not isinstance(self.schema, GraphQLSchema):
            raise ConfigurationError(
                "GraphQLSchema expected, got {!r}".format(self.schema)
            )

        if (
            isinstance(self.document_providers, (list, tuple))
            and not self.document_providers
        ):
            raise ConfigurationError(
                "No document providers found to process request"
            )

        if self.method_error_format not in METHOD_ERROR_FORMATS:
            raise ConfigurationError(
                "method_error_format should be one of {}, got {!r}".format(
                    METHOD_ERROR_FORMATS, self.method_error_format
                )
            )

        if self.subscription_heartbeat <= 0:
            raise ConfigurationError(
                "subscription_heartbeat should be positive"
            )

        if self.token_limit is not None and self.token_limit <= 0:
            raise ConfigurationError("token_limit should be positive")

        set_ = object.__setattr__
        set_(self, "context", to_immutable_dict(self.context))
        set_(self, "middleware", tuple(self.middleware))
        set_(self, "validation_rules", tuple(self.validation_rules))
        set_(self, "extensions", tuple(self.extensions))
        set_(self, "filter_variables", tuple(self.filter_variables))
        if self.serializer is None:
            set_(self, "serializer", self.json_codec)

        payload_key = self.transport_batch_payload_key
        if payload_key is True:
            set_(self, "transport_batch_payload_key", DEFAULT_PAYLOAD_KEY)
        elif payload_key is False or payload_key == "":
            set_(self, "transport_batch_payload_key", None)

    def with_overrides(self, **options: Any) -> "Config":
        """Returns a copy with per-request options applied

        ``context`` is merged into the shared context, ``root_value`` is
        merged into the shared root value when both are mappings, other
        options replace shared values. A ``json_codec`` override also
        replaces the serializer, unless a serializer was set explicitly.

        Example:

        .. code-block:: python

            config = config.with_overrides(context={"user": user})

        """
        if not options:
            return self

        known = {f.name for f in fields(self)}
        unknown = set(options) - known
        if unknown:
            raise ConfigurationError(
                "Unknown options: {}".format(", ".join(sorted(unknown)))
            )

        changes = dict(options)
        if (
            "json_codec" in changes
            and "serializer" not in changes
            and self.serializer is self.json_codec
        ):
            changes["serializer"] = changes["json_codec"]
        if "context" in changes:
            changes["context"] = self.context.merge(changes["context"])
        if (
            "root_value" in changes
            and isinstance(self.root_value, Mapping)
            and isinstance(changes["root_value"], Mapping)
        ):
            changes["root_value"] = {
                **self.root_value,
                **changes["root_value"],
            }
        return replace(self, **changes)
