"""
gqlplug.query
~~~~~~~~~~~~~

One candidate GraphQL operation extracted from a request. A request carries
one query, or several of them when it is a batch.

"""

import enum
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Mapping,
    Optional,
    Union,
)

from graphql import DocumentNode

from gqlplug.codec import Codec, DecodeError
from gqlplug.error import InputError

if TYPE_CHECKING:
    from gqlplug.document_providers.base import DocumentProvider


VARIABLES_ERROR = "The variable values could not be decoded"

#: keys of a batch entry which are not echoed back with the result
ENTRY_KEYS = frozenset(["query", "variables"])


class QueryState(enum.Enum):
    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    REJECTED = "rejected"


@dataclass
class Query:
    raw_document: Optional[str]
    variables: Dict[str, Any] = field(default_factory=dict)
    operation_name: Optional[str] = None
    #: parameters the query was extracted from
    params: Mapping[str, Any] = field(default_factory=dict)
    correlation_id: Any = None
    extra_fields: Dict[str, Any] = field(default_factory=dict)
    #: input problem of a batch entry, the entry is rejected with it
    input_error: Optional[str] = None
    document: Union[str, DocumentNode, None] = None
    #: key of a persisted document, set by providers which look them up
    document_key: Any = None
    state: QueryState = QueryState.UNRESOLVED
    rejection: Optional[str] = None
    provider: Optional["DocumentProvider"] = field(default=None, compare=False)

    @classmethod
    def from_params(
        cls, body: str, params: Mapping[str, Any], codec: Codec
    ) -> "Query":
        """Extracts query from request parameters

        :param body: request body text, used when there is no ``query``
                     parameter
        :param params: request parameters
        :param codec: used to decode ``variables`` given as a string
        :raises InputError: when variables could not be decoded
        """
        return cls(
            raw_document=extract_raw_document(body, params),
            variables=extract_variables(params, codec),
            operation_name=extract_operation_name(params),
            params=params,
        )

    @classmethod
    def from_entry(cls, entry: Any, codec: Codec) -> "Query":
        """Extracts query from one entry of a batch

        Never raises, entries with problems are rejected later and do not
        affect their siblings.
        """
        if not isinstance(entry, Mapping):
            return cls(raw_document=None)

        try:
            variables = extract_variables(entry, codec)
            input_error = None
        except InputError as e:
            variables = {}
            input_error = e.message

        return cls(
            raw_document=extract_raw_document("", entry),
            variables=variables,
            operation_name=extract_operation_name(entry),
            params=entry,
            correlation_id=entry.get("id"),
            extra_fields={
                key: value
                for key, value in entry.items()
                if key not in ENTRY_KEYS
            },
            input_error=input_error,
        )

    @property
    def resolved(self) -> bool:
        return self.state is QueryState.RESOLVED

    @property
    def rejected(self) -> bool:
        return self.state is QueryState.REJECTED

    def resolve(
        self,
        document: Union[str, DocumentNode],
        provider: Optional["DocumentProvider"] = None,
    ) -> None:
        assert self.state is QueryState.UNRESOLVED, self.state
        self.document = document
        self.provider = provider
        self.state = QueryState.RESOLVED

    def reject(self, reason: str) -> None:
        assert self.state is QueryState.UNRESOLVED, self.state
        self.rejection = reason
        self.state = QueryState.REJECTED


def extract_raw_document(body: str, params: Mapping[str, Any]) -> Optional[str]:
    raw_document = params["query"] if "query" in params else body
    if not isinstance(raw_document, str) or not raw_document:
        return None
    return raw_document


def extract_operation_name(params: Mapping[str, Any]) -> Optional[str]:
    # empty operation name means the only operation in the document
    operation_name = params.get("operationName")
    if not isinstance(operation_name, str) or not operation_name:
        return None
    return operation_name


def extract_variables(
    params: Mapping[str, Any], codec: Codec
) -> Dict[str, Any]:
    variables = params.get("variables")
    if isinstance(variables, Mapping):
        return dict(variables)
    if variables is None or variables in ("", "null"):
        return {}
    if not isinstance(variables, (str, bytes)):
        raise InputError(VARIABLES_ERROR)

    try:
        decoded = codec.decode(variables)
    except DecodeError:
        raise InputError(VARIABLES_ERROR)

    if decoded is None:
        return {}
    if not isinstance(decoded, Mapping):
        raise InputError(VARIABLES_ERROR)
    return dict(decoded)
