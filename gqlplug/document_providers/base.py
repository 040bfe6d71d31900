import abc
import logging
from typing import (
    TYPE_CHECKING,
    List,
    NamedTuple,
    Sequence,
    Union,
)

from graphql import DocumentNode

from gqlplug.error import ConfigurationError
from gqlplug.pipeline import Pipeline
from gqlplug.query import Query

if TYPE_CHECKING:
    from gqlplug.config import Config

log = logging.getLogger(__name__)

NO_PROVIDER_MESSAGE = "No document provider found to handle this request"


class Claimed(NamedTuple):
    document: Union[str, DocumentNode]


class _Declined:
    def __repr__(self) -> str:
        return "DECLINED"


DECLINED = _Declined()

ProcessResult = Union[Claimed, _Declined]


class DocumentProvider(abc.ABC):
    """Supplies an executable document for a query

    Providers are asked in order, the first one returning
    :py:class:`Claimed` wins, others are not consulted.
    """

    @abc.abstractmethod
    def process(self, query: Query) -> ProcessResult:
        pass

    def pipeline(self, query: Query, pipeline: Pipeline) -> Pipeline:
        """Adjusts phases applied to the claimed document"""
        return pipeline


def calculate_document_providers(config: "Config") -> List[DocumentProvider]:
    """Normalizes ``Config.document_providers`` option into a list

    :raises ConfigurationError: when there are no providers
    """
    value = config.document_providers
    if isinstance(value, type) and issubclass(value, DocumentProvider):
        providers = [value()]
    elif isinstance(value, DocumentProvider):
        providers = [value]
    elif callable(value):
        providers = list(value(config))
    else:
        providers = list(value)

    if not providers:
        raise ConfigurationError(
            "No document providers found to process request"
        )
    return [
        provider() if isinstance(provider, type) else provider
        for provider in providers
    ]


def resolve_document(
    query: Query,
    providers: Sequence[DocumentProvider],
    config: "Config",
) -> Query:
    """Moves query into resolved or rejected state

    Not finding a document is an expected outcome, the query is rejected
    then, and the reason is reported to the client.
    """
    if not providers:
        raise ConfigurationError(
            "No document providers found to process request"
        )

    if query.input_error is not None:
        query.reject(query.input_error)
        return query

    for provider in providers:
        result = provider.process(query)
        if isinstance(result, Claimed):
            query.resolve(result.document, provider)
            return query

    if query.raw_document is None:
        query.reject(config.no_query_message)
    else:
        log.debug("Query was not claimed by %r", providers)
        query.reject(NO_PROVIDER_MESSAGE)
    return query
