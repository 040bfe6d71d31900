from functools import lru_cache
from typing import List, Optional, Sequence, Type

from graphql import (
    ASTValidationRule,
    DocumentNode,
    GraphQLError,
    GraphQLSchema,
    specified_rules,
    validate,
)
from prometheus_client import Gauge

from gqlplug.readers.graphql import parse_query

DOCUMENT_CACHE_HITS = Gauge(
    "gqlplug_document_cache_hits", "Document cache hits"
)
DOCUMENT_CACHE_MISSES = Gauge(
    "gqlplug_document_cache_misses", "Document cache misses"
)


def _parse(
    schema: GraphQLSchema, src: str, max_tokens: Optional[int]
) -> DocumentNode:
    return parse_query(src, max_tokens=max_tokens)


class DocumentCache:
    """LRU cache for parsed documents and their validation errors

    Entries are keyed by the schema object and the query source, so one
    cache can be shared by several endpoints. Syntax errors are not cached.

    Exposes two metrics:
    - gqlplug_document_cache_hits
    - gqlplug_document_cache_misses

    :param int maxsize: Maximum size of the cache
    """

    def __init__(self, maxsize: Optional[int] = 128):
        self.cached_parser = lru_cache(maxsize=maxsize)(_parse)
        self.cached_validator = lru_cache(maxsize=maxsize)(self._validate)

    def _validate(
        self,
        schema: GraphQLSchema,
        src: str,
        rules: Sequence[Type[ASTValidationRule]],
    ) -> List[GraphQLError]:
        return validate(schema, self.parse(schema, src), rules)

    def parse(
        self,
        schema: GraphQLSchema,
        src: str,
        max_tokens: Optional[int] = None,
    ) -> DocumentNode:
        document = self.cached_parser(schema, src, max_tokens)

        info = self.cached_parser.cache_info()
        DOCUMENT_CACHE_HITS.set(info.hits)
        DOCUMENT_CACHE_MISSES.set(info.misses)
        return document

    def validate(
        self,
        schema: GraphQLSchema,
        src: str,
        rules: Sequence[Type[ASTValidationRule]] = tuple(specified_rules),
    ) -> List[GraphQLError]:
        return list(self.cached_validator(schema, src, tuple(rules)))

    def clear(self) -> None:
        self.cached_parser.cache_clear()
        self.cached_validator.cache_clear()
