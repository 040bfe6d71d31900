from unittest.mock import patch

import pytest

from graphql import GraphQLError, parse, specified_rules

from gqlplug.cache import (
    DOCUMENT_CACHE_HITS,
    DOCUMENT_CACHE_MISSES,
    DocumentCache,
)
from gqlplug.endpoint.graphql import GraphQLEndpoint

from tests.base import SCHEMA


@pytest.fixture(name="cache")
def cache_fixture():
    return DocumentCache(2)


def test_parse_is_cached(cache):
    with patch("gqlplug.readers.graphql.parse", wraps=parse) as mock_parse:
        first = cache.parse(SCHEMA, "{ items { id } }")
        second = cache.parse(SCHEMA, "{ items { id } }")
        assert first is second
        assert mock_parse.call_count == 1

        cache.parse(SCHEMA, "{ items { name } }")
        assert mock_parse.call_count == 2

    info = cache.cached_parser.cache_info()
    assert info.hits == 1
    assert info.misses == 2
    assert DOCUMENT_CACHE_HITS._value.get() == 1
    assert DOCUMENT_CACHE_MISSES._value.get() == 2


def test_validate_is_cached(cache):
    rules = tuple(specified_rules)
    errors = cache.validate(SCHEMA, "{ items { unknown } }", rules)
    assert [e.message for e in errors] == [
        "Cannot query field 'unknown' on type 'Item'."
    ]
    assert cache.validate(SCHEMA, "{ items { unknown } }", rules) == errors
    assert cache.cached_validator.cache_info().hits == 1

    # returned list can be changed by the caller
    errors.clear()
    assert len(cache.validate(SCHEMA, "{ items { unknown } }", rules)) == 1


def test_syntax_errors_are_not_cached(cache):
    for _ in range(2):
        with pytest.raises(GraphQLError):
            cache.parse(SCHEMA, "{ items { id }")
    assert cache.cached_parser.cache_info().currsize == 0


def test_parse_token_limit(cache):
    src = "{ items { id name } }"
    with pytest.raises(GraphQLError) as err:
        cache.parse(SCHEMA, src, 5)
    assert "Document contains more than 5 tokens" in err.value.message

    document = cache.parse(SCHEMA, src, 50)
    assert cache.parse(SCHEMA, src, 50) is document


def test_clear(cache):
    cache.parse(SCHEMA, "{ items { id } }")
    cache.validate(SCHEMA, "{ items { id } }")
    cache.clear()
    assert cache.cached_parser.cache_info().currsize == 0
    assert cache.cached_validator.cache_info().currsize == 0


def test_endpoint_with_cache():
    cache = DocumentCache()
    endpoint = GraphQLEndpoint(SCHEMA, document_cache=cache)

    with patch("gqlplug.readers.graphql.parse", wraps=parse) as mock_parse:
        for _ in range(3):
            result = endpoint.dispatch({"query": "{ items { id } }"})
            assert result == {
                "data": {"items": [{"id": "foo"}, {"id": "bar"}]}
            }
        assert mock_parse.call_count == 1

        result = endpoint.dispatch({"query": "{ items { name } }"})
        assert result == {
            "data": {"items": [{"name": "Foo"}, {"name": "Bar"}]}
        }
        assert mock_parse.call_count == 2

    assert cache.cached_validator.cache_info().hits == 2
