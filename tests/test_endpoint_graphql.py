import json
import logging
from decimal import Decimal

import pytest

from graphql import (
    GraphQLField,
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLSchema,
)

from gqlplug.codec import JSONCodec
from gqlplug.config import Config
from gqlplug.endpoint.graphql import AsyncGraphQLEndpoint, GraphQLEndpoint
from gqlplug.error import ConfigurationError
from gqlplug.http import HTTPRequest, assign_context, put_options
from gqlplug.pipeline import Parse, Phase, default_pipeline
from gqlplug.response import INTERNAL_ERROR_MESSAGE

from tests.base import SCHEMA, ItemLoader


class Boom(Phase):
    def run(self, execution_context):
        raise ValueError("boom")


def boom_pipeline(config, http_method):
    return default_pipeline(config, http_method).insert_after(Parse, Boom())


def get(query, **params):
    return HTTPRequest(method="GET", query={"query": query, **params})


def post(payload, **kwargs):
    return HTTPRequest(
        method="POST",
        content_type="application/json",
        body=json.dumps(payload).encode("utf-8"),
        **kwargs,
    )


def decode(response):
    return json.loads(response.body)


@pytest.fixture(name="endpoint")
def endpoint_fixture():
    return GraphQLEndpoint(SCHEMA)


@pytest.fixture(name="async_endpoint")
def async_endpoint_fixture():
    return AsyncGraphQLEndpoint(SCHEMA)


def test_endpoint(endpoint):
    result = endpoint.dispatch({"query": '{ item(id: "foo") { name } }'})
    assert result == {"data": {"item": {"name": "Foo"}}}


def test_dispatch_context(endpoint):
    result = endpoint.dispatch(
        {"query": '{ contextValue(key: "answer") }'},
        context={"answer": "42"},
    )
    assert result == {"data": {"contextValue": "42"}}


def test_dispatch_errors(endpoint):
    assert endpoint.dispatch({}) == {
        "errors": [{"message": "No query document supplied"}]
    }
    assert endpoint.dispatch(
        {"query": 'mutation { addItem(name: "Baz") { id } }'}
    ) == {"data": {"addItem": {"id": "baz"}}}


def test_get_query(endpoint):
    response = endpoint.handle(get('{ item(id: "foo") { name } }'))
    assert response.status == 200
    assert response.content_type == "application/json"
    assert decode(response) == {"data": {"item": {"name": "Foo"}}}


def test_post_query(endpoint):
    response = endpoint.handle(
        post(
            {
                "query": "query Item($id: ID!) { item(id: $id) { name } }",
                "variables": {"id": "bar"},
                "operationName": "Item",
            }
        )
    )
    assert response.status == 200
    assert decode(response) == {"data": {"item": {"name": "Bar"}}}


def test_get_mutation(endpoint):
    response = endpoint.handle(get('mutation { addItem(name: "Baz") { id } }'))
    assert response.status == 405
    assert response.content_type == "application/json"
    assert decode(response) == {
        "errors": [
            {"message": "Can only perform a mutation from a POST request"}
        ]
    }


def test_get_mutation_text_error():
    endpoint = GraphQLEndpoint(SCHEMA, method_error_format="text")
    response = endpoint.handle(get('mutation { addItem(name: "Baz") { id } }'))
    assert response.status == 405
    assert response.content_type == "text/plain; charset=utf-8"
    assert response.body == b"Can only perform a mutation from a POST request"


def test_get_selects_operation_by_name(endpoint):
    src = (
        '{ item(id: "foo") { name } } '
        'mutation Add { addItem(name: "Baz") { id } }'
    )
    response = endpoint.handle(get(src, operationName="Add"))
    assert response.status == 405


def test_post_mutation(endpoint):
    response = endpoint.handle(
        post({"query": 'mutation { addItem(name: "Baz") { name } }'})
    )
    assert response.status == 200
    assert decode(response) == {"data": {"addItem": {"name": "Baz"}}}


def test_validation_errors(endpoint):
    response = endpoint.handle(post({"query": "{ items { unknown } }"}))
    assert response.status == 200
    assert decode(response) == {
        "errors": [
            {
                "message": "Cannot query field 'unknown' on type 'Item'.",
                "locations": [{"line": 1, "column": 11}],
            }
        ]
    }


def test_validation_error_status():
    endpoint = GraphQLEndpoint(SCHEMA, validation_error_status=400)
    response = endpoint.handle(post({"query": "{ items { unknown } }"}))
    assert response.status == 400

    # field errors are reported with data
    response = endpoint.handle(post({"query": "{ failing }"}))
    assert response.status == 200
    result = decode(response)
    assert result["data"] == {"failing": None}
    assert result["errors"][0]["message"] == "Oops"


def test_no_query(endpoint):
    response = endpoint.handle(post({"variables": {}}))
    assert response.status == 400
    assert decode(response) == {
        "errors": [{"message": "No query document supplied"}]
    }


def test_invalid_json(endpoint):
    response = endpoint.handle(
        HTTPRequest(content_type="application/json", body=b'{"query": x}')
    )
    assert response.status == 400
    assert decode(response) == {
        "errors": [
            {
                "message": (
                    "Could not parse JSON. Invalid token `x` at position 10"
                )
            }
        ]
    }


def test_invalid_variables(endpoint):
    response = endpoint.handle(
        get("{ items { id } }", variables="{invalid")
    )
    assert response.status == 400
    assert decode(response) == {
        "errors": [{"message": "The variable values could not be decoded"}]
    }


def test_internal_error(caplog):
    endpoint = GraphQLEndpoint(SCHEMA, pipeline=boom_pipeline)
    with caplog.at_level(logging.ERROR, logger="gqlplug.endpoint.graphql"):
        response = endpoint.handle(post({"query": "{ items { id } }"}))
    assert response.status == 500
    assert decode(response) == {
        "errors": [{"message": INTERNAL_ERROR_MESSAGE}]
    }
    assert "Failed to handle GraphQL request" in caplog.text


def money_schema():
    money = GraphQLScalarType("Money", serialize=Decimal)
    return GraphQLSchema(
        GraphQLObjectType(
            "Query",
            {"price": GraphQLField(money, resolve=lambda *_: "9.99")},
        )
    )


def test_unserializable_result(caplog):
    endpoint = GraphQLEndpoint(money_schema())
    with caplog.at_level(logging.ERROR, logger="gqlplug.endpoint.graphql"):
        response = endpoint.handle(post({"query": "{ price }"}))
    assert response.status == 500
    assert response.content_type == "application/json"
    assert decode(response) == {
        "errors": [{"message": INTERNAL_ERROR_MESSAGE}]
    }
    assert "Failed to encode GraphQL response" in caplog.text


def test_failing_before_send():
    def before_send(response, execution_contexts):
        raise RuntimeError("header store is down")

    endpoint = GraphQLEndpoint(SCHEMA, before_send=before_send)
    response = endpoint.handle(post({"query": "{ items { id } }"}))
    assert response.status == 500
    assert decode(response) == {
        "errors": [{"message": INTERNAL_ERROR_MESSAGE}]
    }


def test_async_resolvers_in_sync_endpoint(endpoint):
    request = assign_context(
        post({"query": '{ asyncItem(id: "foo") { name } }'}),
        loader=ItemLoader(),
    )
    response = endpoint.handle(request)
    assert response.status == 500


def test_configuration_errors_are_raised(endpoint):
    request = put_options(post({"query": "{ items { id } }"}), unknown=1)
    with pytest.raises(ConfigurationError):
        endpoint.handle(request)


def test_subscription_over_http(endpoint):
    response = endpoint.handle(
        post({"query": "subscription { itemAdded { name } }"})
    )
    assert response.status == 405
    assert decode(response) == {
        "errors": [{"message": "Subscriptions cannot be run over HTTP."}]
    }


def test_request_context(endpoint):
    request = assign_context(
        post({"query": '{ contextValue(key: "user") }'}), user="alice"
    )
    response = endpoint.handle(request)
    assert decode(response) == {"data": {"contextValue": "alice"}}


def test_root_value():
    endpoint = GraphQLEndpoint(
        SCHEMA, root_value={"field_on_root_value": "shared"}
    )
    response = endpoint.handle(post({"query": "{ fieldOnRootValue }"}))
    assert decode(response) == {"data": {"fieldOnRootValue": "shared"}}

    request = put_options(
        post({"query": "{ fieldOnRootValue }"}),
        root_value={"field_on_root_value": "request"},
    )
    response = endpoint.handle(request)
    assert decode(response) == {"data": {"fieldOnRootValue": "request"}}


def test_before_send():
    seen = []

    def before_send(response, execution_contexts):
        seen.append([ec.operation_name for ec in execution_contexts])
        response.headers["X-Operation"] = "done"
        return response

    endpoint = GraphQLEndpoint(SCHEMA, before_send=before_send)
    response = endpoint.handle(
        post({"query": "query Items { items { id } }"})
    )
    assert response.status == 200
    assert response.headers == {"X-Operation": "done"}

    response = endpoint.handle(post({}))
    assert response.status == 400
    assert response.headers == {"X-Operation": "done"}
    assert seen == [["Items"], []]


def test_endpoint_from_config():
    config = Config(SCHEMA, context={"answer": "42"})
    endpoint = GraphQLEndpoint(config, validation_error_status=400)
    assert endpoint.config.validation_error_status == 400
    assert endpoint.dispatch({"query": '{ contextValue(key: "answer") }'}) == {
        "data": {"contextValue": "42"}
    }
    # shared config is not changed
    assert config.validation_error_status == 200


def test_token_limit():
    endpoint = GraphQLEndpoint(SCHEMA, token_limit=10)
    response = endpoint.handle(post({"query": "{ items { id } }"}))
    assert decode(response) == {
        "data": {"items": [{"id": "foo"}, {"id": "bar"}]}
    }

    response = endpoint.handle(
        post({"query": "{ items { id name } a: items { id } }"})
    )
    assert response.status == 200
    (error,) = decode(response)["errors"]
    assert error["message"].startswith(
        "Syntax Error: Document contains more than 10 tokens."
    )


def test_custom_serializer():
    class Codec(JSONCodec):
        def encode(self, value):
            return b"custom:" + super().encode(value)

    endpoint = GraphQLEndpoint(
        SCHEMA, serializer=Codec(), content_type="application/x-custom"
    )
    response = endpoint.handle(post({"query": "{ items { id } }"}))
    assert response.content_type == "application/x-custom"
    assert response.body.startswith(b'custom:{"data":')


@pytest.mark.asyncio
async def test_async_endpoint(async_endpoint):
    result = await async_endpoint.dispatch(
        {"query": '{ asyncItem(id: "foo") { name } }'},
        context={"loader": ItemLoader()},
    )
    assert result == {"data": {"asyncItem": {"name": "Foo"}}}


@pytest.mark.asyncio
async def test_async_handle(async_endpoint):
    request = assign_context(
        get('{ asyncItem(id: "bar") { name } }'), loader=ItemLoader()
    )
    response = await async_endpoint.handle(request)
    assert response.status == 200
    assert decode(response) == {"data": {"asyncItem": {"name": "Bar"}}}


@pytest.mark.asyncio
async def test_async_get_mutation(async_endpoint):
    response = await async_endpoint.handle(
        get('mutation { addItem(name: "Baz") { id } }')
    )
    assert response.status == 405


@pytest.mark.asyncio
async def test_async_subscription_without_pubsub(async_endpoint):
    response = await async_endpoint.handle(
        post({"query": "subscription { itemAdded { name } }"})
    )
    assert response.status == 405
    assert decode(response) == {
        "errors": [{"message": "Subscriptions cannot be run over HTTP."}]
    }


@pytest.mark.asyncio
async def test_async_internal_error():
    endpoint = AsyncGraphQLEndpoint(SCHEMA, pipeline=boom_pipeline)
    response = await endpoint.handle(post({"query": "{ items { id } }"}))
    assert response.status == 500


@pytest.mark.asyncio
async def test_async_unserializable_result():
    endpoint = AsyncGraphQLEndpoint(money_schema())
    response = await endpoint.handle(post({"query": "{ price }"}))
    assert response.status == 500
    assert decode(response) == {
        "errors": [{"message": INTERNAL_ERROR_MESSAGE}]
    }
