from contextvars import ContextVar

import faker
import pytest

from prometheus_client import REGISTRY, Summary

from gqlplug.endpoint.graphql import AsyncGraphQLEndpoint, GraphQLEndpoint
from gqlplug.extensions.prometheus import PrometheusMetrics
from gqlplug.telemetry.prometheus import FieldMetrics

from tests.base import SCHEMA, ItemLoader


fake = faker.Faker()


@pytest.fixture(name="graph_name")
def graph_name_fixture():
    return fake.pystr()


@pytest.fixture(name="sample_count")
def sample_count_fixture(graph_name):
    def sample_count(type_, field):
        return REGISTRY.get_sample_value(
            "graphql_field_time_count",
            dict(graph=graph_name, type=type_, field=field),
        )

    return sample_count


def test_simple_sync(graph_name, sample_count):
    endpoint = GraphQLEndpoint(
        SCHEMA, extensions=[PrometheusMetrics(graph_name)]
    )

    assert sample_count("Query", "items") is None
    assert sample_count("Item", "name") is None

    result = endpoint.dispatch({"query": "{ items { name } }"})
    assert result == {"data": {"items": [{"name": "Foo"}, {"name": "Bar"}]}}

    assert sample_count("Query", "items") == 1.0
    assert sample_count("Item", "name") == 2.0

    result = endpoint.dispatch({"query": "{ __schema { queryType { name } } }"})
    assert result == {"data": {"__schema": {"queryType": {"name": "Query"}}}}
    assert sample_count("__Schema", "queryType") is None


def test_batch(graph_name, sample_count):
    endpoint = GraphQLEndpoint(
        SCHEMA, extensions=[PrometheusMetrics(graph_name)]
    )
    endpoint.dispatch(
        [
            {"query": '{ item(id: "foo") { name } }'},
            {"query": '{ item(id: "bar") { name } }'},
        ]
    )
    assert sample_count("Query", "item") == 2.0
    assert sample_count("Item", "name") == 2.0


@pytest.mark.asyncio
async def test_simple_async(graph_name, sample_count):
    endpoint = AsyncGraphQLEndpoint(
        SCHEMA, extensions=[PrometheusMetrics(graph_name)]
    )

    assert sample_count("Query", "asyncItem") is None

    result = await endpoint.dispatch(
        {"query": '{ asyncItem(id: "foo") { name } }'},
        context={"loader": ItemLoader()},
    )
    assert result == {"data": {"asyncItem": {"name": "Foo"}}}

    assert sample_count("Query", "asyncItem") == 1.0
    assert sample_count("Item", "name") == 1.0


def test_custom_metric_and_labels(graph_name):
    metric = Summary(
        "custom_graphql_field_time_" + graph_name.lower(),
        "Custom GraphQL field time",
        ["graph", "type", "field", "user"],
    )
    ctx_var = ContextVar("ctx")

    class UserFieldMetrics(FieldMetrics):
        def get_labels(self, graph_name, type_name, field_name, ctx):
            return [graph_name, type_name, field_name, ctx["user"]]

    extension = PrometheusMetrics(graph_name, metric=metric, ctx_var=ctx_var)
    extension._middleware = UserFieldMetrics(
        graph_name, metric=metric, ctx_var=ctx_var
    )
    endpoint = GraphQLEndpoint(SCHEMA, extensions=[extension])
    endpoint.dispatch({"query": "{ items { id } }"}, context={"user": "bob"})

    assert REGISTRY.get_sample_value(
        "custom_graphql_field_time_{}_count".format(graph_name.lower()),
        dict(graph=graph_name, type="Query", field="items", user="bob"),
    ) == 1.0
