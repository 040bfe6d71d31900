from graphql import ExecutionResult, GraphQLError, execute, validate

from gqlplug.merge import (
    MERGED_OPERATION_NAME,
    merge_operations,
    split_result,
)
from gqlplug.readers.graphql import OperationGetter, parse_query

from tests.base import SCHEMA


def operation(index, src, variables=None, name=None):
    document = parse_query(src)
    return (
        index,
        document,
        OperationGetter.get(document, name),
        variables or {},
    )


def merge(*operations):
    return merge_operations([operation(*args) for args in operations])


def root_aliases(merged):
    return [
        selection.alias.value
        for selection in merged.operation.selection_set.selections
    ]


def test_variables_are_namespaced():
    src = "query Item($id: ID!) { item(id: $id) { name } }"
    merged = merge((0, src, {"id": "foo"}), (1, src, {"id": "bar"}))

    assert merged.operation.name.value == MERGED_OPERATION_NAME
    assert [
        definition.variable.name.value
        for definition in merged.operation.variable_definitions
    ] == ["_b0_id", "_b1_id"]
    assert merged.variables == {"_b0_id": "foo", "_b1_id": "bar"}
    assert root_aliases(merged) == ["_b0_item", "_b1_item"]
    assert merged.side_table == {
        "_b0_item": (0, "item"),
        "_b1_item": (1, "item"),
    }
    assert merged.indices == [0, 1]


def test_original_documents_are_not_changed():
    index, document, op, variables = operation(
        0, "query Item($id: ID!) { item(id: $id) { name } }"
    )
    merge_operations([(index, document, op, variables)])
    (definition,) = op.variable_definitions
    assert definition.variable.name.value == "id"
    (field,) = op.selection_set.selections
    assert field.alias is None


def test_user_aliases_are_response_keys():
    merged = merge((3, '{ a: item(id: "foo") { name } items { id } }'))
    assert root_aliases(merged) == ["_b3_a", "_b3_items"]
    assert merged.side_table == {
        "_b3_a": (3, "a"),
        "_b3_items": (3, "items"),
    }


def test_fragments_are_namespaced():
    src = """
    query Item($id: ID!) { item(id: $id) { ...ItemName } }
    fragment ItemName on Item { name ...ItemId }
    fragment ItemId on Item { id }
    """
    merged = merge((0, src, {"id": "foo"}), (1, src, {"id": "bar"}))
    fragment_names = [
        definition.name.value for definition in merged.document.definitions[1:]
    ]
    assert fragment_names == [
        "_b0_ItemName",
        "_b0_ItemId",
        "_b1_ItemName",
        "_b1_ItemId",
    ]
    assert validate(SCHEMA, merged.document) == []


def test_root_fragments_are_inlined():
    src = """
    query { ...Root }
    fragment Root on Query { item(id: "foo") { name } }
    """
    merged = merge((0, src), (1, '{ item(id: "bar") { name } }'))
    assert merged.side_table == {
        "_b0_item": (0, "item"),
        "_b1_item": (1, "item"),
    }
    result = execute(
        SCHEMA, merged.document, operation_name=MERGED_OPERATION_NAME
    )
    assert [r.data for r in split_result(result, merged)] == [
        {"item": {"name": "Foo"}},
        {"item": {"name": "Bar"}},
    ]


def test_selected_operation_is_merged():
    src = "query A { items { id } } query B { items { name } }"
    merged = merge((0, src, None, "B"))
    (field,) = merged.operation.selection_set.selections
    (subfield,) = field.selection_set.selections
    assert subfield.name.value == "name"


def test_execute_and_split():
    src = "query Item($id: ID!) { item(id: $id) { name } }"
    merged = merge(
        (0, src, {"id": "foo"}),
        (1, "{ items { id } failing }"),
        (2, src, {"id": "bar"}),
    )
    result = execute(
        SCHEMA,
        merged.document,
        variable_values=merged.variables,
        operation_name=MERGED_OPERATION_NAME,
    )
    first, second, third = split_result(result, merged)

    assert first.data == {"item": {"name": "Foo"}}
    assert first.errors is None
    assert third.data == {"item": {"name": "Bar"}}
    assert second.data == {
        "items": [{"id": "foo"}, {"id": "bar"}],
        "failing": None,
    }
    (error,) = second.errors
    assert error.message == "Oops"
    assert error.path == ["failing"]
    assert error.locations[0].line == 1


def test_split_without_data():
    merged = merge((0, "{ items { id } }"), (1, "{ failing }"))
    error = GraphQLError("Operation failed")
    first, second = split_result(
        ExecutionResult(data=None, errors=[error]), merged
    )
    assert first.data is None
    assert first.errors == [error]
    assert second.data is None
    assert second.errors == [error]
