"""
gqlplug.merge
~~~~~~~~~~~~~

Merges operations of a batch into one operation, so resolvers see root
fields of all queries during one execution and can load data for them at
once. For example these two queries:

.. code-block:: graphql

    query Item($id: ID!) { item(id: $id) { ...Name } }
    fragment Name on Item { name }

    query Item($id: ID!) { item(id: $id) { name } }

are merged into:

.. code-block:: graphql

    query __merged_batch_operation__($_b0_id: ID!, $_b1_id: ID!) {
      _b0_item: item(id: $_b0_id) { ..._b0_Name }
      _b1_item: item(id: $_b1_id) { name }
    }
    fragment _b0_Name on Item { name }

Variables and fragments are renamed within each query, root fields get
aliases, which are used to split the result back by queries.

"""

import logging
from copy import copy
from dataclasses import dataclass, field
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
)

from graphql import ExecutionResult, GraphQLError
from graphql.language import ast

from gqlplug.readers.graphql import FragmentsCollector

log = logging.getLogger(__name__)

MERGED_OPERATION_NAME = "__merged_batch_operation__"


def batch_prefix(index: int) -> str:
    return "_b{}_".format(index)


class NodeTransformer:
    """Returns transformed copies of nodes, original nodes are not changed"""

    def visit(self, obj: ast.Node) -> ast.Node:
        visit_method = getattr(self, "visit_{}".format(obj.kind), None)
        if visit_method is None:
            return self.generic_visit(obj)
        return visit_method(obj)

    def _visit_value(self, value: Any) -> Any:
        if isinstance(value, ast.Node):
            return self.visit(value)
        if isinstance(value, (list, tuple)):
            return type(value)(self._visit_value(i) for i in value)
        return value

    def generic_visit(self, obj: ast.Node) -> ast.Node:
        obj = copy(obj)
        for key in obj.keys:
            if key == "loc":
                continue
            value = getattr(obj, key, None)
            setattr(obj, key, self._visit_value(value))
        return obj


def _rename(name: ast.NameNode, prefix: str) -> ast.NameNode:
    return ast.NameNode(value=prefix + name.value, loc=name.loc)


class Namespacer(NodeTransformer):
    """Prefixes names of variables and fragments"""

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix

    def visit_variable(self, obj: ast.VariableNode) -> ast.VariableNode:
        obj = copy(obj)
        obj.name = _rename(obj.name, self.prefix)
        return obj

    def visit_fragment_spread(
        self, obj: ast.FragmentSpreadNode
    ) -> ast.FragmentSpreadNode:
        obj = self.generic_visit(obj)  # type: ignore[assignment]
        obj.name = _rename(obj.name, self.prefix)
        return obj

    def visit_fragment_definition(
        self, obj: ast.FragmentDefinitionNode
    ) -> ast.FragmentDefinitionNode:
        obj = self.generic_visit(obj)  # type: ignore[assignment]
        obj.name = _rename(obj.name, self.prefix)
        return obj


class RootFieldsTagger:
    """Aliases root fields and inlines root fragments

    Every root field gets an alias with the query prefix, so its response
    key is unique in the merged operation. The alias is recorded with the
    query index and the original response key.
    """

    def __init__(
        self,
        index: int,
        fragments: Dict[str, ast.FragmentDefinitionNode],
        side_table: Dict[str, Tuple[int, str]],
    ) -> None:
        self.index = index
        self.prefix = batch_prefix(index)
        self.fragments = fragments
        self.side_table = side_table

    def tag(self, obj: ast.SelectionSetNode) -> ast.SelectionSetNode:
        selections = []
        for selection in obj.selections:
            if isinstance(selection, ast.FieldNode):
                selections.append(self._tag_field(selection))
            elif isinstance(selection, ast.FragmentSpreadNode):
                selections.append(self._inline(selection))
            elif isinstance(selection, ast.InlineFragmentNode):
                selection = copy(selection)
                selection.selection_set = self.tag(selection.selection_set)
                selections.append(selection)
            else:
                raise TypeError(
                    "Unexpected selection: {!r}".format(selection)
                )
        return ast.SelectionSetNode(selections=selections, loc=obj.loc)

    def _tag_field(self, obj: ast.FieldNode) -> ast.FieldNode:
        response_key = (obj.alias or obj.name).value
        alias = self.prefix + response_key
        self.side_table[alias] = (self.index, response_key)
        obj = copy(obj)
        obj.alias = ast.NameNode(value=alias)
        return obj

    def _inline(self, obj: ast.FragmentSpreadNode) -> ast.InlineFragmentNode:
        fragment = self.fragments[obj.name.value]
        return ast.InlineFragmentNode(
            type_condition=fragment.type_condition,
            directives=obj.directives,
            selection_set=self.tag(fragment.selection_set),
            loc=obj.loc,
        )


@dataclass
class MergedOperation:
    document: ast.DocumentNode
    operation: ast.OperationDefinitionNode
    #: raw variables of all queries with prefixed names
    variables: Dict[str, Any] = field(default_factory=dict)
    #: alias -> (query index, original response key)
    side_table: Dict[str, Tuple[int, str]] = field(default_factory=dict)
    indices: List[int] = field(default_factory=list)


def merge_operations(
    operations: Sequence[
        Tuple[int, ast.DocumentNode, ast.OperationDefinitionNode, Dict]
    ],
) -> MergedOperation:
    """Merges query operations into one operation

    :param operations: tuples of query index, document, selected operation
                       and raw variables
    :return: :py:class:`MergedOperation`
    """
    variable_definitions: List[ast.VariableDefinitionNode] = []
    selections: List[ast.SelectionNode] = []
    fragments: List[ast.FragmentDefinitionNode] = []
    variables: Dict[str, Any] = {}
    side_table: Dict[str, Tuple[int, str]] = {}
    indices = []

    for index, document, operation, raw_variables in operations:
        assert operation.operation is ast.OperationType.QUERY, operation
        prefix = batch_prefix(index)
        namespacer = Namespacer(prefix)

        renamed = {
            name: namespacer.visit(fragment)
            for name, fragment in FragmentsCollector.collect(document).items()
        }
        query_fragments = {
            fragment.name.value: fragment for fragment in renamed.values()
        }
        fragments.extend(query_fragments.values())

        operation = namespacer.visit(operation)  # type: ignore[assignment]
        variable_definitions.extend(operation.variable_definitions or ())

        tagger = RootFieldsTagger(index, query_fragments, side_table)
        selections.extend(tagger.tag(operation.selection_set).selections)

        for name, value in raw_variables.items():
            variables[prefix + name] = value
        indices.append(index)

    merged = ast.OperationDefinitionNode(
        operation=ast.OperationType.QUERY,
        name=ast.NameNode(value=MERGED_OPERATION_NAME),
        variable_definitions=variable_definitions,
        directives=[],
        selection_set=ast.SelectionSetNode(selections=selections),
    )
    document = ast.DocumentNode(definitions=[merged, *fragments])
    return MergedOperation(
        document=document,
        operation=merged,
        variables=variables,
        side_table=side_table,
        indices=indices,
    )


def _restore_error(
    error: GraphQLError, path: Optional[List[Any]]
) -> GraphQLError:
    return GraphQLError(
        error.message,
        nodes=error.nodes,
        source=error.source,
        positions=error.positions,
        path=path,
        original_error=error.original_error,
        extensions=error.extensions,
    )


def split_result(
    result: ExecutionResult, merged: MergedOperation
) -> List[ExecutionResult]:
    """Splits result of the merged operation by queries

    Results are returned in the order of ``merged.indices``. Response keys
    and error paths are restored, errors without a path are reported for
    every query.
    """
    data: Dict[int, Optional[Dict[str, Any]]] = {
        index: ({} if result.data is not None else None)
        for index in merged.indices
    }
    errors: Dict[int, List[GraphQLError]] = {
        index: [] for index in merged.indices
    }

    for alias, value in (result.data or {}).items():
        index, response_key = merged.side_table[alias]
        query_data = data[index]
        assert query_data is not None
        query_data[response_key] = value

    for error in result.errors or ():
        if error.path and error.path[0] in merged.side_table:
            index, response_key = merged.side_table[error.path[0]]
            errors[index].append(
                _restore_error(error, [response_key, *error.path[1:]])
            )
        else:
            for index in merged.indices:
                errors[index].append(error)

    return [
        ExecutionResult(data=data[index], errors=errors[index] or None)
        for index in merged.indices
    ]
