"""
gqlplug.readers.graphql
~~~~~~~~~~~~~~~~~~~~~~~

Helpers to read GraphQL documents parsed by graphql-core.

"""

from typing import Any, Dict, List, Optional

from graphql import GraphQLError
from graphql.language import ast
from graphql.language.parser import parse


def parse_query(
    src: str, max_tokens: Optional[int] = None
) -> ast.DocumentNode:
    """Parses a query into GraphQL ast

    :param str src: GraphQL query string
    :param int max_tokens: documents with more tokens are rejected with
                           a syntax error before they are fully parsed
    :return: :py:class:`ast.DocumentNode`
    """
    return parse(src, max_tokens=max_tokens)


class NodeVisitor:
    def visit(self, obj: ast.Node) -> Any:
        visit_method = getattr(self, "visit_{}".format(obj.kind), None)
        if visit_method is None:
            raise NotImplementedError(
                "Not implemented node type: {!r}".format(obj)
            )
        return visit_method(obj)

    def visit_document(self, obj: ast.DocumentNode) -> None:
        for definition in obj.definitions:
            # type system definitions are reported by validation
            if isinstance(definition, ast.ExecutableDefinitionNode):
                self.visit(definition)

    def visit_operation_definition(
        self, obj: ast.OperationDefinitionNode
    ) -> Any:
        self.visit(obj.selection_set)

    def visit_fragment_definition(self, obj: ast.FragmentDefinitionNode) -> Any:
        self.visit(obj.selection_set)

    def visit_selection_set(self, obj: ast.SelectionSetNode) -> Any:
        for i in obj.selections:
            self.visit(i)

    def visit_field(self, obj: ast.FieldNode) -> Any:
        if obj.selection_set is not None:
            self.visit(obj.selection_set)

    def visit_fragment_spread(self, obj: ast.FragmentSpreadNode) -> Any:
        pass

    def visit_inline_fragment(self, obj: ast.InlineFragmentNode) -> Any:
        self.visit(obj.selection_set)


class OperationGetter(NodeVisitor):
    """Selects the operation to run, messages match graphql-core's"""

    def __init__(self, operation_name: Optional[str] = None):
        self._operations: List[ast.OperationDefinitionNode] = []
        self._operation_name = operation_name

    @classmethod
    def get(
        cls, doc: ast.DocumentNode, operation_name: Optional[str] = None
    ) -> ast.OperationDefinitionNode:
        self = cls(operation_name=operation_name)
        self.visit(doc)
        if self._operation_name is None:
            if len(self._operations) > 1:
                raise GraphQLError(
                    "Must provide operation name"
                    " if query contains multiple operations."
                )
            if not self._operations:
                raise GraphQLError("Must provide an operation.")
            return self._operations[0]

        for operation in self._operations:
            if (
                operation.name is not None
                and operation.name.value == self._operation_name
            ):
                return operation
        raise GraphQLError(
            "Unknown operation named '{}'.".format(self._operation_name)
        )

    def visit_fragment_definition(
        self, obj: ast.FragmentDefinitionNode
    ) -> None:
        pass  # skip visit here

    def visit_operation_definition(
        self, obj: ast.OperationDefinitionNode
    ) -> None:
        self._operations.append(obj)


class FragmentsCollector(NodeVisitor):
    def __init__(self) -> None:
        self.fragments_map: Dict[str, ast.FragmentDefinitionNode] = {}

    @classmethod
    def collect(
        cls, doc: ast.DocumentNode
    ) -> Dict[str, ast.FragmentDefinitionNode]:
        self = cls()
        self.visit(doc)
        return self.fragments_map

    def visit_operation_definition(
        self, obj: ast.OperationDefinitionNode
    ) -> None:
        pass  # not interested in operations here

    def visit_fragment_definition(
        self, obj: ast.FragmentDefinitionNode
    ) -> None:
        # duplicates are reported by validation, first one wins
        self.fragments_map.setdefault(obj.name.value, obj)
