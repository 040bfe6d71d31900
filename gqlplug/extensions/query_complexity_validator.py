from typing import Any, Dict, FrozenSet, Iterator, Set, Type

from graphql import (
    FieldNode,
    FragmentSpreadNode,
    GraphQLError,
    GraphQLField,
    GraphQLInterfaceType,
    GraphQLNamedType,
    GraphQLObjectType,
    InlineFragmentNode,
    OperationDefinitionNode,
    SelectionSetNode,
    ValidationRule,
    get_named_type,
)
from graphql.execution.values import get_argument_values

from gqlplug.context import ExecutionContext
from gqlplug.extensions.base_extension import Extension


def field_complexity(
    field: GraphQLField, child_complexity: int, args: Dict[str, Any]
) -> int:
    """Complexity of one field

    Fields are configured with ``extensions={"complexity": ...}``: a number
    is the complexity of the field, a callable receives complexity of the
    selected subfields and field arguments. Other fields cost ``1`` plus
    their subfields.
    """
    complexity = (field.extensions or {}).get("complexity")
    if complexity is None:
        return 1 + child_complexity
    if callable(complexity):
        return complexity(child_complexity, args)
    return complexity


class QueryComplexityRule(ValidationRule):
    max_complexity: int

    def __init__(self, context: Any) -> None:
        super().__init__(context)
        self._reported: Set[int] = set()

    def enter_operation_definition(
        self, node: OperationDefinitionNode, *_args: Any
    ) -> None:
        root = self.context.schema.get_root_type(node.operation)
        if root is None:
            return

        complexity = self._selection_set(
            node.selection_set, root, frozenset()
        )
        if complexity > self.max_complexity:
            name = "Operation"
            if node.name is not None:
                name = "Operation {}".format(node.name.value)
            self.report_error(
                GraphQLError(self._message(name, complexity), node)
            )

    def _message(self, name: str, complexity: int) -> str:
        return "{} is too complex: complexity is {} and maximum is {}".format(
            name, complexity, self.max_complexity
        )

    def _type(
        self, name: str, default: GraphQLNamedType
    ) -> GraphQLNamedType:
        return self.context.schema.get_type(name) or default

    def _selection_set(
        self,
        obj: SelectionSetNode,
        parent_type: GraphQLNamedType,
        fragments: FrozenSet[str],
    ) -> int:
        total = 0
        for selection in obj.selections:
            if isinstance(selection, FieldNode):
                total += self._field(selection, parent_type, fragments)
            elif isinstance(selection, InlineFragmentNode):
                type_ = parent_type
                if selection.type_condition is not None:
                    type_ = self._type(
                        selection.type_condition.name.value, parent_type
                    )
                total += self._selection_set(
                    selection.selection_set, type_, fragments
                )
            elif isinstance(selection, FragmentSpreadNode):
                name = selection.name.value
                fragment = self.context.get_fragment(name)
                # cycles are reported by NoFragmentCyclesRule
                if fragment is None or name in fragments:
                    continue
                type_ = self._type(
                    fragment.type_condition.name.value, parent_type
                )
                total += self._selection_set(
                    fragment.selection_set, type_, fragments | {name}
                )
        return total

    def _field(
        self,
        obj: FieldNode,
        parent_type: GraphQLNamedType,
        fragments: FrozenSet[str],
    ) -> int:
        if not isinstance(
            parent_type, (GraphQLObjectType, GraphQLInterfaceType)
        ):
            return 0
        # unknown and introspection fields are not counted
        field = parent_type.fields.get(obj.name.value)
        if field is None:
            return 0

        child_complexity = 0
        if obj.selection_set is not None:
            child_complexity = self._selection_set(
                obj.selection_set, get_named_type(field.type), fragments
            )
        try:
            args = get_argument_values(field, obj)
        except GraphQLError:
            # variables are coerced after validation
            args = {}

        complexity = field_complexity(field, child_complexity, args)
        if complexity > self.max_complexity and id(obj) not in self._reported:
            self._reported.add(id(obj))
            self.report_error(
                GraphQLError(
                    self._message(
                        "Field {}".format(obj.name.value), complexity
                    ),
                    obj,
                )
            )
        return complexity


class QueryComplexityValidator(Extension):
    """Use this extension to limit the maximum allowed query complexity.

    Too complex operations are reported as validation errors and are not
    resolved.

    Example:

    .. code-block:: python

        GraphQLEndpoint(schema, extensions=[
            QueryComplexityValidator(max_complexity=100),
        ])

    """

    def __init__(self, max_complexity: int):
        self._rule: Type[QueryComplexityRule] = type(
            "QueryComplexityRule",
            (QueryComplexityRule,),
            {"max_complexity": max_complexity},
        )

    def on_validate(
        self, execution_context: ExecutionContext
    ) -> Iterator[None]:
        execution_context.validation_rules = (
            execution_context.validation_rules + (self._rule,)
        )
        yield
