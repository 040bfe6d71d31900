from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterator,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from graphql import (
    DocumentNode,
    ExecutionResult,
    GraphQLError,
    GraphQLSchema,
    OperationDefinitionNode,
)

if TYPE_CHECKING:
    from gqlplug.cache import DocumentCache
    from gqlplug.extensions.base_extension import ExtensionsManager


@dataclass
class ExecutionContext:
    """State of one query while it flows through the pipeline phases"""

    schema: GraphQLSchema
    query_src: Optional[str] = None
    variables: Dict[str, Any] = field(default_factory=dict)
    context: Dict = field(default_factory=dict)
    root_value: Any = None
    graphql_document: Optional[DocumentNode] = None
    operation: Optional[OperationDefinitionNode] = None
    """Operation name from request's json operationName"""
    request_operation_name: Optional[str] = None
    http_method: str = "POST"
    middleware: Tuple[Any, ...] = ()
    validation_rules: Tuple[Any, ...] = ()
    cache: Optional["DocumentCache"] = None
    token_limit: Optional[int] = None
    """If errors is list, validation was performed"""
    errors: Optional[List[GraphQLError]] = None
    coerced_variables: Optional[Dict[str, Any]] = None
    result: Optional[ExecutionResult] = None
    subscription: Optional[AsyncIterator[ExecutionResult]] = None
    response: Optional[Dict[str, Any]] = None
    extensions: "ExtensionsManager" = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.extensions is None:
            from gqlplug.extensions.base_extension import ExtensionsManager

            self.extensions = ExtensionsManager(self, ())

    @property
    def operation_name(self) -> Optional[str]:
        if self.request_operation_name is not None:
            return self.request_operation_name

        if self.operation is None or self.operation.name is None:
            return None

        return self.operation.name.value

    @property
    def operation_type(self) -> Optional[str]:
        if self.operation is None:
            return None
        return self.operation.operation.value

    def add_errors(self, errors: Sequence[GraphQLError]) -> None:
        self.errors = (self.errors or []) + list(errors)


def create_execution_context(
    schema: GraphQLSchema,
    document: Union[str, DocumentNode, None] = None,
    variables: Optional[Dict] = None,
    operation_name: Optional[str] = None,
    context: Optional[Dict] = None,
    **kwargs: Any,
) -> ExecutionContext:
    query_src = None
    graphql_document = None
    if isinstance(document, str):
        query_src = document
    elif isinstance(document, DocumentNode):
        graphql_document = document

    return ExecutionContext(
        schema=schema,
        query_src=query_src,
        graphql_document=graphql_document,
        variables=variables or {},
        request_operation_name=operation_name,
        context=context if context is not None else {},
        **kwargs,
    )
