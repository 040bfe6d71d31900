from typing import Optional

__all__ = [
    "GraphQLPlugError",
    "InputError",
    "MethodError",
    "ConfigurationError",
]


class GraphQLPlugError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputError(GraphQLPlugError):
    """Malformed request: bad JSON, undecodable variables, no document"""


class MethodError(GraphQLPlugError):
    """Operation type is not allowed for the HTTP method used"""

    def __init__(
        self, message: str, operation_type: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.operation_type = operation_type


class ConfigurationError(GraphQLPlugError):
    """Deployment mistake, never converted into a response"""
