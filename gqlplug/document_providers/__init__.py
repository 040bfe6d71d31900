from .base import (
    DECLINED,
    Claimed,
    DocumentProvider,
    calculate_document_providers,
    resolve_document,
)
from .compiled import CompiledDocumentProvider
from .default import DefaultDocumentProvider

__all__ = [
    "DECLINED",
    "Claimed",
    "DocumentProvider",
    "DefaultDocumentProvider",
    "CompiledDocumentProvider",
    "calculate_document_providers",
    "resolve_document",
]
