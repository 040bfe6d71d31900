from gqlplug.document_providers.base import (
    DECLINED,
    Claimed,
    DocumentProvider,
    ProcessResult,
)
from gqlplug.query import Query


class DefaultDocumentProvider(DocumentProvider):
    """Claims every query which carries a document in the request"""

    def process(self, query: Query) -> ProcessResult:
        if query.raw_document is None:
            return DECLINED
        return Claimed(query.raw_document)
