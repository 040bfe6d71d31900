"""
gqlplug.document_providers.compiled
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Persisted documents, looked up by a request parameter instead of being
sent as a text. Documents are parsed once, when the provider is created:

.. code-block:: python

    documents = CompiledDocumentProvider(
        {
            "item": "query Item($id: ID!) { item(id: $id) { name } }",
            "time": "{ currentTime }",
        },
        schema=schema,
    )
    config = Config(
        schema,
        document_providers=[documents, DefaultDocumentProvider()],
    )

Documents extracted by Apollo's ``persistgraphql`` tool can be loaded
with :py:meth:`CompiledDocumentProvider.from_extracted_queries`.

"""

import os
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Type,
    Union,
)

from graphql import (
    ASTValidationRule,
    DocumentNode,
    GraphQLError,
    GraphQLSchema,
    specified_rules,
    validate,
)

from gqlplug.codec import JSONCodec
from gqlplug.document_providers.base import (
    DECLINED,
    Claimed,
    DocumentProvider,
    ProcessResult,
)
from gqlplug.error import ConfigurationError
from gqlplug.pipeline import Parse, Pipeline, Validation
from gqlplug.query import Query
from gqlplug.readers.graphql import parse_query


def format_error(error: GraphQLError) -> str:
    if error.locations:
        return "On line {}: {}".format(error.locations[0].line, error.message)
    return error.message


def error_message(provider: str, key: str, messages: List[str]) -> str:
    problems = "\n".join("  - {}".format(message) for message in messages)
    return (
        "Could not compile document provider {}.\n\n"
        'The following problems were found processing document "{}":\n'
        "{}\n".format(provider, key, problems)
    )


class CompiledDocumentProvider(DocumentProvider):
    """Provides parsed documents by a request parameter

    Keys are coerced to strings to match request parameters.

    :param documents: mapping of document key to document source
    :param key_param: request parameter with the document key
    :param schema: when given, documents are also validated at once,
                   and :py:class:`gqlplug.pipeline.Validation` phase is
                   dropped for them
    :param validation_rules: extra graphql-core validation rules
    :raises ConfigurationError: when documents have problems
    """

    def __init__(
        self,
        documents: Mapping[Any, str],
        key_param: str = "id",
        schema: Optional[GraphQLSchema] = None,
        validation_rules: Sequence[Type[ASTValidationRule]] = (),
    ) -> None:
        self.key_param = key_param
        self.schema = schema
        self.validation_rules = tuple(validation_rules)
        self._sources: Dict[str, str] = {
            str(key): source for key, source in documents.items()
        }
        self._compiled: Dict[str, DocumentNode] = {
            key: self._compile(key, source)
            for key, source in self._sources.items()
        }

    @classmethod
    def from_extracted_queries(
        cls,
        queries: Union[str, os.PathLike, Mapping[str, Any]],
        **kwargs: Any,
    ) -> "CompiledDocumentProvider":
        """Loads ``extracted_queries.json`` produced by ``persistgraphql``

        The file maps document sources to their ids, so it is inverted.

        :param queries: path to the file or its decoded content
        """
        if not isinstance(queries, Mapping):
            with open(queries, "rb") as f:
                queries = JSONCodec().decode(f.read())
        return cls({key: src for src, key in queries.items()}, **kwargs)

    def _compile(self, key: str, source: str) -> DocumentNode:
        try:
            document = parse_query(source)
        except GraphQLError as e:
            raise ConfigurationError(
                error_message(type(self).__name__, key, [format_error(e)])
            )

        if self.schema is not None:
            errors = validate(
                self.schema,
                document,
                tuple(specified_rules) + self.validation_rules,
            )
            if errors:
                raise ConfigurationError(
                    error_message(
                        type(self).__name__,
                        key,
                        [format_error(e) for e in errors],
                    )
                )
        return document

    def get(
        self, key: Any, format: str = "compiled"
    ) -> Union[str, DocumentNode, None]:
        """Looks up a document

        :param key: document key
        :param format: ``"compiled"`` for a parsed document or ``"source"``
        """
        if format == "compiled":
            return self._compiled.get(str(key))
        elif format == "source":
            return self._sources.get(str(key))
        else:
            raise ValueError("Unknown document format: {!r}".format(format))

    def process(self, query: Query) -> ProcessResult:
        key = query.params.get(self.key_param)
        if key is None:
            return DECLINED

        document = self._compiled.get(str(key))
        if document is None:
            return DECLINED

        query.document_key = str(key)
        return Claimed(document)

    def pipeline(self, query: Query, pipeline: Pipeline) -> Pipeline:
        if self.schema is not None:
            return pipeline.without(Parse, Validation)
        return pipeline.without(Parse)

    def __repr__(self) -> str:
        return "<{} {} documents>".format(
            type(self).__name__, len(self._compiled)
        )
