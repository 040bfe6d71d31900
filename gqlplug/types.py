"""
gqlplug.types
~~~~~~~~~~~~~

File uploads support. Files of a ``multipart/form-data`` request are
available to resolvers through arguments of the :py:data:`Upload` type,
the argument value is a name of the file part:

.. code-block:: python

    # curl -F query='mutation { upload(file: "photo") }' -F photo=@a.png
    def resolve_upload(root, info, file):
        return file.filename

"""

from typing import Any, Callable, Mapping, Optional

from graphql import (
    GraphQLError,
    GraphQLList,
    GraphQLNonNull,
    GraphQLResolveInfo,
    GraphQLScalarType,
    GraphQLType,
    ValueNode,
    value_from_ast_untyped,
)

UPLOADS_KEY = "__gqlplug__"


def _parse_literal(
    value_node: ValueNode, variables: Optional[Mapping[str, Any]] = None
) -> Any:
    return value_from_ast_untyped(value_node, variables)


Upload = GraphQLScalarType(
    name="Upload",
    description=(
        "Represents an uploaded file, the value is a name of the"
        " multipart/form-data part containing the file"
    ),
    serialize=lambda value: None,
    parse_value=lambda value: value,
    parse_literal=_parse_literal,
)


def _is_upload(type_: GraphQLType) -> bool:
    while isinstance(type_, (GraphQLNonNull, GraphQLList)):
        type_ = type_.of_type
    return type_ is Upload


def get_uploads(context: Any) -> Mapping[str, Any]:
    if not isinstance(context, Mapping):
        return {}
    return context.get(UPLOADS_KEY, {}).get("uploads", {})


class UploadMiddleware:
    """Replaces names of file parts with :py:class:`gqlplug.http.Upload`
    objects in arguments of the :py:data:`Upload` type
    """

    def resolve(
        self,
        next_: Callable,
        root: Any,
        info: GraphQLResolveInfo,
        **args: Any,
    ) -> Any:
        if args:
            field_def = info.parent_type.fields[info.field_name]
            uploads = None
            for name, arg_def in field_def.args.items():
                if name not in args or not _is_upload(arg_def.type):
                    continue
                if uploads is None:
                    uploads = get_uploads(info.context)
                args[name] = self._lookup(uploads, name, args[name])
        return next_(root, info, **args)

    def _lookup(self, uploads: Mapping[str, Any], arg: str, value: Any) -> Any:
        if isinstance(value, list):
            return [self._lookup(uploads, arg, item) for item in value]
        if not isinstance(value, str):
            return value
        try:
            return uploads[value]
        except KeyError:
            raise GraphQLError(
                'Argument "{}" has invalid value "{}".'.format(arg, value)
            )
