import asyncio
from itertools import zip_longest

from graphql import (
    GraphQLArgument,
    GraphQLField,
    GraphQLID,
    GraphQLList,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLSchema,
    GraphQLString,
)

from gqlplug.types import Upload


_missing = type('<missing>', (object,), {})


def result_match(result, value, path=None):
    path = [] if path is None else path
    if isinstance(value, dict):
        for k, v in value.items():
            ok, sp, sr, sv = result_match(
                result.get(k, _missing), v, path + [k]
            )
            if not ok:
                return ok, sp, sr, sv
    elif isinstance(value, (list, tuple)):
        pairs = zip_longest(result, value, fillvalue=_missing)
        for i, (v1, v2) in enumerate(pairs):
            ok, sp, sr, sv = result_match(v1, v2, path + [i])
            if not ok:
                return ok, sp, sr, sv
    elif result != value:
        return False, path, result, value

    return True, None, None, None


def check_result(result, value):
    ok, path, subres, subval = result_match(result, value)
    if not ok:
        path_str = 'result' + ''.join('[{!r}]'.format(v) for v in path)
        msg = ('Result mismatch, first different element '
               'path: {}, value: {!r}, expected: {!r}'
               .format(path_str, subres, subval))
        raise AssertionError(msg)


ITEMS = {
    "foo": {"id": "foo", "name": "Foo"},
    "bar": {"id": "bar", "name": "Bar"},
}


class ItemLoader:
    """Loads items requested during one loop iteration at once"""

    def __init__(self):
        self.calls = []
        self._pending = {}

    def load(self, key):
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        if not self._pending:
            loop.call_soon(self._dispatch)
        self._pending.setdefault(key, []).append(future)
        return future

    def _dispatch(self):
        pending, self._pending = self._pending, {}
        self.calls.append(sorted(pending))
        for key, futures in pending.items():
            for future in futures:
                future.set_result(ITEMS.get(key))


def resolve_item(root, info, id):
    return ITEMS.get(id)


async def resolve_async_item(root, info, id):
    return await info.context["loader"].load(id)


def resolve_upload_test(root, info, fileA, fileB=None):
    return "file_a: {}, file_b: {}".format(
        fileA.filename, fileB.filename if fileB is not None else None
    )


def resolve_failing(root, info):
    raise ValueError("Oops")


def resolve_add_item(root, info, name):
    item = {"id": name.lower(), "name": name}
    pubsub = info.context.get("pubsub")
    if pubsub is not None:
        pubsub.publish("item_added", item)
    return item


def subscribe_item_added(root, info):
    return info.context["pubsub"].subscribe("item_added")


ItemType = GraphQLObjectType(
    "Item",
    {
        "id": GraphQLField(GraphQLNonNull(GraphQLID)),
        "name": GraphQLField(GraphQLString),
    },
)

QueryType = GraphQLObjectType(
    "Query",
    {
        "item": GraphQLField(
            ItemType,
            args={"id": GraphQLArgument(GraphQLNonNull(GraphQLID))},
            resolve=resolve_item,
        ),
        "asyncItem": GraphQLField(
            ItemType,
            args={"id": GraphQLArgument(GraphQLNonNull(GraphQLID))},
            resolve=resolve_async_item,
        ),
        "items": GraphQLField(
            GraphQLList(ItemType),
            resolve=lambda root, info: list(ITEMS.values()),
        ),
        "uploadTest": GraphQLField(
            GraphQLString,
            args={
                "fileA": GraphQLArgument(GraphQLNonNull(Upload)),
                "fileB": GraphQLArgument(Upload),
            },
            resolve=resolve_upload_test,
        ),
        "fieldOnRootValue": GraphQLField(
            GraphQLString,
            resolve=lambda root, info: (root or {}).get(
                "field_on_root_value"
            ),
        ),
        "contextValue": GraphQLField(
            GraphQLString,
            args={"key": GraphQLArgument(GraphQLNonNull(GraphQLString))},
            resolve=lambda root, info, key: info.context.get(key),
        ),
        "failing": GraphQLField(GraphQLString, resolve=resolve_failing),
        "nonNullFailing": GraphQLField(
            GraphQLNonNull(GraphQLString), resolve=resolve_failing
        ),
    },
)

MutationType = GraphQLObjectType(
    "Mutation",
    {
        "addItem": GraphQLField(
            ItemType,
            args={"name": GraphQLArgument(GraphQLNonNull(GraphQLString))},
            resolve=resolve_add_item,
        ),
    },
)

SubscriptionType = GraphQLObjectType(
    "Subscription",
    {
        "itemAdded": GraphQLField(
            ItemType,
            subscribe=subscribe_item_added,
            resolve=lambda item, info: item,
        ),
    },
)

SCHEMA = GraphQLSchema(
    query=QueryType,
    mutation=MutationType,
    subscription=SubscriptionType,
)
