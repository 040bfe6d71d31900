"""
gqlplug.batch
~~~~~~~~~~~~~

Decides how the request is run: a single query, or a batch of queries
sent as a JSON array, e.g. by ``react-relay-network-layer``:

.. code-block:: json

    [
        {"id": "1", "query": "{ item(id: \\"foo\\") { name } }"},
        {"id": "2", "query": "{ item(id: \\"bar\\") { name } }"}
    ]

Every batch entry produces a result entry, with all the keys of the
request entry except ``query`` and ``variables``, and with the result
nested under ``payload`` key:

.. code-block:: json

    [
        {"id": "1", "payload": {"data": {"item": {"name": "Foo"}}}},
        {"id": "2", "payload": {"data": {"item": {"name": "Bar"}}}}
    ]

"""

from dataclasses import dataclass
from typing import Any, Dict, List, Union

from gqlplug.config import Config
from gqlplug.error import InputError
from gqlplug.query import Query, QueryState
from gqlplug.request import RequestEnvelope


@dataclass
class Single:
    query: Query


@dataclass
class Batch:
    queries: List[Query]
    #: fields echoed back with every result, in the order of queries
    correlation: List[Dict[str, Any]]


BatchPlan = Union[Single, Batch]


def coordinate(envelope: RequestEnvelope, config: Config) -> BatchPlan:
    """
    :raises InputError: when single query is rejected, or batch is empty
    """
    for query in envelope.queries:
        assert query.state is not QueryState.UNRESOLVED, (
            "document should be resolved before coordination"
        )

    if not envelope.is_batch:
        (query,) = envelope.queries
        if query.rejected:
            assert query.rejection is not None
            raise InputError(query.rejection)
        return Single(query)

    if not envelope.queries:
        raise InputError(config.no_query_message)

    return Batch(
        queries=list(envelope.queries),
        correlation=[dict(query.extra_fields) for query in envelope.queries],
    )


def correlate(
    results: List[Dict[str, Any]], batch: Batch, config: Config
) -> List[Dict[str, Any]]:
    """Attaches correlation fields to the results of the batch"""
    assert len(results) == len(batch.correlation)
    payload_key = config.transport_batch_payload_key
    entries = []
    for fields, result in zip(batch.correlation, results):
        if payload_key:
            entries.append({**fields, payload_key: result})
        else:
            entries.append({**fields, **result})
    return entries
