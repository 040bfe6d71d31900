"""
gqlplug.subscription
~~~~~~~~~~~~~~~~~~~~

Streams subscription events as Server-Sent Events. Events are framed as
``data: <json>``, or as ``event: next`` followed by ``data: <json>`` when
``Config.standard_sse`` is set, as described by the GraphQL over
Server-Sent Events protocol.

"""

import asyncio
import logging
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Optional,
)

from graphql import ExecutionResult

from gqlplug.config import Config

log = logging.getLogger(__name__)

PING = b":ping\n\n"
COMPLETE = b"event: complete\n\n"

Write = Callable[[bytes], Awaitable[Any]]


def encode_chunk(result: Dict[str, Any], config: Config) -> bytes:
    assert config.serializer is not None
    data = config.serializer.encode(result)
    if config.standard_sse:
        return b"event: next\ndata: " + data + b"\n\n"
    return b"data: " + data + b"\n\n"


async def _close(source: AsyncIterator[Any]) -> None:
    aclose = getattr(source, "aclose", None)
    if aclose is not None:
        await aclose()


async def stream_subscription(
    source: AsyncIterator[ExecutionResult],
    write: Write,
    config: Config,
    close: Optional[asyncio.Event] = None,
) -> None:
    """Writes events until the peer goes away or the source ends

    Sends a ping when there were no events for
    ``Config.subscription_heartbeat`` seconds. Source is closed on exit,
    which unsubscribes from the pubsub topic.

    :param source: subscription results
    :param write: coroutine function writing a chunk to the connection,
                  raising :py:class:`ConnectionError` when the connection
                  is lost
    :param config: request config
    :param close: event to stop streaming
    """
    iterator = source.__aiter__()
    next_event: Optional[asyncio.Future] = None
    closed: Optional[asyncio.Future] = None
    if close is not None:
        closed = asyncio.ensure_future(close.wait())

    try:
        while True:
            if next_event is None:
                next_event = asyncio.ensure_future(iterator.__anext__())

            waiters = {next_event}
            if closed is not None:
                waiters.add(closed)
            done, _ = await asyncio.wait(
                waiters,
                timeout=config.subscription_heartbeat,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if closed is not None and closed in done:
                log.debug("Subscription stream closed")
                break

            if not done:
                await write(PING)
                continue

            event, next_event = next_event, None
            try:
                result = event.result()
            except StopAsyncIteration:
                if config.standard_sse:
                    await write(COMPLETE)
                break

            await write(encode_chunk(result.formatted, config))
    except ConnectionError:
        log.debug("Subscription stream closed by peer")
    finally:
        for future in (next_event, closed):
            if future is not None and not future.done():
                future.cancel()
        await _close(source)
