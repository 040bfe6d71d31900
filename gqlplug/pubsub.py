"""
gqlplug.pubsub
~~~~~~~~~~~~~~

Publish/subscribe used by subscriptions. Configured pubsub is available to
resolvers as ``context["pubsub"]``:

.. code-block:: python

    def subscribe_item_added(root, info):
        return info.context["pubsub"].subscribe("item_added")

    def resolve_add_item(root, info, name):
        item = {"name": name}
        info.context["pubsub"].publish("item_added", item)
        return item

"""

import abc
import asyncio
import logging
import threading
from typing import Any, AsyncIterator, Dict, Optional, Set

log = logging.getLogger(__name__)

_CLOSED = object()


class PubSub(abc.ABC):
    @abc.abstractmethod
    def subscribe(self, topic: str) -> AsyncIterator[Any]:
        """Returns async iterator over messages published to the topic,
        closing the iterator unsubscribes
        """

    @abc.abstractmethod
    def unsubscribe(self, subscription: Any) -> None:
        pass

    @abc.abstractmethod
    def publish(self, topic: str, data: Any) -> int:
        """Returns number of subscribers the message was sent to"""


class Subscription:
    """Messages of one subscriber, buffered in :py:class:`asyncio.Queue`"""

    def __init__(self, pubsub: "LocalPubSub", topic: str) -> None:
        self.pubsub = pubsub
        self.topic = topic
        self.closed = False
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._loop = asyncio.get_running_loop()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Any:
        if self.closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def aclose(self) -> None:
        self.pubsub.unsubscribe(self)

    def _put(self, item: Any) -> None:
        try:
            running: Optional[asyncio.AbstractEventLoop]
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._queue.put_nowait(item)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)

    def __repr__(self) -> str:
        return "<Subscription {!r}>".format(self.topic)


class LocalPubSub(PubSub):
    """In-memory pubsub for a single process

    Subscriptions must be created inside a running event loop, messages can
    be published from any thread.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._topics: Dict[str, Set[Subscription]] = {}

    def subscribe(self, topic: str) -> Subscription:
        subscription = Subscription(self, topic)
        with self._lock:
            self._topics.setdefault(topic, set()).add(subscription)
        log.debug("Subscribed to %r", topic)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._topics.get(subscription.topic)
            if subscribers is None or subscription not in subscribers:
                return
            subscribers.discard(subscription)
            if not subscribers:
                del self._topics[subscription.topic]
        subscription.closed = True
        subscription._put(_CLOSED)
        log.debug("Unsubscribed from %r", subscription.topic)

    def publish(self, topic: str, data: Any) -> int:
        with self._lock:
            subscribers = list(self._topics.get(topic, ()))
        for subscription in subscribers:
            subscription._put(data)
        return len(subscribers)

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._topics.get(topic, ()))
