import asyncio
from typing import Any, Dict, Protocol, Set

from app.logging import setup_logger

logger = setup_logger(__name__)


class Subscriber(Protocol):
    async def send_json(self, data: Any) -> None: ...


class Broadcaster:
    """
    Fans session events out to connected real-time subscribers.

    Messages are framed as {"event": name, "data": payload}. A subscriber
    whose send fails is dropped.
    """

    def __init__(self):
        self._subscribers: Set[Subscriber] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def subscribe(self, subscriber: Subscriber, snapshot: Dict[str, Any]) -> None:
        """Register a subscriber and hand it the current session status"""
        self._subscribers.add(subscriber)
        logger.info(f"Real-time client connected ({self.subscriber_count} total)")
        await self._send(subscriber, {"event": "status", "data": snapshot})

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.discard(subscriber)
            logger.info(f"Real-time client disconnected ({self.subscriber_count} left)")

    async def emit(self, event: str, data: Dict[str, Any]) -> None:
        message = {"event": event, "data": data}
        subscribers = list(self._subscribers)
        if not subscribers:
            return
        await asyncio.gather(*(self._send(s, message) for s in subscribers))

    async def _send(self, subscriber: Subscriber, message: Dict[str, Any]) -> None:
        try:
            await subscriber.send_json(message)
        except Exception as e:
            logger.warning(f"Dropping real-time client after failed send: {e}")
            self.unsubscribe(subscriber)
