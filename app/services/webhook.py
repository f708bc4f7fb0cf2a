from typing import Any, Dict, Optional

import httpx

from app.logging import setup_logger

logger = setup_logger(__name__)


class WebhookRegistration:
    """In-memory webhook target; cleared on restart"""

    def __init__(self, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url: Optional[str] = None
        self.timeout = timeout
        self._transport = transport

    def set(self, url: Optional[str]) -> None:
        self.url = url
        logger.info(f"Webhook URL set: {url}")

    def clear(self) -> None:
        self.url = None
        logger.info("Webhook URL deleted")

    async def deliver(self, event: str, data: Dict[str, Any]) -> bool:
        """
        POST an event to the registered URL.

        Returns True on a 2xx response. Delivery failures are logged, never raised.
        """
        url = self.url
        if not url:
            return False

        payload = {"event": event, "data": data}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Webhook delivery to {url} failed: {e}")
            return False

        if response.is_success:
            logger.info(f"Delivered {event} event to webhook")
            return True

        logger.error(f"Webhook {url} answered {response.status_code}: {response.text[:200]}")
        return False
