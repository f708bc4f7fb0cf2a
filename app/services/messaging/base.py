from __future__ import annotations
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

from app.logging import setup_logger


class MessageMedia(BaseModel):
    """Media attached to an outgoing message, base64 encoded"""

    mimetype: str
    data: str
    filename: str = "file"


@dataclass
class ClientEvent:
    """A lifecycle or message event emitted by the WhatsApp client"""

    name: str
    payload: Dict[str, Any] = field(default_factory=dict)


class SessionClient(ABC):
    """
    Abstract WhatsApp client driven by the gateway.

    Implementations push ClientEvent objects onto `events` in the order they
    happen; the session controller consumes them one at a time.
    """

    def __init__(self):
        self.logger = setup_logger(self.__class__.__module__)
        self.events: "asyncio.Queue[ClientEvent]" = asyncio.Queue()

    def emit(self, name: str, **payload: Any) -> None:
        self.events.put_nowait(ClientEvent(name=name, payload=payload))

    @abstractmethod
    async def initialize(self) -> None:
        """Start the client; pairing and readiness arrive later as events"""

    @abstractmethod
    async def destroy(self) -> None:
        """Tear down the running client"""

    @abstractmethod
    async def send_message(
        self,
        chat_id: str,
        content: str,
        media: Optional[MessageMedia] = None,
    ) -> Dict[str, Any]:
        """Send text, or media with `content` as caption, to a chat"""

    @abstractmethod
    async def get_contacts(self) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_chats(self) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_info(self) -> Dict[str, Any]:
        """Identity of the linked account: wid, pushname, platform"""

    @abstractmethod
    async def get_profile_pic_url(self, wid: str) -> Optional[str]:
        pass
