import asyncio
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from app.exceptions import DownstreamError, ValidationError
from app.logging import setup_logger
from app.services.messaging.base import MessageMedia
from app.services.messaging.identity import (
    contact_chat_id,
    format_group,
    group_chat_id,
    normalize_wid,
    wid_to_string,
)

if TYPE_CHECKING:
    from app.services.session.controller import SessionController

logger = setup_logger(__name__)


class MessagingService:
    """
    Translates gateway requests into WhatsApp client calls.

    Every operation requires a ready session; client failures surface as
    DownstreamError with the underlying message.
    """

    def __init__(self, controller: "SessionController", profile_pic_timeout: float = 5.0):
        self.controller = controller
        self.profile_pic_timeout = profile_pic_timeout

    @property
    def client(self):
        return self.controller.client

    async def send_direct(
        self, number: Any, message: Optional[str], media: Optional[MessageMedia] = None
    ) -> None:
        self.controller.require_ready()
        if not number or not message:
            raise ValidationError("Number and message are required")

        chat_id = contact_chat_id(number)
        try:
            await self.client.send_message(chat_id, message, media=media)
        except Exception as e:
            logger.error(f"Error sending message to {chat_id}: {e}")
            raise DownstreamError(f"Failed to send message: {e}") from e
        logger.info(f"Message sent to {chat_id}")

    async def send_broadcast(
        self, numbers: Any, message: Optional[str], media: Optional[MessageMedia] = None
    ) -> List[Dict[str, Any]]:
        """
        Send the same message to each number in order.

        A failed recipient is recorded and does not stop the batch.
        """
        self.controller.require_ready()
        if not numbers or not isinstance(numbers, list):
            raise ValidationError("Numbers array is required")
        if not message:
            raise ValidationError("Message is required")

        results = []
        for number in numbers:
            try:
                await self.client.send_message(contact_chat_id(number), message, media=media)
                results.append({"number": number, "status": "success"})
            except Exception as e:
                logger.warning(f"Broadcast to {number} failed: {e}")
                results.append({"number": number, "status": "error", "error": str(e)})

        failed = sum(1 for r in results if r["status"] == "error")
        logger.info(f"Broadcast finished: {len(results) - failed} sent, {failed} failed")
        return results

    async def send_group(
        self, group_id: Optional[str], message: Optional[str], media: Optional[MessageMedia] = None
    ) -> None:
        self.controller.require_ready()
        if not group_id or not message:
            raise ValidationError("Group ID and message are required")

        chat_id = group_chat_id(group_id)
        try:
            await self.client.send_message(chat_id, message, media=media)
        except Exception as e:
            logger.error(f"Error sending group message to {chat_id}: {e}")
            raise DownstreamError(f"Failed to send group message: {e}") from e

    async def contacts(self) -> List[Dict[str, Any]]:
        self.controller.require_ready()
        try:
            return await self.client.get_contacts()
        except Exception as e:
            logger.error(f"Error getting contacts: {e}")
            raise DownstreamError(f"Failed to get contacts: {e}") from e

    async def groups(self) -> List[Dict[str, Any]]:
        self.controller.require_ready()
        try:
            chats = await self.client.get_chats()
        except Exception as e:
            logger.error(f"Error getting groups: {e}")
            raise DownstreamError(f"Failed to get groups: {e}") from e
        return [format_group(chat) for chat in chats if chat.get("isGroup")]

    async def profile_picture(self, wid: str, timeout: Optional[float] = None) -> Optional[str]:
        """Profile picture URL, or None when missing, failing or too slow"""
        if not wid:
            return None
        try:
            url = await asyncio.wait_for(
                self.client.get_profile_pic_url(wid),
                timeout=self.profile_pic_timeout if timeout is None else timeout,
            )
        except asyncio.TimeoutError:
            logger.info("Profile picture lookup timed out")
            return None
        except Exception as e:
            logger.info(f"Profile picture not available: {e}")
            return None

        if isinstance(url, str) and url:
            return url
        return None

    async def client_info(self) -> Dict[str, Any]:
        self.controller.require_ready()
        try:
            info = await self.client.get_info()
        except Exception as e:
            logger.error(f"Error getting client info: {e}")
            raise DownstreamError(f"Failed to get client info: {e}") from e

        wid = info.get("wid")
        return {
            "wid": normalize_wid(wid),
            "fullWid": wid,
            "pushname": info.get("pushname"),
            "platform": info.get("platform"),
            "profilePicture": await self.profile_picture(wid_to_string(wid)),
            "connected": True,
        }

    async def test_profile_picture(self) -> Dict[str, Any]:
        self.controller.require_ready()
        try:
            info = await self.client.get_info()
        except Exception as e:
            logger.error(f"Error testing profile picture: {e}")
            raise DownstreamError(f"Failed to test profile picture: {e}") from e

        wid = wid_to_string(info.get("wid"))
        url = await self.profile_picture(wid)
        logger.info(f"Profile picture URL: {url}")
        return {"wid": wid, "pushname": info.get("pushname"), "profilePicUrl": url}
