import base64
import json
from typing import Any, Optional

from app.constants import DEFAULT_MEDIA_FILENAME
from app.exceptions import PayloadTooLargeError, ValidationError
from app.logging import setup_logger
from app.services.messaging.base import MessageMedia

logger = setup_logger(__name__)


def media_from_upload(
    content: bytes, mimetype: Optional[str], filename: Optional[str], max_bytes: int
) -> MessageMedia:
    """
    Build message media from an uploaded file part.

    Args:
        content: Raw file bytes
        mimetype: Content type reported by the upload
        filename: Original filename of the upload
        max_bytes: Largest accepted upload

    Returns:
        Base64 encoded media
    """
    if len(content) > max_bytes:
        raise PayloadTooLargeError(f"File too large (limit {max_bytes} bytes)")

    return MessageMedia(
        mimetype=mimetype or "application/octet-stream",
        data=base64.b64encode(content).decode("ascii"),
        filename=filename or DEFAULT_MEDIA_FILENAME,
    )


def media_from_inline(raw: Any) -> Optional[MessageMedia]:
    """
    Build message media from an inline {data, mimetype, filename} object.

    Multipart forms carry the object as a JSON string. Objects missing data
    or mimetype, and strings that are not valid JSON, yield no media.
    Non-string data or mimetype raises ValidationError.
    """
    if not raw:
        return None

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring media field that is not valid JSON")
            return None

    if not isinstance(raw, dict):
        return None

    data, mimetype, filename = raw.get("data"), raw.get("mimetype"), raw.get("filename")
    if not data or not mimetype:
        return None
    if not isinstance(data, str) or not isinstance(mimetype, str):
        raise ValidationError("Media data and mimetype must be strings")

    return MessageMedia(
        mimetype=mimetype,
        data=data,
        filename=filename if isinstance(filename, str) and filename else DEFAULT_MEDIA_FILENAME,
    )
