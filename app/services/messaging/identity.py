"""
Normalization of WhatsApp identifiers.

The client reports ids in several shapes (plain strings, objects carrying
`_serialized`, objects carrying `user`), so extraction runs an ordered list
of strategies and keeps the first one that applies.
"""

import re
from typing import Any, Callable, List, Optional

from app.constants import CONTACT_SUFFIX, GROUP_SUFFIX, UNKNOWN_GROUP_NAME

NON_DIGITS = re.compile(r"\D")


def contact_chat_id(number: Any) -> str:
    """Strip formatting from a phone number and address it as a contact chat"""
    clean = NON_DIGITS.sub("", str(number))
    return f"{clean}{CONTACT_SUFFIX}"


def group_chat_id(group_id: str) -> str:
    if GROUP_SUFFIX in group_id:
        return group_id
    return f"{group_id}{GROUP_SUFFIX}"


def _from_string(wid: Any) -> Optional[str]:
    if isinstance(wid, str):
        return wid.replace(CONTACT_SUFFIX, "")
    return None


def _from_serialized(wid: Any) -> Optional[str]:
    if isinstance(wid, dict) and wid.get("_serialized"):
        return str(wid["_serialized"]).replace(CONTACT_SUFFIX, "")
    return None


def _from_user(wid: Any) -> Optional[str]:
    if isinstance(wid, dict) and wid.get("user"):
        return str(wid["user"])
    return None


def _from_str_fallback(wid: Any) -> Optional[str]:
    return str(wid).replace(CONTACT_SUFFIX, "")


WID_STRATEGIES: List[Callable[[Any], Optional[str]]] = [
    _from_string,
    _from_serialized,
    _from_user,
    _from_str_fallback,
]


def normalize_wid(wid: Any) -> str:
    """Account id without the contact suffix, or '' when absent"""
    if not wid:
        return ""
    for strategy in WID_STRATEGIES:
        value = strategy(wid)
        if value is not None:
            return value
    return ""


def wid_to_string(wid: Any) -> str:
    """Full serialized form of an id, as the client expects it back"""
    if not wid:
        return ""
    if isinstance(wid, dict):
        if wid.get("_serialized"):
            return str(wid["_serialized"])
        if wid.get("user"):
            return f"{wid['user']}@{wid.get('server', 'c.us')}"
    return str(wid)


def chat_id_of(chat: dict) -> Any:
    chat_id = chat.get("id")
    if isinstance(chat_id, dict):
        return chat_id.get("_serialized") or chat_id
    return chat_id


def format_group(chat: dict) -> dict:
    """Reduced view of a group chat"""
    participants = chat.get("participants")
    return {
        "id": chat_id_of(chat),
        "name": chat.get("name") or chat.get("subject") or UNKNOWN_GROUP_NAME,
        "subject": chat.get("subject"),
        "isGroup": bool(chat.get("isGroup")),
        "participants": len(participants) if participants else 0,
        "unreadCount": chat.get("unreadCount") or 0,
    }
