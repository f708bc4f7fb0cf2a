import pytest

from app.services.messaging.identity import (
    contact_chat_id,
    format_group,
    group_chat_id,
    normalize_wid,
    wid_to_string,
)


@pytest.mark.parametrize(
    "number,expected",
    [
        ("+1 (555) 123-4567", "15551234567@c.us"),
        ("15551234567", "15551234567@c.us"),
        (15551234567, "15551234567@c.us"),
        ("44-7700-900123", "447700900123@c.us"),
    ],
)
def test_contact_chat_id_strips_formatting(number, expected):
    assert contact_chat_id(number) == expected


def test_group_chat_id_appends_suffix_once():
    assert group_chat_id("120363025246125486") == "120363025246125486@g.us"
    assert group_chat_id("120363025246125486@g.us") == "120363025246125486@g.us"


@pytest.mark.parametrize(
    "wid,expected",
    [
        ("15551234567@c.us", "15551234567"),
        ({"_serialized": "15551234567@c.us", "user": "15551234567"}, "15551234567"),
        ({"user": "15551234567", "server": "c.us"}, "15551234567"),
        (None, ""),
        ("", ""),
    ],
)
def test_normalize_wid_handles_every_shape(wid, expected):
    assert normalize_wid(wid) == expected


def test_wid_to_string_rebuilds_serialized_form():
    assert wid_to_string({"user": "15551234567", "server": "c.us"}) == "15551234567@c.us"
    assert wid_to_string({"_serialized": "15551234567@c.us"}) == "15551234567@c.us"
    assert wid_to_string("15551234567@c.us") == "15551234567@c.us"
    assert wid_to_string(None) == ""


def test_format_group_projection():
    chat = {
        "id": {"_serialized": "120363025246125486@g.us"},
        "name": "Family",
        "subject": "Family",
        "isGroup": True,
        "participants": [{"id": "a"}, {"id": "b"}, {"id": "c"}],
        "unreadCount": 4,
    }
    assert format_group(chat) == {
        "id": "120363025246125486@g.us",
        "name": "Family",
        "subject": "Family",
        "isGroup": True,
        "participants": 3,
        "unreadCount": 4,
    }


def test_format_group_falls_back_for_missing_fields():
    group = format_group({"id": "1@g.us", "isGroup": True})
    assert group["name"] == "Unknown Group"
    assert group["participants"] == 0
    assert group["unreadCount"] == 0

    assert format_group({"id": "2@g.us", "subject": "Book club", "isGroup": True})["name"] == "Book club"
