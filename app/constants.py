# WhatsApp chat id suffixes
CONTACT_SUFFIX = "@c.us"
GROUP_SUFFIX = "@g.us"

API_KEY_PREFIX = "wk_"
API_KEY_SEGMENT_LENGTH = 9
API_KEY_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"

API_KEY_HEADER = "x-api-key"
API_KEY_QUERY_PARAM = "api_key"

# Events the WhatsApp client emits
CLIENT_EVENT_QR = "qr"
CLIENT_EVENT_AUTHENTICATED = "authenticated"
CLIENT_EVENT_READY = "ready"
CLIENT_EVENT_AUTH_FAILURE = "auth_failure"
CLIENT_EVENT_DISCONNECTED = "disconnected"
CLIENT_EVENT_MESSAGE = "message"

# Real-time channel events pushed to subscribers
EVENT_STATUS = "status"
EVENT_QR = "qr"
EVENT_READY = "ready"
EVENT_AUTHENTICATED = "authenticated"
EVENT_AUTH_FAILURE = "auth_failure"
EVENT_SESSION_TIMEOUT = "session_timeout"
EVENT_REINITIALIZING = "reinitializing"

QR_IMAGE_WIDTH = 256
QR_IMAGE_MARGIN = 2

# Status messages pushed over the real-time channel
MESSAGES = {
    "ready": "WhatsApp client is ready!",
    "authenticated": "WhatsApp client authenticated",
    "auth_failure": "Authentication failed: {reason}",
    "session_timeout": "Session timed out. Please scan QR code again.",
    "reinitializing": "Reconnecting to WhatsApp...",
    "not_ready": "WhatsApp client is not ready",
}

UNKNOWN_GROUP_NAME = "Unknown Group"
DEFAULT_MEDIA_FILENAME = "file"
