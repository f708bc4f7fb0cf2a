import hashlib
import hmac
import json
import secrets
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from app.constants import API_KEY_ALPHABET, API_KEY_PREFIX, API_KEY_SEGMENT_LENGTH
from app.exceptions import AuthorizationError, NotFoundError, StorageError, ValidationError
from app.logging import setup_logger

logger = setup_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def new_api_key() -> str:
    """wk_<9 chars>_<9 chars>, base36"""
    segments = [
        "".join(secrets.choice(API_KEY_ALPHABET) for _ in range(API_KEY_SEGMENT_LENGTH))
        for _ in range(2)
    ]
    return API_KEY_PREFIX + "_".join(segments)


class KeyStore:
    """
    API keys persisted as one flat JSON mapping.

    Records are stored under the SHA-256 digest of the key, so the plaintext
    key is only ever disclosed by `generate`. Every mutating call re-reads and
    rewrites the whole file without locking: two concurrent mutations in the
    same process can lose an update.
    """

    def __init__(
        self,
        path: Union[str, Path],
        master_key: str,
        touch_interval: float = 60.0,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.path = Path(path)
        self.master_key = master_key
        self.touch_interval = touch_interval
        self.now = now

    def load(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading API keys from {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"Ignoring malformed API key file {self.path}")
            return {}
        return data

    def save(self, records: Dict[str, Dict[str, Any]]) -> None:
        try:
            if self.path.parent and not self.path.parent.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2)
        except OSError as e:
            logger.error(f"Error saving API keys to {self.path}: {e}")
            raise StorageError("Failed to save API key") from e

    def check_master_key(self, master_key: Optional[str]) -> None:
        if not master_key:
            raise ValidationError("Master key is required")
        if not hmac.compare_digest(master_key.encode("utf-8"), self.master_key.encode("utf-8")):
            logger.warning("Rejected request with invalid master key")
            raise AuthorizationError("Invalid master key")

    def generate(self, master_key: Optional[str]) -> str:
        """Create and persist a new active key. Returns the only plaintext copy."""
        self.check_master_key(master_key)

        records = self.load()
        api_key = new_api_key()
        while hash_key(api_key) in records:
            api_key = new_api_key()

        records[hash_key(api_key)] = {
            "prefix": api_key[: len(API_KEY_PREFIX) + 4],
            "active": True,
            "created": self.now().isoformat(),
            "lastUsed": None,
        }
        self.save(records)
        logger.info(f"Generated API key {api_key[:len(API_KEY_PREFIX) + 4]}...")
        return api_key

    def get(self, api_key: str) -> Optional[Dict[str, Any]]:
        if not api_key:
            return None
        return self.load().get(hash_key(api_key))

    def validate(self, api_key: Optional[str]) -> bool:
        record = self.get(api_key)
        return bool(record) and record.get("active") is True

    def touch(self, api_key: str) -> bool:
        """
        Record usage of a key, at most once per touch interval.

        Returns True when the store was written.
        """
        records = self.load()
        digest = hash_key(api_key)
        record = records.get(digest)
        if record is None:
            return False

        now = self.now()
        last_used = EPOCH
        if record.get("lastUsed"):
            try:
                last_used = datetime.fromisoformat(record["lastUsed"])
            except ValueError:
                logger.warning(f"Unparseable lastUsed for key {record.get('prefix')}")
        if (now - last_used).total_seconds() <= self.touch_interval:
            return False

        record["lastUsed"] = now.isoformat()
        self.save(records)
        return True

    def revoke(self, master_key: Optional[str], api_key: Optional[str]) -> None:
        self.check_master_key(master_key)
        if not api_key:
            raise ValidationError("API key is required")

        records = self.load()
        record = records.get(hash_key(api_key))
        if record is None:
            raise NotFoundError("API key not found")

        record["active"] = False
        self.save(records)
        logger.info(f"Revoked API key {record.get('prefix')}...")
