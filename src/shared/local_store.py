"""Device-local key-value persistence (guest data, cached credentials)."""

import os
import json
import logging
import tempfile
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class LocalStore:
    """
    JSON-file backed key-value store.

    Holds the guest flag, the guest receipt list (full records including
    inline images), cached setup credentials and the auth session. With no
    path the store lives in memory only.
    """

    GUEST_FLAG_KEY = 'isGuest'
    GUEST_RECEIPTS_KEY = 'guest_receipts'
    SETUP_CREDENTIALS_KEY = 'setup_credentials'
    AUTH_SESSION_KEY = 'auth_session'

    def __init__(self, path: Optional[str] = None):
        """
        Initialize the store.

        Args:
            path: Optional JSON file path; None keeps data in memory
        """
        self.path = os.path.expanduser(path) if path else None
        self._data: Dict[str, Any] = self._read()

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._write()

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._write()

    # Guest mode

    def is_guest(self) -> bool:
        return self.get(self.GUEST_FLAG_KEY) is True

    def set_guest(self, enabled: bool) -> None:
        if enabled:
            self.set(self.GUEST_FLAG_KEY, True)
        else:
            self.remove(self.GUEST_FLAG_KEY)

    def load_guest_receipts(self) -> List[Dict[str, Any]]:
        """Return the serialized guest receipts, newest first."""
        records = self.get(self.GUEST_RECEIPTS_KEY)
        if records is None:
            return []
        if not isinstance(records, list):
            logger.error(f"Ignoring malformed guest receipts of type {type(records).__name__}")
            return []
        return records

    def save_guest_receipts(self, records: List[Dict[str, Any]]) -> None:
        self.set(self.GUEST_RECEIPTS_KEY, records)

    def clear_guest_receipts(self) -> None:
        self.remove(self.GUEST_RECEIPTS_KEY)

    def has_guest_receipts(self) -> bool:
        return len(self.load_guest_receipts()) > 0

    # Credentials

    def get_setup_credentials(self) -> Dict[str, Any]:
        return self.get(self.SETUP_CREDENTIALS_KEY) or {}

    def save_setup_credentials(self, credentials: Dict[str, Any]) -> None:
        self.set(self.SETUP_CREDENTIALS_KEY, credentials)

    def _read(self) -> Dict[str, Any]:
        if not self.path or not os.path.exists(self.path):
            return {}

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read local store {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.error(f"Local store {self.path} does not hold an object, starting empty")
            return {}
        return data

    def _write(self) -> None:
        if not self.path:
            return

        directory = os.path.dirname(self.path) or '.'
        os.makedirs(directory, exist_ok=True)

        # Atomic replace
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(self._data, f)
            os.replace(tmp_path, self.path)
        except OSError:
            os.unlink(tmp_path)
            raise
