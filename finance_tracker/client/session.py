"""
client/session.py
-----------------
Client-side session state: the bearer token (in memory, mirrored to an
optional file store) and the signed-in user.
"""

import json
import os
import threading
from typing import Callable, List, Optional

from finance_tracker.logger import get_logger

logger = get_logger(__name__)


class TokenStore:
    """Persist the token in a small JSON file."""

    def __init__(self, path: str):
        self.path = path

    def load(self) -> Optional[str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f).get("token")
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable token store {self.path}: {e}")
            return None

    def save(self, token: str) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({"token": token}, f)

    def clear(self) -> None:
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass


class SessionContext:
    def __init__(self, store: Optional[TokenStore] = None):
        self._store = store
        self._lock = threading.Lock()
        self._token: Optional[str] = store.load() if store else None
        self.user = None
        self._listeners: List[Callable[["SessionContext"], None]] = []

    @property
    def is_authenticated(self) -> bool:
        return self.get_token() is not None

    def get_token(self) -> Optional[str]:
        with self._lock:
            return self._token

    def set_token(self, token: str) -> None:
        with self._lock:
            self._token = token
            if self._store:
                self._store.save(token)

    def clear_token(self) -> None:
        with self._lock:
            self._token = None
            if self._store:
                self._store.clear()

    def auth_header(self) -> dict:
        token = self.get_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    def on_sign_out(self, listener: Callable[["SessionContext"], None]) -> None:
        self._listeners.append(listener)

    def sign_out(self) -> None:
        self.clear_token()
        self.user = None
        logger.info("Session signed out")
        for listener in list(self._listeners):
            listener(self)
