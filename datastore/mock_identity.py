from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from functools import lru_cache
from threading import Lock
from typing import Callable, Dict, List, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)


class IdentityError(RuntimeError):
    """Raised when the identity provider refuses a sign-in."""


@dataclass(frozen=True)
class User:
    uid: str
    is_anonymous: bool


AuthStateCallback = Callable[[Optional[User]], None]


class MockIdentityProvider:
    """In-process identity provider supporting anonymous and custom-token sessions."""

    def __init__(self) -> None:
        self._current_user: Optional[User] = None
        self._custom_tokens: Dict[str, str] = {}
        self._observers: Dict[int, AuthStateCallback] = {}
        self._next_observer_id = 0
        self._lock = Lock()

    @property
    def current_user(self) -> Optional[User]:
        with self._lock:
            return self._current_user

    def issue_custom_token(self, uid: str) -> str:
        """Mint a token that :meth:`sign_in_with_custom_token` will accept for ``uid``."""
        token = secrets.token_urlsafe(24)
        with self._lock:
            self._custom_tokens[token] = uid
        return token

    def sign_in_anonymously(self) -> User:
        user = User(uid=uuid4().hex, is_anonymous=True)
        self._set_user(user)
        return user

    def sign_in_with_custom_token(self, token: str) -> User:
        with self._lock:
            uid = self._custom_tokens.get(token)
        if uid is None:
            raise IdentityError("Custom token was rejected.")
        user = User(uid=uid, is_anonymous=False)
        self._set_user(user)
        return user

    def sign_out(self) -> None:
        self._set_user(None)

    def on_auth_state_changed(self, callback: AuthStateCallback) -> Callable[[], None]:
        with self._lock:
            observer_id = self._next_observer_id
            self._next_observer_id += 1
            self._observers[observer_id] = callback

        def unsubscribe() -> None:
            with self._lock:
                self._observers.pop(observer_id, None)

        return unsubscribe

    def _set_user(self, user: Optional[User]) -> None:
        with self._lock:
            changed = user != self._current_user
            self._current_user = user
            observers: List[AuthStateCallback] = list(self._observers.values())
        if not changed:
            return
        logger.debug(
            "Auth state changed",
            extra={"session_id": user.uid if user else None},
        )
        for observer in observers:
            observer(user)


@lru_cache
def build_default_identity() -> MockIdentityProvider:
    return MockIdentityProvider()
