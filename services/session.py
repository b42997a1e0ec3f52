"""Session bootstrap run once before any store access."""

from __future__ import annotations

import logging
from threading import Event, Lock
from typing import Callable, Dict, Optional, Protocol

from datastore.mock_identity import IdentityError, User

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    @property
    def current_user(self) -> Optional[User]: ...

    def sign_in_anonymously(self) -> User: ...

    def sign_in_with_custom_token(self, token: str) -> User: ...

    def on_auth_state_changed(
        self, callback: Callable[[Optional[User]], None]
    ) -> Callable[[], None]: ...


class SessionBootstrap:
    """Establishes a session and tracks whether it is still alive."""

    def __init__(self, provider: IdentityProvider, bootstrap_token: Optional[str] = None) -> None:
        self.provider = provider
        self.bootstrap_token = bootstrap_token
        self._ready = Event()
        self._user: Optional[User] = None
        self._lock = Lock()
        self._unsubscribe_auth: Optional[Callable[[], None]] = None
        self._loss_listeners: Dict[int, Callable[[], None]] = {}
        self._next_listener_id = 0

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    @property
    def session_id(self) -> Optional[str]:
        with self._lock:
            return self._user.uid if self._user else None

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        return self._ready.wait(timeout)

    def start(self) -> User:
        """Reuse, exchange or create a session, then mark the bootstrap ready."""
        user = self.provider.current_user
        if user is None and self.bootstrap_token:
            try:
                user = self.provider.sign_in_with_custom_token(self.bootstrap_token)
            except IdentityError as exc:
                logger.warning(
                    "Bootstrap token exchange failed; falling back to anonymous session",
                    extra={"reason": str(exc)},
                )
                user = None
        if user is None:
            user = self.provider.sign_in_anonymously()

        with self._lock:
            self._user = user
            if self._unsubscribe_auth is None:
                self._unsubscribe_auth = self.provider.on_auth_state_changed(
                    self._on_auth_state_changed
                )
        self._ready.set()
        logger.info("Session ready", extra={"session_id": user.uid})
        return user

    def on_session_lost(self, callback: Callable[[], None]) -> Callable[[], None]:
        with self._lock:
            listener_id = self._next_listener_id
            self._next_listener_id += 1
            self._loss_listeners[listener_id] = callback

        def cancel() -> None:
            with self._lock:
                self._loss_listeners.pop(listener_id, None)

        return cancel

    def stop(self) -> None:
        with self._lock:
            unsubscribe, self._unsubscribe_auth = self._unsubscribe_auth, None
            self._user = None
        self._ready.clear()
        if unsubscribe is not None:
            unsubscribe()

    def _on_auth_state_changed(self, user: Optional[User]) -> None:
        if user is not None:
            with self._lock:
                self._user = user
            return
        if not self._ready.is_set():
            return

        with self._lock:
            lost_id = self._user.uid if self._user else None
            self._user = None
            listeners = list(self._loss_listeners.values())
        self._ready.clear()
        logger.warning("Session lost", extra={"session_id": lost_id})
        for listener in listeners:
            listener()
