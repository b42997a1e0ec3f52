"""Tests for session bootstrap and anonymous fallback."""

from __future__ import annotations

import logging

from datastore.mock_identity import MockIdentityProvider
from services.session import SessionBootstrap


def test_without_token_creates_anonymous_session() -> None:
    provider = MockIdentityProvider()
    bootstrap = SessionBootstrap(provider)

    assert bootstrap.ready is False
    user = bootstrap.start()

    assert bootstrap.ready is True
    assert user.is_anonymous is True
    assert bootstrap.session_id == user.uid


def test_valid_token_is_exchanged_for_session() -> None:
    provider = MockIdentityProvider()
    token = provider.issue_custom_token("operator-7")
    bootstrap = SessionBootstrap(provider, bootstrap_token=token)

    user = bootstrap.start()

    assert user.is_anonymous is False
    assert bootstrap.session_id == "operator-7"


def test_rejected_token_falls_back_to_anonymous(caplog) -> None:
    provider = MockIdentityProvider()
    bootstrap = SessionBootstrap(provider, bootstrap_token="forged")

    with caplog.at_level(logging.WARNING):
        user = bootstrap.start()

    assert bootstrap.ready is True
    assert user.is_anonymous is True
    assert any("falling back to anonymous" in record.getMessage() for record in caplog.records)


def test_existing_session_is_reused() -> None:
    provider = MockIdentityProvider()
    existing = provider.sign_in_anonymously()
    token = provider.issue_custom_token("operator-7")

    user = SessionBootstrap(provider, bootstrap_token=token).start()

    assert user == existing


def test_sign_out_clears_readiness_and_notifies_listeners() -> None:
    provider = MockIdentityProvider()
    bootstrap = SessionBootstrap(provider)
    bootstrap.start()
    lost: list[str] = []
    bootstrap.on_session_lost(lambda: lost.append("lost"))

    provider.sign_out()

    assert lost == ["lost"]
    assert bootstrap.ready is False
    assert bootstrap.session_id is None


def test_cancelled_loss_listener_is_not_called() -> None:
    provider = MockIdentityProvider()
    bootstrap = SessionBootstrap(provider)
    bootstrap.start()
    lost: list[str] = []
    cancel = bootstrap.on_session_lost(lambda: lost.append("lost"))

    cancel()
    provider.sign_out()

    assert lost == []


def test_stop_detaches_from_provider() -> None:
    provider = MockIdentityProvider()
    bootstrap = SessionBootstrap(provider)
    bootstrap.start()
    lost: list[str] = []
    bootstrap.on_session_lost(lambda: lost.append("lost"))

    bootstrap.stop()
    provider.sign_out()

    assert lost == []
    assert bootstrap.wait_ready(timeout=0) is False
