"""
Subscriptions component unit tests.

Tests for double opt-in subscribe, verify, unsubscribe and cleanup.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import parse_qs, urlsplit
from uuid import UUID

import pytest

from inkwell.components.emails import RenderedEmail
from inkwell.components.subscriptions import (
    CleanupInput,
    SubscribeInput,
    SubscriptionConfig,
    UnsubscribeInput,
    VerifyInput,
    run,
    run_cleanup,
    run_subscribe,
    run_unsubscribe,
    run_verify,
)
from inkwell.components.tokens import IssueTokenInput, TokenIssuer
from inkwell.components.validation import ErrorKind, ValidationFailure
from inkwell.domain.entities import ScheduledEmailJob, Subscriber, Token
from inkwell.domain.lifecycle import new_subscriber

NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=UTC)
CONFIG = SubscriptionConfig(base_url="https://example.com")

# --- Mock Implementations ---


class MockStore:
    def __init__(self) -> None:
        self.subscribers: dict[UUID, Subscriber] = {}
        self.tokens: dict[UUID, Token] = {}
        self.jobs: list[ScheduledEmailJob] = []


class MockSubscriberRepo:
    def __init__(self, data: dict[UUID, Subscriber]) -> None:
        self._data = data

    def get_by_id(self, subscriber_id: UUID) -> Subscriber | None:
        return self._data.get(subscriber_id)

    def get_by_email(self, email: str) -> Subscriber | None:
        return next((s for s in self._data.values() if s.email == email), None)

    def save(self, subscriber: Subscriber) -> Subscriber:
        self._data[subscriber.id] = subscriber
        return subscriber

    def delete(self, subscriber_id: UUID) -> bool:
        return self._data.pop(subscriber_id, None) is not None

    def delete_unverified_before(self, cutoff: datetime) -> int:
        stale = [
            s.id for s in self._data.values() if not s.is_verified and s.created_at < cutoff
        ]
        for subscriber_id in stale:
            del self._data[subscriber_id]
        return len(stale)


class MockTokenRepo:
    def __init__(self, data: dict[UUID, Token]) -> None:
        self._data = data

    def save(self, token: Token) -> Token:
        self._data[token.id] = token
        return token

    def get_by_hash(self, token_hash: str) -> Token | None:
        return next((t for t in self._data.values() if t.hash == token_hash), None)

    def delete(self, token_id: UUID) -> None:
        self._data.pop(token_id, None)


class MockEmailJobRepo:
    def __init__(self, data: list[ScheduledEmailJob]) -> None:
        self._data = data

    def insert_batch(self, jobs: list[ScheduledEmailJob]) -> int:
        self._data.extend(jobs)
        return len(jobs)


class MockUnitOfWork:
    """Copy-on-enter unit of work; only commit() publishes writes."""

    def __init__(self, store: MockStore) -> None:
        self._store = store
        self.committed = False

    def __enter__(self) -> MockUnitOfWork:
        self._subscribers = dict(self._store.subscribers)
        self._tokens = dict(self._store.tokens)
        self._jobs = list(self._store.jobs)
        self.subscribers = MockSubscriberRepo(self._subscribers)
        self.tokens = MockTokenRepo(self._tokens)
        self.email_jobs = MockEmailJobRepo(self._jobs)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        return None

    def commit(self) -> None:
        self._store.subscribers = self._subscribers
        self._store.tokens = self._tokens
        self._store.jobs = self._jobs
        self.committed = True

    def rollback(self) -> None:
        return None


class MockRenderer:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def render(self, template_name: str, data: dict[str, Any]) -> RenderedEmail:
        self.calls.append((template_name, data))
        link = data["verification_link"]
        return RenderedEmail(html=f'<a href="{link}">confirm</a>', text=link)


class MockTimePort:
    def __init__(self, fixed_time: datetime = NOW) -> None:
        self._time = fixed_time

    def now_utc(self) -> datetime:
        return self._time

    def advance(self, delta: timedelta) -> None:
        self._time += delta


# --- Fixtures ---


@pytest.fixture
def store() -> MockStore:
    return MockStore()


@pytest.fixture
def time_port() -> MockTimePort:
    return MockTimePort()


@pytest.fixture
def deps(store: MockStore, time_port: MockTimePort) -> dict[str, Any]:
    return {
        "uow_factory": lambda: MockUnitOfWork(store),
        "tokens": TokenIssuer("test-signing-key", time_port),
        "renderer": MockRenderer(),
        "time": time_port,
        "config": CONFIG,
    }


def _subscribe(deps: dict[str, Any], email: str = "reader@example.com") -> Any:
    return run_subscribe(SubscribeInput(email=email, referer="/posts/launch"), **deps)


def _token_from_link(link: str) -> str:
    return parse_qs(urlsplit(link).query)["token"][0]


def _last_verification_token(deps: dict[str, Any]) -> str:
    _, data = deps["renderer"].calls[-1]
    return _token_from_link(data["verification_link"])


def _verify_deps(deps: dict[str, Any]) -> dict[str, Any]:
    return {k: deps[k] for k in ("uow_factory", "tokens", "time")}


# --- Subscribe ---


class TestSubscribe:
    def test_new_subscriber_is_unverified(self, deps: dict[str, Any], store: MockStore) -> None:
        output = _subscribe(deps)

        assert output.needs_verification is True
        subscriber = store.subscribers[output.subscriber_id]
        assert subscriber.is_verified is False
        assert subscriber.referer == "/posts/launch"

    def test_normalizes_email(self, deps: dict[str, Any], store: MockStore) -> None:
        output = _subscribe(deps, email="  Reader@Example.COM ")
        assert store.subscribers[output.subscriber_id].email == "reader@example.com"

    def test_queues_verification_email(self, deps: dict[str, Any], store: MockStore) -> None:
        _subscribe(deps)

        (job,) = store.jobs
        assert job.to == "reader@example.com"
        assert job.subject == CONFIG.verification_subject
        assert job.scheduled_at == NOW
        assert job.text_body.startswith("https://example.com/verify?token=")

    def test_issues_72h_verification_token(self, deps: dict[str, Any], store: MockStore) -> None:
        output = _subscribe(deps)

        (token,) = store.tokens.values()
        assert token.scope == "email_verification"
        assert token.resource_id == output.subscriber_id
        assert token.expires_at == NOW + timedelta(hours=72)

    def test_invalid_email_raises(self, deps: dict[str, Any], store: MockStore) -> None:
        with pytest.raises(ValidationFailure) as exc_info:
            _subscribe(deps, email="not-an-email")

        assert exc_info.value.errors.kinds("email") == [ErrorKind.INVALID_EMAIL]
        assert store.subscribers == {}
        assert store.jobs == []

    def test_unverified_resubscribe_resends(self, deps: dict[str, Any], store: MockStore) -> None:
        first = _subscribe(deps)
        second = _subscribe(deps)

        assert second.subscriber_id == first.subscriber_id
        assert second.needs_verification is True
        assert len(store.subscribers) == 1
        assert len(store.jobs) == 2

    def test_verified_resubscribe_is_noop(self, deps: dict[str, Any], store: MockStore) -> None:
        first = _subscribe(deps)
        run_verify(VerifyInput(token=_last_verification_token(deps)), **_verify_deps(deps))

        again = _subscribe(deps)

        assert again.already_subscribed is True
        assert again.needs_verification is False
        assert again.subscriber_id == first.subscriber_id
        assert len(store.jobs) == 1


# --- Verify ---


class TestVerify:
    def test_marks_verified_and_consumes(self, deps: dict[str, Any], store: MockStore) -> None:
        output = _subscribe(deps)
        token = _last_verification_token(deps)

        result = run_verify(VerifyInput(token=token), **_verify_deps(deps))

        assert result.success is True
        assert result.subscriber_id == output.subscriber_id
        assert store.subscribers[output.subscriber_id].is_verified is True
        assert store.tokens == {}

    def test_token_is_single_use(self, deps: dict[str, Any]) -> None:
        _subscribe(deps)
        token = _last_verification_token(deps)
        run_verify(VerifyInput(token=token), **_verify_deps(deps))

        result = run_verify(VerifyInput(token=token), **_verify_deps(deps))

        assert result.success is False
        assert result.errors[0].code == "INVALID_TOKEN"

    def test_expired_token(self, deps: dict[str, Any], time_port: MockTimePort, store: MockStore) -> None:
        output = _subscribe(deps)
        token = _last_verification_token(deps)
        time_port.advance(timedelta(hours=73))

        result = run_verify(VerifyInput(token=token), **_verify_deps(deps))

        assert result.errors[0].code == "TOKEN_EXPIRED"
        assert store.subscribers[output.subscriber_id].is_verified is False

    def test_missing_token(self, deps: dict[str, Any]) -> None:
        result = run_verify(VerifyInput(token=""), **_verify_deps(deps))
        assert result.errors[0].code == "MISSING_TOKEN"


# --- Unsubscribe ---


def _issue_unsubscribe(deps: dict[str, Any], store: MockStore, subscriber: Subscriber) -> str:
    uow = MockUnitOfWork(store)
    with uow:
        issued = deps["tokens"].issue(
            uow,
            IssueTokenInput(
                expires_at=NOW + timedelta(days=365),
                scope="unsubscribe",
                resource="subscribers",
                resource_id=subscriber.id,
            ),
        )
        uow.commit()
    return issued.plaintext


@pytest.fixture
def verified(store: MockStore) -> Subscriber:
    subscriber = new_subscriber("reader@example.com", "/", is_verified=True, now=NOW)
    store.subscribers[subscriber.id] = subscriber
    return subscriber


class TestUnsubscribe:
    def test_deletes_subscriber(
        self, deps: dict[str, Any], store: MockStore, verified: Subscriber
    ) -> None:
        token = _issue_unsubscribe(deps, store, verified)

        result = run_unsubscribe(
            UnsubscribeInput(token=token, email="reader@example.com"),
            uow_factory=deps["uow_factory"],
            tokens=deps["tokens"],
        )

        assert result.success is True
        assert verified.id not in store.subscribers
        assert store.tokens == {}

    def test_email_must_match(
        self, deps: dict[str, Any], store: MockStore, verified: Subscriber
    ) -> None:
        token = _issue_unsubscribe(deps, store, verified)

        result = run_unsubscribe(
            UnsubscribeInput(token=token, email="someone.else@example.com"),
            uow_factory=deps["uow_factory"],
            tokens=deps["tokens"],
        )

        assert result.success is False
        assert verified.id in store.subscribers
        assert len(store.tokens) == 1

    def test_verification_token_rejected(
        self, deps: dict[str, Any], store: MockStore
    ) -> None:
        output = _subscribe(deps)
        token = _last_verification_token(deps)

        result = run_unsubscribe(
            UnsubscribeInput(token=token, email="reader@example.com"),
            uow_factory=deps["uow_factory"],
            tokens=deps["tokens"],
        )

        assert result.success is False
        assert result.errors[0].code == "INVALID_TOKEN"
        assert output.subscriber_id in store.subscribers

    def test_missing_params(self, deps: dict[str, Any]) -> None:
        result = run_unsubscribe(
            UnsubscribeInput(token="", email=""),
            uow_factory=deps["uow_factory"],
            tokens=deps["tokens"],
        )
        assert result.errors[0].code == "MISSING_PARAMS"


# --- Cleanup ---


class TestCleanup:
    def test_removes_only_stale_unverified(self, deps: dict[str, Any], store: MockStore) -> None:
        old = NOW - timedelta(days=20)
        stale = new_subscriber("stale@example.com", "/", now=old)
        kept_verified = new_subscriber("kept@example.com", "/", is_verified=True, now=old)
        fresh = new_subscriber("fresh@example.com", "/", now=NOW - timedelta(days=2))
        for s in (stale, kept_verified, fresh):
            store.subscribers[s.id] = s

        output = run_cleanup(
            CleanupInput(), uow_factory=deps["uow_factory"], time=deps["time"], config=CONFIG
        )

        assert output.deleted == 1
        assert output.cutoff == NOW - timedelta(days=14)
        assert set(store.subscribers) == {kept_verified.id, fresh.id}


# --- Dispatcher ---


def test_run_dispatches(deps: dict[str, Any]) -> None:
    output = run(SubscribeInput(email="reader@example.com", referer="/"), **deps)
    assert output.needs_verification is True

    cleanup = run(CleanupInput(now=NOW), **deps)
    assert cleanup.deleted == 0

    with pytest.raises(ValueError):
        run("nope", **deps)  # type: ignore[arg-type]
