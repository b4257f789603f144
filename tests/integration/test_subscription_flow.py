"""
Subscriber journey against a real SQLite database: subscribe, confirm from
the emailed link, receive a release, unsubscribe from the emailed link.
"""

from __future__ import annotations

import random
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest
from bs4 import BeautifulSoup

from inkwell.adapters.sqlite_db import SQLiteNewsletterRepo, SQLiteSubscriberRepo
from inkwell.components.emails import JinjaEmailRenderer
from inkwell.components.release import ReleaseScheduler
from inkwell.components.subscriptions import (
    SubscribeInput,
    UnsubscribeInput,
    VerifyInput,
    run,
)
from inkwell.components.tokens import TokenIssuer
from inkwell.domain.lifecycle import new_newsletter


def _link_query(html: str, path: str) -> dict[str, list[str]]:
    soup = BeautifulSoup(html, "html.parser")
    href = next(a["href"] for a in soup.find_all("a") if path in a["href"])
    return parse_qs(urlparse(href).query)


@pytest.fixture
def deps(uow_factory, clock):
    return {
        "uow_factory": uow_factory,
        "tokens": TokenIssuer("flow-key", clock),
        "renderer": JinjaEmailRenderer(),
        "time": clock,
    }


def test_full_journey(deps, db_path, clock, uow_factory) -> None:
    subscribed = run(SubscribeInput(email=" Reader@Example.com ", referer="home"), **deps)
    assert subscribed.needs_verification

    with uow_factory() as tx:
        (verification,) = tx.email_jobs.list_due(clock.now_utc())
    assert verification.to == "reader@example.com"

    token = _link_query(verification.html_body, "/verify")["token"][0]
    verified = run(VerifyInput(token=token), **deps)
    assert verified.success
    assert SQLiteSubscriberRepo(db_path).list_verified()[0].id == subscribed.subscriber_id

    # the verification link is single-use
    again = run(VerifyInput(token=token), **deps)
    assert not again.success
    assert again.errors[0].code == "INVALID_TOKEN"

    newsletter = SQLiteNewsletterRepo(db_path).save(
        new_newsletter("Launch", "We are live.", "launch")
    )
    ReleaseScheduler(
        uow_factory=uow_factory,
        tokens=deps["tokens"],
        renderer=deps["renderer"],
        time_port=clock,
        rng=random.Random(3),
    ).schedule(newsletter.id)

    with uow_factory() as tx:
        due = tx.email_jobs.list_due(clock.now_utc() + timedelta(minutes=1), limit=10)
    release_email = next(j for j in due if j.subject.startswith("newsletter - "))
    query = _link_query(release_email.html_body, "/unsubscribe")

    wrong = run(UnsubscribeInput(token=query["token"][0], email="other@example.com"), **deps)
    assert not wrong.success
    assert wrong.errors[0].code == "NOT_FOUND"

    left = run(UnsubscribeInput(token=query["token"][0], email=query["email"][0]), **deps)
    assert left.success
    assert SQLiteSubscriberRepo(db_path).get_by_email("reader@example.com") is None


def test_resubscribe_when_verified(deps, db_path) -> None:
    first = run(SubscribeInput(email="reader@example.com", referer="home"), **deps)
    repo = SQLiteSubscriberRepo(db_path)
    subscriber = repo.get_by_id(first.subscriber_id)
    assert subscriber is not None
    repo.save(subscriber.model_copy(update={"is_verified": True}))

    second = run(SubscribeInput(email="reader@example.com", referer="home"), **deps)

    assert second.already_subscribed
    assert not second.needs_verification
