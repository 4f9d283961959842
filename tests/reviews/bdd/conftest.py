"""Shared BDD fixtures and step definitions for the Reviews domain.

Steps are synchronous; use-case handlers are awaited on one event loop per
scenario through the ``run`` fixture.
"""

import asyncio
from dataclasses import replace

import pytest
from pytest_bdd import given, parsers, then
from reviews.errors import ReviewServiceError
from reviews.review.access import Actor
from reviews.review.submission import SubmitReview, SubmitReviewHandler


@pytest.fixture()
def run():
    with asyncio.Runner() as runner:
        yield runner.run


@pytest.fixture()
def outcome():
    """Container for the last step's result or rejection."""
    return {"review": None, "error": None}


@pytest.fixture()
def attempt(run, outcome):
    """Run a handler call, capturing a coded rejection instead of raising."""

    def _attempt(coro):
        try:
            outcome["review"] = run(coro)
            outcome["error"] = None
        except ReviewServiceError as exc:
            outcome["error"] = exc
        return outcome

    return _attempt


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a customer "{user_id}"'), target_fixture="actor")
def _(user_id):
    return Actor(user_id=user_id, username=user_id)


@given(parsers.cfparse('an administrator "{user_id}"'), target_fixture="moderator")
def _(user_id):
    return Actor(user_id=user_id, username=user_id, roles=("admin",))


@given("moderation is required for unverified reviews")
def _(context):
    context.policy = replace(context.policy, moderation_required=True)


@given(parsers.cfparse('the customer reviewed product "{product_id}" with rating {rating:d}'))
def _(run, context, actor, outcome, product_id, rating):
    command = SubmitReview(product_id=product_id, rating=rating, title="First impressions")
    outcome["review"] = run(SubmitReviewHandler(context).submit_review(command, actor))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the review status is "{status}"'))
def _(outcome, status):
    assert outcome["error"] is None, f"Unexpected rejection: {outcome['error']!r}"
    assert outcome["review"].status == status


@then(parsers.cfparse('the request fails with status {status:d} and code "{code}"'))
def _(outcome, status, code):
    error = outcome["error"]
    assert error is not None, "Expected the request to be rejected"
    assert error.status_code == status
    assert error.code == code


@then(parsers.cfparse('a "{event_type}" event is published'))
def _(provider, event_type):
    assert provider.events_of_type(event_type), f"No {event_type} in {provider.published}"


@then(parsers.cfparse('no "{event_type}" event is published'))
def _(provider, event_type):
    assert provider.events_of_type(event_type) == []


@then(parsers.cfparse('the "{event_type}" event carries {field} {value}'))
def _(provider, event_type, field, value):
    envelope = provider.events_of_type(event_type)[-1]
    expected = {"true": True, "false": False}.get(value, value.strip('"'))
    if isinstance(expected, str) and expected.isdigit():
        expected = int(expected)
    assert envelope["data"][field] == expected
