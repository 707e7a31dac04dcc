from __future__ import annotations

import logging

import pytest
import requests

from hookscan.webhook import (
    Verdict,
    WebhookValidator,
    alert_message,
    classify_response,
    text_message,
)

from fakes import HOOK_A, FakeResponse, FakeSession


@pytest.mark.parametrize(
    ("status", "body", "expected"),
    [
        (404, '{"id": "1"}', Verdict.INVALID),
        (401, '{"message": "Invalid Webhook Token", "code": 50027}', Verdict.INVALID),
        (200, '{"code": 10015, "message": "Unknown Webhook"}', Verdict.INVALID),
        (200, '{"id": "111", "name": "bot"}', Verdict.VALID),
        (200, "<html>ok</html>", Verdict.VALID),
        (301, "", Verdict.VALID),
        (200, '{"type": 1}', Verdict.UNKNOWN),
        (200, "[]", Verdict.UNKNOWN),
        (500, "server error", Verdict.INVALID),
        (429, '{"retry_after": 1.5}', Verdict.INVALID),
    ],
)
def test_classify_response(status: int, body: str, expected: Verdict) -> None:
    assert classify_response(status, body) is expected


def test_validate_issues_get_probe() -> None:
    session = FakeSession(FakeResponse(200, {"id": "111"}))
    validator = WebhookValidator(session=session, timeout=3)

    assert validator.validate(HOOK_A) is Verdict.VALID
    method, url, kwargs = session.requests[0]
    assert (method, url, kwargs["timeout"]) == ("GET", HOOK_A, 3)


def test_network_failure_is_invalid() -> None:
    session = FakeSession(requests.ConnectionError("down"), requests.Timeout("slow"))
    validator = WebhookValidator(session=session)

    assert validator.validate(HOOK_A) is Verdict.INVALID
    assert validator.validate(HOOK_A) is Verdict.INVALID


def test_unknown_counts_as_valid_for_callers() -> None:
    validator = WebhookValidator(session=FakeSession(FakeResponse(200, {"type": 1})))

    assert validator.is_valid(HOOK_A) is True


def test_notify_validates_then_posts_message() -> None:
    session = FakeSession(FakeResponse(200, {"id": "1"}), FakeResponse(204, text=""))
    validator = WebhookValidator(session=session)
    message = text_message("hello")

    assert validator.notify(HOOK_A, message) is True
    assert [r[0] for r in session.requests] == ["GET", "POST"]
    assert session.requests[1][2]["json"] == {"content": "hello", "embeds": []}


def test_notify_skips_invalid_webhook() -> None:
    session = FakeSession(FakeResponse(404, text=""))
    validator = WebhookValidator(session=session)

    assert validator.notify(HOOK_A, text_message("hi")) is False
    assert [r[0] for r in session.requests] == ["GET"]


def test_notify_reports_rate_limit(caplog: pytest.LogCaptureFixture) -> None:
    session = FakeSession(FakeResponse(429, {"retry_after": 2}, headers={"Retry-After": "2"}))
    logger = logging.getLogger("tests.notify")
    validator = WebhookValidator(session=session, logger=logger)

    with caplog.at_level(logging.WARNING, logger="tests.notify"):
        assert validator.notify(HOOK_A, text_message("hi"), validate=False) is False

    assert "Retry after 2 seconds" in caplog.text
    assert HOOK_A not in caplog.text


def test_alert_message_wraps_embed() -> None:
    embed = {"title": "t", "color": 1}

    message = alert_message(embed)

    assert message == {"content": None, "embeds": [embed]}
    assert message["embeds"][0] is not embed
