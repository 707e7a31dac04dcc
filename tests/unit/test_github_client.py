from __future__ import annotations

import base64

import pytest
import requests

from hookscan.errors import MissingCredential, RateLimited, SearchError, TransientFetchFailure
from hookscan.github import GitHubClient, decode_content, make_session, rate_limit_reset

from fakes import HOOK_A, FakeResponse, FakeSession, search_item


def test_search_sends_query_and_returns_items() -> None:
    items = [search_item("octo/repo", "bot.py")]
    session = FakeSession(FakeResponse(200, {"total_count": 1, "items": items}))
    client = GitHubClient(session=session)

    assert client.search_code("discord.com/api/webhooks", 2) == items
    _, url, kwargs = session.requests[0]
    assert url == "https://api.github.com/search/code"
    assert kwargs["params"] == {"q": "discord.com/api/webhooks", "per_page": 100, "page": 2}


def test_exhausted_quota_raises_rate_limited() -> None:
    headers = {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"}
    client = GitHubClient(session=FakeSession(FakeResponse(403, {"message": "API rate limit"}, headers=headers)))

    with pytest.raises(RateLimited) as info:
        client.search_code("q", 1)

    assert info.value.reset_at == 1700000000
    assert info.value.status == 403


def test_forbidden_with_quota_left_is_plain_search_error() -> None:
    headers = {"X-RateLimit-Remaining": "7", "X-RateLimit-Reset": "1700000000"}
    client = GitHubClient(session=FakeSession(FakeResponse(403, {"message": "nope"}, headers=headers)))

    with pytest.raises(SearchError) as info:
        client.search_code("q", 1)

    assert not isinstance(info.value, RateLimited)
    assert info.value.status == 403


def test_secondary_limit_uses_retry_after() -> None:
    assert rate_limit_reset(403, {"Retry-After": "30"}, now=100.0) == 130.0
    assert rate_limit_reset(429, {"Retry-After": "5"}, now=100.0) == 105.0
    assert rate_limit_reset(422, {"Retry-After": "5"}, now=100.0) is None
    assert rate_limit_reset(403, {}, now=100.0) is None


def test_transport_error_and_bad_json_raise_search_error() -> None:
    session = FakeSession(requests.ConnectionError("boom"), FakeResponse(200, text="<html>"))
    client = GitHubClient(session=session)

    with pytest.raises(SearchError):
        client.search_code("q", 1)
    with pytest.raises(SearchError):
        client.search_code("q", 1)


def test_fetch_text_decodes_base64_content() -> None:
    encoded = base64.b64encode(f"WEBHOOK = '{HOOK_A}'\n".encode()).decode()
    session = FakeSession(FakeResponse(200, {"encoding": "base64", "content": encoded}))
    client = GitHubClient(session=session)

    text = client.fetch_text(search_item("octo/repo", "src/my bot.py"))

    assert HOOK_A in text
    _, url, kwargs = session.requests[0]
    assert url == "https://api.github.com/repos/octo/repo/contents/src/my%20bot.py"
    assert kwargs["params"] == {"ref": "main"}


def test_fetch_failures_are_transient() -> None:
    session = FakeSession(
        FakeResponse(404, {"message": "Not Found"}),
        requests.Timeout("slow"),
        FakeResponse(200, [{"name": "a"}]),
    )
    client = GitHubClient(session=session)
    item = search_item("octo/repo", "x.py")

    for _ in range(3):
        with pytest.raises(TransientFetchFailure):
            client.fetch_text(item)


def test_decode_content_edge_cases() -> None:
    assert decode_content({"encoding": "none", "content": ""}) is None
    assert decode_content(None) is None
    assert decode_content({"encoding": "base64", "content": base64.b64encode(b"\xe9t\xe9").decode()}) == "été"
    with pytest.raises(TransientFetchFailure):
        decode_content({"encoding": "base64", "content": "abc"})


def test_make_session_requires_token() -> None:
    with pytest.raises(MissingCredential):
        make_session("")

    session = make_session("t0ken")
    assert session.headers["Authorization"] == "token t0ken"


def test_session_retries_leave_quota_responses_to_the_caller() -> None:
    retry = make_session("t0ken").get_adapter("https://api.github.com").max_retries

    assert retry.respect_retry_after_header is False
    assert 403 not in retry.status_forcelist
    assert 429 not in retry.status_forcelist
