from __future__ import annotations

from hookscan.extract import extract_webhooks

from fakes import HOOK_A, HOOK_B, HOOK_C


def test_no_matches_in_plain_text() -> None:
    assert extract_webhooks("nothing to see here https://discord.com/channels/1/2") == []


def test_single_match_on_each_host_spelling() -> None:
    assert extract_webhooks(f"url = '{HOOK_A}'") == [HOOK_A]
    assert extract_webhooks(f'WEBHOOK="{HOOK_B}"') == [HOOK_B]


def test_many_matches_deduplicated_in_first_seen_order() -> None:
    text = f"{HOOK_B}\n{HOOK_A} and again {HOOK_B}\n{HOOK_C}\n{HOOK_A}"

    assert extract_webhooks(text) == [HOOK_B, HOOK_A, HOOK_C]


def test_token_case_is_preserved() -> None:
    upper = "https://discord.com/api/webhooks/42/ABCdef"
    lower = "https://discord.com/api/webhooks/42/abcdef"

    assert set(extract_webhooks(f"{upper} {lower}")) == {upper, lower}


def test_match_stops_at_characters_outside_the_token_alphabet() -> None:
    text = f'"{HOOK_A}?wait=true"'

    assert extract_webhooks(text) == [HOOK_A]


def test_non_numeric_id_and_other_hosts_do_not_match() -> None:
    text = (
        "https://discord.com/api/webhooks/abc/token "
        "http://discord.com/api/webhooks/1/token "
        "https://discord.gg/api/webhooks/1/token"
    )

    assert extract_webhooks(text) == []


def test_bytes_and_garbage_input_never_raise() -> None:
    assert extract_webhooks(HOOK_A.encode()) == [HOOK_A]
    assert extract_webhooks(b"\xff\xfe\x00\x81binary") == []
    assert extract_webhooks(None) == []
    assert extract_webhooks(12345) == []
