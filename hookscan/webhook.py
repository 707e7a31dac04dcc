"""Probe discovered webhooks and send exposure alerts through them."""

import enum
import json

import requests

from .log import get_logger, mask_url

# Discord API error codes for dead webhooks
UNKNOWN_WEBHOOK = 10015
INVALID_WEBHOOK_TOKEN = 50027
DEAD_WEBHOOK_CODES = frozenset({UNKNOWN_WEBHOOK, INVALID_WEBHOOK_TOKEN})


class Verdict(enum.Enum):
    VALID = "valid"
    INVALID = "invalid"
    UNKNOWN = "unknown"


def classify_response(status, body):
    """Map a probe's status code and raw body to a verdict.

    ``body`` is the response text; it is parsed as JSON here so the caller
    need not care whether the endpoint answered with JSON at all.
    """
    if status == 404:
        return Verdict.INVALID
    data = None
    parsed = False
    if body:
        try:
            data = json.loads(body)
            parsed = True
        except ValueError:
            pass

    if isinstance(data, dict):
        if data.get("code") in DEAD_WEBHOOK_CODES:
            return Verdict.INVALID
        if data.get("id"):
            return Verdict.VALID
    if not 200 <= status < 400:
        return Verdict.INVALID
    if not parsed:
        return Verdict.VALID
    return Verdict.UNKNOWN


def text_message(content):
    return {"content": content, "embeds": []}


def alert_message(embed):
    return {"content": None, "embeds": [dict(embed)]}


class WebhookValidator:
    def __init__(self, session=None, timeout=5.0, logger=None, reveal_urls=False):
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.log = get_logger(logger)
        self.reveal_urls = reveal_urls

    def _show(self, url):
        return mask_url(url, self.reveal_urls)

    def validate(self, url):
        try:
            resp = self.session.get(url, timeout=self.timeout, allow_redirects=False)
        except requests.RequestException as e:
            self.log.debug(f"Error validating webhook {self._show(url)}: {e}")
            return Verdict.INVALID
        verdict = classify_response(resp.status_code, resp.text)
        self.log.debug(f"Webhook {self._show(url)} is {verdict.value} (status: {resp.status_code})")
        return verdict

    def is_valid(self, url):
        return self.validate(url) is not Verdict.INVALID

    def notify(self, url, message, validate=True):
        """POST ``message`` to the webhook; True when Discord accepted it."""
        if validate and not self.is_valid(url):
            self.log.warning(f"Skipping notification to invalid webhook: {self._show(url)}")
            return False
        try:
            resp = self.session.post(url, json=message, timeout=self.timeout)
        except requests.RequestException as e:
            self.log.error(f"Error sending notification to {self._show(url)}: {e}")
            return False
        if resp.ok:
            self.log.info(f"Sent notification to {self._show(url)}")
            return True
        self.log.warning(f"Failed to send notification to {self._show(url)}: {resp.status_code} {resp.text[:200]}")
        if resp.status_code == 429:
            retry_after = resp.headers.get("Retry-After")
            if retry_after:
                self.log.warning(f"Rate limited. Retry after {retry_after} seconds.")
        return False
