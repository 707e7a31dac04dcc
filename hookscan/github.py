import base64
import binascii
import time
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter, Retry

from .errors import MissingCredential, RateLimited, SearchError, TransientFetchFailure
from .log import get_logger

# -----------------------
# Config / Defaults
# -----------------------
GITHUB_API = "https://api.github.com"
GITHUB_SEARCH_URL = f"{GITHUB_API}/search/code"
USER_AGENT = "hookscan/1.0"
REQUEST_TIMEOUT = 20


# -----------------------
# HTTP Session (reuse + retries + pooling)
# -----------------------
def make_session(github_token, pool_size=4):
    if not github_token:
        raise MissingCredential("GitHub token is required. Set GITHUB_TOKEN environment variable.")
    s = requests.Session()
    s.headers.update({
        "User-Agent": USER_AGENT,
        "Accept": "application/vnd.github.v3+json",
        "Authorization": f"token {github_token}",
    })
    # 403/429 are left alone: quota waits belong to the scan engine.
    retry = Retry(
        total=5, connect=3, read=3,
        backoff_factor=0.6,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=["GET"],
        respect_retry_after_header=False,
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=pool_size, pool_maxsize=pool_size)
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    return s


def rate_limit_reset(status, headers, now=None):
    """Reset timestamp if the response is a quota signal, else None."""
    if status not in (403, 429):
        return None
    now = time.time() if now is None else now
    rl_remaining = headers.get("X-RateLimit-Remaining")
    rl_reset = headers.get("X-RateLimit-Reset")
    retry_after = headers.get("Retry-After")
    if status == 403 and rl_remaining == "0":
        try:
            return float(int(rl_reset))
        except (TypeError, ValueError):
            return now
    # secondary limits ("abuse detection") only carry Retry-After
    if retry_after:
        try:
            return now + max(float(retry_after), 0.0)
        except ValueError:
            return None
    return None


def decode_content(payload):
    """Text of a contents-API payload, or None when it is not base64 encoded."""
    if not isinstance(payload, dict) or payload.get("encoding") != "base64":
        return None
    try:
        blob = base64.b64decode(payload.get("content") or "")
    except (binascii.Error, ValueError) as e:
        raise TransientFetchFailure(f"could not decode file content: {e}") from e
    for enc in ('utf-8', 'latin-1'):
        try:
            return blob.decode(enc)
        except UnicodeDecodeError:
            continue
    return None


class GitHubClient:
    def __init__(self, token=None, session=None, timeout=REQUEST_TIMEOUT, logger=None):
        self.session = session if session is not None else make_session(token)
        self.timeout = timeout
        self.log = get_logger(logger)

    def search_code(self, query, page, per_page=100):
        params = {"q": query, "per_page": per_page, "page": page}
        try:
            resp = self.session.get(GITHUB_SEARCH_URL, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise SearchError(f"request failed: {e}") from e

        status = resp.status_code
        headers = resp.headers
        reset_at = rate_limit_reset(status, headers)
        if reset_at is not None:
            raise RateLimited(reset_at, status=status, headers=headers)
        if status != 200:
            raise SearchError(f"HTTP {status} - {resp.text[:200]}", status=status, headers=headers)
        try:
            data = resp.json()
        except ValueError as e:
            raise SearchError("could not decode JSON response", status=status, headers=headers) from e
        return data.get("items") or []

    def get_content(self, owner, repo, path, ref=None):
        url = f"{GITHUB_API}/repos/{owner}/{repo}/contents/{quote(path)}"
        params = {"ref": ref} if ref else None
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransientFetchFailure(f"error fetching {owner}/{repo}/{path}: {e}") from e
        if resp.status_code != 200:
            raise TransientFetchFailure(f"HTTP {resp.status_code} fetching {owner}/{repo}/{path}")
        try:
            data = resp.json()
        except ValueError as e:
            raise TransientFetchFailure(f"bad JSON for {owner}/{repo}/{path}") from e
        if not isinstance(data, dict):
            # a directory listing
            raise TransientFetchFailure(f"{owner}/{repo}/{path} is not a file")
        return data

    def fetch_text(self, item):
        """Fetch and decode the file behind a code-search item."""
        repo = item.get("repository") or {}
        owner = (repo.get("owner") or {}).get("login")
        payload = self.get_content(owner, repo.get("name"), item.get("path", ""), repo.get("default_branch"))
        return decode_content(payload)
