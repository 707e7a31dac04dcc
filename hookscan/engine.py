"""Resumable, rate-limit aware crawl of GitHub code search for webhook URLs.

The engine walks ``(query, page)`` pairs starting at the cursor held in a
:class:`~hookscan.checkpoint.ScanState`. Every file it opens and every URL it
sees is recorded in that state, so a resumed run never reprocesses them.
Accepted URLs are buffered and flushed to the chunk store; the checkpoint is
persisted after each flush, each page, each rate-limit wait and each abort.
"""

import time
from dataclasses import dataclass, field

from . import config
from .errors import PersistenceFailure, QueryAborted, RateLimited, TransientFetchFailure
from .extract import extract_webhooks
from .log import get_logger, mask_url
from .webhook import Verdict

RATE_LIMIT_BUFFER = 1.0


@dataclass
class ScanOptions:
    queries: tuple = config.SEARCH_QUERIES
    pages_per_query: int = config.PAGES_PER_SCAN
    per_page: int = config.RESULTS_PER_PAGE
    save_incrementally: bool = False
    save_interval: int = config.INCREMENTAL_SAVE_INTERVAL
    flush_seconds: float = config.FLUSH_SECONDS
    validate_before_saving: bool = config.VALIDATE_BEFORE_SAVING
    max_rate_limit_waits: int = config.MAX_RATE_LIMIT_WAITS
    reveal_urls: bool = config.LOG_WEBHOOK_URLS

    @classmethod
    def from_settings(cls, settings, save_incrementally=False):
        return cls(
            queries=tuple(settings.search_queries),
            pages_per_query=settings.pages_per_scan,
            per_page=settings.per_page,
            save_incrementally=save_incrementally,
            save_interval=settings.incremental_save_interval,
            flush_seconds=settings.flush_seconds,
            validate_before_saving=settings.validate_before_saving,
            max_rate_limit_waits=settings.max_rate_limit_waits,
            reveal_urls=settings.log_webhook_urls,
        )


@dataclass
class ScanResult:
    found: list
    state: object
    invalid: int = 0
    aborted_queries: list = field(default_factory=list)
    # accepted but not yet in the store because the final flush failed
    unsaved: list = field(default_factory=list)


class _Run:
    """Bookkeeping that lives for one ``scan()`` call only."""

    def __init__(self, now):
        self.found = {}
        self.invalid = set()
        self.pending = []
        self.last_flush = now
        self.aborted = []


class ScanEngine:
    def __init__(self, client, store, checkpoint, options=None, validator=None, logger=None,
                 clock=time.time, sleep=time.sleep):
        self.client = client
        self.store = store
        self.checkpoint = checkpoint
        self.options = options or ScanOptions()
        self.validator = validator
        self.log = get_logger(logger)
        self.clock = clock
        self.sleep = sleep

    def _show(self, url):
        return mask_url(url, self.options.reveal_urls)

    # -----------------------
    # Entry point
    # -----------------------
    def scan(self, state=None, resume=True):
        """Run one pass over every query and return what was accepted.

        ``state`` is copied, never mutated; the updated cursor is returned in
        the result. Without a state the checkpoint is loaded (``resume``) or
        reset.
        """
        if state is None:
            state = self.checkpoint.load() if resume else self.checkpoint.reset()
        else:
            state = state.copy()

        queries = list(self.options.queries)
        if not 0 <= state.query_index < len(queries):
            state.query_index = 0
            state.page_index = 0

        run = _Run(self.clock())
        try:
            for qi in range(state.query_index, len(queries)):
                state.query_index = qi
                query = queries[qi]
                self.log.info(f"Scanning GitHub for query: {query} ({qi + 1}/{len(queries)})")
                try:
                    self._scan_query(query, state, run)
                except QueryAborted as e:
                    self.log.error(f"Aborting query {query!r}: {e}")
                    run.aborted.append(query)
                    self._flush(run)
                    self._persist(state)
                state.page_index = 0
        except KeyboardInterrupt:
            self.log.warning("Scan interrupted, saving progress")
            self._flush(run)
            self._persist(state)
            raise

        self._flush(run)
        self.log.info("Completed all queries, preparing for next cycle")
        state.query_index = 0
        state.page_index = 0
        self._persist(state)

        self.log.info(f"Scan complete. Found {len(run.found)} webhooks, skipped {len(run.invalid)} invalid.")
        return ScanResult(list(run.found), state, len(run.invalid), run.aborted, list(run.pending))

    # -----------------------
    # Pages
    # -----------------------
    def _scan_query(self, query, state, run):
        pages = self.options.pages_per_query
        for page in range(max(1, state.page_index), pages + 1):
            state.page_index = page
            self.log.debug(f"Scanning page {page}/{pages} for query: {query}")
            items = self._fetch_page(query, page, state, run)
            self.log.info(f"Found {len(items)} potential files on page {page}")

            for item in items:
                self._process_item(item, state, run)

            if self.options.save_incrementally and run.pending:
                self._flush(run)
            self._persist(state)

            if len(items) < self.options.per_page:
                break

    def _fetch_page(self, query, page, state, run):
        """One search call, retried on the same page while rate limited."""
        waits = self.options.max_rate_limit_waits
        for attempt in range(waits + 1):
            try:
                return self.client.search_code(query, page, per_page=self.options.per_page)
            except RateLimited as e:
                if attempt == waits:
                    raise QueryAborted(f"still rate limited after {waits} waits") from e
                wait = max(0.0, e.reset_at - self.clock()) + RATE_LIMIT_BUFFER
                self.log.warning(f"Rate limit exceeded. Waiting {wait:.0f}s until reset (page {page})")
                self._flush(run)
                self._persist(state)
                self.sleep(wait)
            except Exception as e:
                raise QueryAborted(f"search failed on page {page}: {e}") from e
        raise QueryAborted("no search attempt made")

    # -----------------------
    # Files and candidates
    # -----------------------
    def _process_item(self, item, state, run):
        repo = item.get("repository") or {}
        full_name = repo.get("full_name", "")
        file_id = (full_name, item.get("path", ""))
        if file_id in state.visited_files:
            self.log.debug(f"Skipping already scanned file: {full_name}:{file_id[1]}")
            return
        state.visited_files.add(file_id)
        state.scanned_repos.add(full_name)

        try:
            text = self.client.fetch_text(item)
        except TransientFetchFailure as e:
            self.log.debug(f"Couldn't access file: {e}")
            return

        matches = extract_webhooks(text)
        if not matches:
            return
        self.log.info(f"Found {len(matches)} potential webhooks in {full_name}/{file_id[1]}")
        for url in matches:
            self._consider(url, state, run)
            self._maybe_flush(state, run)

    def _consider(self, url, state, run):
        if url in run.invalid:
            self.log.debug(f"Skipping already known invalid webhook: {self._show(url)}")
            return
        if url in state.session_secrets:
            self.log.debug(f"Skipping duplicate webhook in current session: {self._show(url)}")
            return
        state.session_secrets.add(url)

        if self.options.validate_before_saving and self.validator is not None:
            if self.validator.validate(url) is Verdict.INVALID:
                run.invalid.add(url)
                self.log.debug(f"Skipped invalid webhook: {self._show(url)}")
                return

        run.found[url] = None
        run.pending.append(url)
        self.log.debug(f"Added webhook: {self._show(url)}")

    # -----------------------
    # Durability
    # -----------------------
    def _maybe_flush(self, state, run):
        if not self.options.save_incrementally or not run.pending:
            return
        overdue = self.clock() - run.last_flush > self.options.flush_seconds
        if len(run.pending) >= self.options.save_interval or overdue:
            if self._flush(run):
                self._persist(state)

    def _flush(self, run):
        if not run.pending:
            return True
        self.log.info(f"Saving {len(run.pending)} webhooks...")
        try:
            self.store.append(run.pending)
        except PersistenceFailure as e:
            # keep the buffer; the next flush point retries it
            self.log.error(f"Error saving webhooks: {e}")
            return False
        run.pending = []
        run.last_flush = self.clock()
        return True

    def _persist(self, state):
        try:
            self.checkpoint.persist(state)
        except PersistenceFailure as e:
            self.log.error(f"Error saving scan state: {e}")
