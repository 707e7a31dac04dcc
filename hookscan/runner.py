import time
from datetime import datetime, timezone

from .checkpoint import CheckpointFile
from .engine import ScanEngine, ScanOptions
from .errors import MissingCredential, PersistenceFailure
from .github import GitHubClient
from .log import get_logger
from .storage import ChunkStore
from .webhook import Verdict, WebhookValidator, alert_message


def build_store(settings, logger=None):
    return ChunkStore(settings.data_dir, settings.chunk_size_bytes, settings.clear_existing_chunks, logger)


def build_validator(settings, logger=None):
    return WebhookValidator(timeout=settings.validation_timeout, logger=logger,
                            reveal_urls=settings.log_webhook_urls)


def perform_scan(settings, continuous=False, state=None, logger=None,
                 client=None, store=None, validator=None, checkpoint=None, sleep=time.sleep):
    """Scan, persist what was found, and alert new webhooks when configured.

    Continuous mode saves incrementally and resumes from the checkpoint (or
    from ``state`` when the caller carries it over from the previous cycle).
    """
    log = get_logger(logger)
    started = datetime.now(timezone.utc)
    if not settings.github_token and client is None:
        raise MissingCredential("GitHub token is required. Set GITHUB_TOKEN environment variable.")

    client = client or GitHubClient(settings.github_token, logger=logger)
    store = store or build_store(settings, logger)
    validator = validator or build_validator(settings, logger)
    checkpoint = checkpoint or CheckpointFile(settings.checkpoint_path, logger)
    log.info(f"Starting scan at {started.isoformat()} (data directory: {store.data_dir})")

    before = set(store.load_all())
    engine = ScanEngine(
        client, store, checkpoint,
        options=ScanOptions.from_settings(settings, save_incrementally=continuous),
        validator=validator,
        logger=logger,
        sleep=sleep,
    )
    result = engine.scan(state=state, resume=continuous and settings.continue_previous_scan)
    log.info(f"Found {len(result.found)} webhooks in scan")

    if result.unsaved:
        log.warning(f"Retrying save of {len(result.unsaved)} unsaved webhooks")
        try:
            store.append(result.unsaved)
        except PersistenceFailure as e:
            log.error(f"Error saving webhooks: {e}")

    if settings.notifications_enabled and settings.auto_notify_new:
        fresh = [w for w in result.found if w not in before]
        if fresh:
            log.info(f"Auto-notifying {len(fresh)} new webhooks")
            message = alert_message(settings.alert_embed)
            for i, webhook in enumerate(fresh):
                if i:
                    sleep(settings.notification_delay)
                validator.notify(webhook, message, validate=settings.validate_before_notify)

    elapsed = (datetime.now(timezone.utc) - started).total_seconds()
    log.info(f"Scan completed (duration: {elapsed:.2f}s)")
    return result


def run_continuous(settings, logger=None, cycles=None, pause=1.0, sleep=time.sleep, **collaborators):
    """Repeat scans, carrying session state from one cycle into the next."""
    log = get_logger(logger)
    state = None
    done = 0
    while cycles is None or done < cycles:
        log.info(f"Starting scan #{done + 1}...")
        result = perform_scan(settings, continuous=True, state=state, logger=logger,
                              sleep=sleep, **collaborators)
        state = result.state
        done += 1
        if cycles is None or done < cycles:
            sleep(pause)
    return state


def validate_stored(store, validator, prune=False, progress=None):
    """Probe every stored webhook; optionally drop the invalid ones."""
    webhooks = list(dict.fromkeys(store.load_all()))
    valid, invalid = [], []
    for i, webhook in enumerate(webhooks, 1):
        if validator.validate(webhook) is Verdict.INVALID:
            invalid.append(webhook)
        else:
            valid.append(webhook)
        if progress and i % 10 == 0:
            progress(i, len(webhooks))
    if prune and invalid:
        store.remove(invalid)
    return valid, invalid


def broadcast(store, validator, message, chunk=None):
    """Send ``message`` to every stored webhook (or one chunk's); returns (sent, total)."""
    webhooks = store.load_all() if chunk is None else store.load_chunk(chunk)
    sent = 0
    for webhook in webhooks:
        if validator.notify(webhook, message, validate=True):
            sent += 1
    return sent, len(webhooks)
