import os
from dataclasses import dataclass, field, replace

from dotenv import dotenv_values

# -----------------------
# Defaults
# -----------------------
SEARCH_QUERIES = ("discord.com/api/webhooks", "discordapp.com/api/webhooks")
PAGES_PER_SCAN = 5
RESULTS_PER_PAGE = 100  # GitHub max

VALIDATE_BEFORE_SAVING = True
VALIDATION_TIMEOUT = 5.0
INCREMENTAL_SAVE_INTERVAL = 5
FLUSH_SECONDS = 5 * 60
CONTINUE_PREVIOUS_SCAN = True
MAX_RATE_LIMIT_WAITS = 10

DATA_DIR = "data"
CHUNK_SIZE_BYTES = 1024 * 1024
CLEAR_EXISTING_CHUNKS = True

NOTIFICATIONS_ENABLED = True
AUTO_NOTIFY_NEW = False
VALIDATE_BEFORE_NOTIFY = True
NOTIFICATION_DELAY = 1.0

LOG_LEVEL = "INFO"
LOG_FILE = "logs/scanner.log"
LOG_MAX_MB = 5
LOG_MAX_FILES = 10
LOG_WEBHOOK_URLS = False

ALERT_EMBED = {
    "title": "⚠️ Security Alert: Your Discord Webhook is Exposed",
    "description": (
        "Your Discord webhook was found exposed on a public GitHub repository. "
        "We recommend rotating it or protecting it to avoid abuse."
    ),
    "color": 16763904,
    "fields": [
        {
            "name": "What should I do?",
            "value": (
                "1. Delete this webhook and create a new one\n"
                "2. Store your webhook securely (use environment variables)\n"
                "3. Consider using a webhook proxy service"
            ),
        },
        {
            "name": "Why am I receiving this?",
            "value": "This message was sent using your exposed webhook by a security scanner.",
        },
    ],
    "footer": {"text": "hookscan - webhook exposure notice"},
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    github_token: str = None
    search_queries: tuple = SEARCH_QUERIES
    pages_per_scan: int = PAGES_PER_SCAN
    per_page: int = RESULTS_PER_PAGE
    validate_before_saving: bool = VALIDATE_BEFORE_SAVING
    validation_timeout: float = VALIDATION_TIMEOUT
    incremental_save_interval: int = INCREMENTAL_SAVE_INTERVAL
    flush_seconds: float = FLUSH_SECONDS
    continue_previous_scan: bool = CONTINUE_PREVIOUS_SCAN
    max_rate_limit_waits: int = MAX_RATE_LIMIT_WAITS
    data_dir: str = DATA_DIR
    chunk_size_bytes: int = CHUNK_SIZE_BYTES
    clear_existing_chunks: bool = CLEAR_EXISTING_CHUNKS
    notifications_enabled: bool = NOTIFICATIONS_ENABLED
    auto_notify_new: bool = AUTO_NOTIFY_NEW
    validate_before_notify: bool = VALIDATE_BEFORE_NOTIFY
    notification_delay: float = NOTIFICATION_DELAY
    alert_embed: dict = field(default_factory=lambda: dict(ALERT_EMBED))
    log_level: str = LOG_LEVEL
    log_file: str = LOG_FILE
    log_max_bytes: int = LOG_MAX_MB * 1024 * 1024
    log_max_files: int = LOG_MAX_FILES
    log_webhook_urls: bool = LOG_WEBHOOK_URLS

    @property
    def checkpoint_path(self):
        return os.path.join(self.data_dir, "scan_state.json")

    def with_overrides(self, **changes):
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _parse_bool(name, raw):
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _parse_int(name, raw):
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


# env var -> (settings field, parser)
ENV_FIELDS = {
    "GITHUB_TOKEN": ("github_token", lambda n, v: v.strip() or None),
    "HOOKSCAN_DATA_DIR": ("data_dir", lambda n, v: v.strip()),
    "HOOKSCAN_PAGES": ("pages_per_scan", _parse_int),
    "HOOKSCAN_CHUNK_BYTES": ("chunk_size_bytes", _parse_int),
    "HOOKSCAN_SAVE_INTERVAL": ("incremental_save_interval", _parse_int),
    "HOOKSCAN_VALIDATE": ("validate_before_saving", _parse_bool),
    "HOOKSCAN_CLEAR_CHUNKS": ("clear_existing_chunks", _parse_bool),
    "HOOKSCAN_CONTINUE": ("continue_previous_scan", _parse_bool),
    "HOOKSCAN_AUTO_NOTIFY": ("auto_notify_new", _parse_bool),
    "HOOKSCAN_LOG_LEVEL": ("log_level", lambda n, v: v.strip().upper()),
    "HOOKSCAN_LOG_FILE": ("log_file", lambda n, v: v.strip() or None),
    "HOOKSCAN_LOG_URLS": ("log_webhook_urls", _parse_bool),
}


def load_settings(env=None, dotenv_path=".env"):
    """Build settings from defaults, a ``.env`` file, then the real environment.

    Values already present in the environment win over the ``.env`` file.
    """
    merged = {}
    if dotenv_path and os.path.isfile(dotenv_path):
        merged.update({k: v for k, v in dotenv_values(dotenv_path).items() if v is not None})
    merged.update(os.environ if env is None else env)

    values = {}
    for name, (attr, parse) in ENV_FIELDS.items():
        raw = merged.get(name)
        if raw is None:
            continue
        values[attr] = parse(name, raw)
    return Settings(**values)
