"""hookscan: find exposed Discord webhooks on GitHub and keep them on disk."""

from .checkpoint import CheckpointFile, ScanState
from .engine import ScanEngine, ScanOptions, ScanResult
from .extract import extract_webhooks
from .storage import ChunkStore
from .webhook import Verdict, WebhookValidator

__version__ = "1.0.0"

__all__ = [
    "CheckpointFile",
    "ChunkStore",
    "ScanEngine",
    "ScanOptions",
    "ScanResult",
    "ScanState",
    "Verdict",
    "WebhookValidator",
    "extract_webhooks",
]
