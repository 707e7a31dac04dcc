"""Durable scan cursor: which query/page we are on and what has been seen."""

import json
from dataclasses import dataclass, field
from pathlib import Path

from .errors import PersistenceFailure
from .log import get_logger


def file_key(file_id):
    repo, path = file_id
    return f"{repo}:{path}"


def parse_file_key(key):
    # repository full names never contain ':'
    repo, _, path = str(key).partition(":")
    return (repo, path)


@dataclass
class ScanState:
    query_index: int = 0
    page_index: int = 0
    visited_files: set = field(default_factory=set)
    session_secrets: set = field(default_factory=set)
    scanned_repos: set = field(default_factory=set)

    def copy(self):
        return ScanState(
            self.query_index,
            self.page_index,
            set(self.visited_files),
            set(self.session_secrets),
            set(self.scanned_repos),
        )

    def to_dict(self):
        return {
            "lastQuery": self.query_index,
            "lastPage": self.page_index,
            "scannedRepos": sorted(self.scanned_repos),
            "scannedFiles": sorted(file_key(f) for f in self.visited_files),
            "foundWebhooks": sorted(self.session_secrets),
        }

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise ValueError("scan state must be a JSON object")
        return cls(
            query_index=max(0, int(data.get("lastQuery") or 0)),
            page_index=max(0, int(data.get("lastPage") or 0)),
            visited_files={parse_file_key(k) for k in data.get("scannedFiles") or []},
            session_secrets=set(data.get("foundWebhooks") or []),
            scanned_repos=set(data.get("scannedRepos") or []),
        )


class CheckpointFile:
    def __init__(self, path, logger=None):
        self.path = Path(path)
        self.log = get_logger(logger)

    def load(self):
        """Read the persisted state; a missing or corrupt file means a fresh start."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            state = ScanState.from_dict(data)
        except FileNotFoundError:
            self.log.info("No previous scan state found, starting fresh")
            return ScanState()
        except (OSError, ValueError, TypeError) as e:
            self.log.warning(f"Ignoring unreadable scan state {self.path}: {e}")
            return ScanState()
        self.log.info(
            f"Loaded scan state: query {state.query_index}, page {state.page_index}, "
            f"{len(state.scanned_repos)} repos, {len(state.visited_files)} files, "
            f"{len(state.session_secrets)} webhooks"
        )
        return state

    def persist(self, state):
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(state.to_dict(), indent=2), encoding="utf-8")
        except OSError as e:
            raise PersistenceFailure(f"could not write scan state {self.path}: {e}") from e
        self.log.debug("Saved scan state")

    def reset(self):
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise PersistenceFailure(f"could not remove scan state {self.path}: {e}") from e
        self.log.info("Scan state reset")
        return ScanState()
