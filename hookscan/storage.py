"""Chunked, size-bounded persistence of the discovered webhook set."""

import json
import re
from pathlib import Path

from .errors import PersistenceFailure
from .log import get_logger

CHUNK_PREFIX = "webhooks_"
CHUNK_NAME_RE = re.compile(r'^webhooks_(\d+)\.json$')

INDENT = 2
# "[\n" + "\n]" around a non-empty array
BRACKET_OVERHEAD = 4
# two spaces of indentation plus ",\n" between items
ITEM_OVERHEAD = INDENT + 2


def _item_size(item):
    return len(json.dumps(item).encode("utf-8"))


def split_chunks(items, limit):
    """Partition ``items`` in order so each serialized chunk fits in ``limit`` bytes.

    A chunk of n items serializes to ``sum(size) + n * ITEM_OVERHEAD + BRACKET_OVERHEAD - 2``
    bytes. An item too large for any chunk gets a chunk of its own.
    """
    chunks = []
    current = []
    current_size = BRACKET_OVERHEAD - 2
    for item in items:
        size = _item_size(item) + ITEM_OVERHEAD
        if current and current_size + size > limit:
            chunks.append(current)
            current = []
            current_size = BRACKET_OVERHEAD - 2
        current.append(item)
        current_size += size
    if current:
        chunks.append(current)
    return chunks


class ChunkStore:
    def __init__(self, data_dir, chunk_size_bytes=1024 * 1024, clear_existing=True, logger=None):
        self.data_dir = Path(data_dir)
        self.chunk_size_bytes = int(chunk_size_bytes)
        self.clear_existing = clear_existing
        self.log = get_logger(logger)

    def chunk_path(self, n):
        return self.data_dir / f"{CHUNK_PREFIX}{n}.json"

    def _chunk_files(self):
        if not self.data_dir.is_dir():
            return []
        found = []
        for p in self.data_dir.iterdir():
            m = CHUNK_NAME_RE.match(p.name)
            if m and p.is_file():
                found.append((int(m.group(1)), p))
        return sorted(found)

    def list_chunk_ids(self):
        return [n for n, _ in self._chunk_files()]

    def clear(self):
        for _, p in self._chunk_files():
            try:
                p.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                raise PersistenceFailure(f"could not remove {p}: {e}") from e

    def save(self, items):
        """Rewrite the whole set as size-bounded chunk files."""
        items = list(items)
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceFailure(f"could not create {self.data_dir}: {e}") from e
        if self.clear_existing:
            self.clear()

        chunks = split_chunks(items, self.chunk_size_bytes) or [[]]
        for i, chunk in enumerate(chunks, 1):
            if len(chunk) == 1 and _item_size(chunk[0]) + ITEM_OVERHEAD + 2 > self.chunk_size_bytes:
                self.log.warning(f"Single entry exceeds the chunk limit of {self.chunk_size_bytes} bytes (chunk {i})")
            path = self.chunk_path(i)
            try:
                path.write_text(json.dumps(chunk, indent=INDENT), encoding="utf-8")
            except OSError as e:
                raise PersistenceFailure(f"could not write {path}: {e}") from e

        self.log.info(f"Saved {len(items)} webhooks to {len(chunks)} file(s) in {self.data_dir}")

    def append(self, new_items):
        """Add the items not already stored; returns the ones actually added."""
        existing = list(dict.fromkeys(self.load_all()))
        known = set(existing)
        unique = [w for w in dict.fromkeys(new_items) if w not in known]
        if not unique:
            self.log.info("All new webhooks already exist in storage")
            return []
        self.save(existing + unique)
        self.log.info(f"Appended {len(unique)} new webhooks. Total: {len(existing) + len(unique)}")
        return unique

    def remove(self, items):
        """Drop ``items`` from the stored set; returns how many were removed."""
        drop = set(items)
        existing = list(dict.fromkeys(self.load_all()))
        kept = [w for w in existing if w not in drop]
        removed = len(existing) - len(kept)
        if removed:
            # a shrinking rewrite must not leave trailing chunks behind, even in append mode
            self.clear()
            self.save(kept)
        return removed

    def _read(self, path):
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            self.log.warning(f"Could not read {path.name}: {e}")
            return None
        if not text.strip():
            self.log.warning(f"Empty webhook file: {path.name}")
            return None
        try:
            data = json.loads(text)
        except ValueError as e:
            self.log.warning(f"Skipping unparseable webhook file {path.name}: {e}")
            return None
        if not isinstance(data, list):
            self.log.warning(f"Invalid webhook file format in {path.name}")
            return None
        return [w for w in data if isinstance(w, str)]

    def load_chunk(self, n):
        return self._read(self.chunk_path(n)) or []

    def load_all(self):
        webhooks = []
        files = self._chunk_files()
        for _, path in files:
            data = self._read(path)
            if data:
                webhooks.extend(data)
        self.log.debug(f"Loaded {len(webhooks)} webhooks from {len(files)} file(s)")
        return webhooks

    def count(self):
        return len(set(self.load_all()))
