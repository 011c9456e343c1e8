"""Key-value persistence with tri-state read outcomes and version-checked writes.

Every blob is stored as JSON text. A blob's version is a short hash of that
text, so no bookkeeping lives inside the stored data. Writers pass the version
they read as ``expected_version``; if the blob changed underneath them the
write is refused with ``SaveStatus.CONFLICT`` instead of silently clobbering
the other writer's update.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, ContextManager, Iterator

from filelock import FileLock

logger = logging.getLogger(__name__)

# Seconds to wait for another process holding a key's file lock
LOCK_TIMEOUT = 10.0

# Version reported for a key that does not exist yet
ABSENT_VERSION = "absent"


class LoadStatus(Enum):
    OK = "ok"
    MISSING = "missing"
    UNAVAILABLE = "unavailable"
    CORRUPT = "corrupt"


class SaveStatus(Enum):
    OK = "ok"
    UNAVAILABLE = "unavailable"
    CONFLICT = "conflict"


@dataclass
class LoadResult:
    status: LoadStatus
    value: object = None
    version: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == LoadStatus.OK


def compute_version(raw: str) -> str:
    """Compute a stable short hash of a stored blob."""
    return hashlib.sha256(raw.encode()).hexdigest()[:16]


class StorageUnavailableError(OSError):
    """Raised by backends when no persistence substrate is reachable."""


class KeyValueStore:
    """Base store: subclasses provide raw text reads and writes.

    ``_read_raw`` returns None for an absent key and raises OSError when the
    substrate cannot be reached. ``_write_raw`` writes text, or deletes the key
    when given None, and raises OSError on failure. ``_lock`` guards one key
    against other writers for the span of a version check plus its write.
    """

    def _read_raw(self, key: str) -> str | None:
        raise NotImplementedError

    def _write_raw(self, key: str, raw: str | None) -> None:
        raise NotImplementedError

    def _lock(self, key: str) -> ContextManager:
        return nullcontext()

    def load(self, key: str) -> LoadResult:
        try:
            raw = self._read_raw(key)
        except OSError as e:
            logger.debug("Store unavailable reading %s: %s", key, e)
            return LoadResult(LoadStatus.UNAVAILABLE)

        if raw is None:
            return LoadResult(LoadStatus.MISSING, version=ABSENT_VERSION)

        version = compute_version(raw)
        try:
            value = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Corrupt blob for %s: %s", key, e)
            return LoadResult(LoadStatus.CORRUPT, version=version)

        return LoadResult(LoadStatus.OK, value=value, version=version)

    def save(
        self,
        key: str,
        value: object,
        expected_version: str | None = None,
    ) -> SaveStatus:
        """Write value under key (None deletes it).

        When expected_version is given the write only happens if the stored
        blob still has that version. The check and the write happen under the
        key's lock, so no other writer can land in between.
        """
        try:
            raw = None if value is None else json.dumps(value, indent=2)
            with self._lock(key):
                if expected_version is not None:
                    current = self._read_raw(key)
                    current_version = (
                        ABSENT_VERSION if current is None else compute_version(current)
                    )
                    if current_version != expected_version:
                        logger.debug(
                            "Version conflict on %s: expected %s, found %s",
                            key,
                            expected_version,
                            current_version,
                        )
                        return SaveStatus.CONFLICT
                self._write_raw(key, raw)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Failed to save %s: %s", key, e)
            return SaveStatus.UNAVAILABLE

        return SaveStatus.OK


MAX_WRITE_ATTEMPTS = 3

# Returned by an update callback that decided nothing needs writing
UNCHANGED = object()


def update_with_retry(
    store: KeyValueStore,
    key: str,
    mutate: Callable[[LoadResult], object],
    attempts: int = MAX_WRITE_ATTEMPTS,
) -> bool:
    """Run a read-modify-write cycle on key, retrying on version conflicts.

    mutate receives the fresh LoadResult and returns the new JSON value
    (None deletes the key) or UNCHANGED. It must be safe to call again on
    newer state. Returns True when the result is persisted (or nothing needed
    writing), False when the write was dropped.
    """
    for attempt in range(1, attempts + 1):
        result = store.load(key)
        new_value = mutate(result)
        if new_value is UNCHANGED:
            return True

        status = store.save(key, new_value, expected_version=result.version)
        if status == SaveStatus.OK:
            return True
        if status == SaveStatus.UNAVAILABLE:
            logger.warning("Storage unavailable, dropped write to %s", key)
            return False
        logger.debug("Concurrent update on %s (attempt %d/%d)", key, attempt, attempts)

    logger.warning(
        "Gave up writing %s after %d conflicting attempts; update lost", key, attempts
    )
    return False


class MemoryStore(KeyValueStore):
    """In-process store, used by tests and one-shot runs."""

    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.blobs: dict[str, str] = {}
        self._write_lock = threading.Lock()

    def _lock(self, key: str) -> ContextManager:
        return self._write_lock

    def _check(self) -> None:
        if not self.available:
            raise StorageUnavailableError("memory store marked unavailable")

    def _read_raw(self, key: str) -> str | None:
        self._check()
        return self.blobs.get(key)

    def _write_raw(self, key: str, raw: str | None) -> None:
        self._check()
        if raw is None:
            self.blobs.pop(key, None)
        else:
            self.blobs[key] = raw

    def put_raw(self, key: str, raw: str) -> None:
        """Store raw text as-is, bypassing serialization."""
        self.blobs[key] = raw


class NullStore(KeyValueStore):
    """A store with no substrate: reads are unavailable, writes are dropped."""

    def _read_raw(self, key: str) -> str | None:
        raise StorageUnavailableError("no persistence substrate")

    def _write_raw(self, key: str, raw: str | None) -> None:
        raise StorageUnavailableError("no persistence substrate")


class JsonFileStore(KeyValueStore):
    """One ``<key>.json`` file per key inside a directory.

    Writers to the same key, in this process or another one, serialize on a
    ``<key>.json.lock`` file next to the data.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    @contextmanager
    def _lock(self, key: str) -> Iterator[None]:
        self.directory.mkdir(parents=True, exist_ok=True)
        lock_path = self.path_for(key).with_name(f"{key}.json.lock")
        with FileLock(str(lock_path), timeout=LOCK_TIMEOUT):
            yield

    def _read_raw(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def _write_raw(self, key: str, raw: str | None) -> None:
        path = self.path_for(key)
        if raw is None:
            path.unlink(missing_ok=True)
            return

        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.directory, prefix=f".{key}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(raw)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
