"""File-backed key/value cache with mtime-based expiry.

Each key maps to exactly one file inside the cache directory; the file's
modification time is the entry's last-write timestamp. An entry is *fresh*
while ``now - mtime <= expires_in_seconds``.

Reads never raise: a missing, unreadable, or concurrently deleted file is a
cache miss. Only :meth:`FileCache.put` reports failures, as
:class:`~jsloader.exceptions.CacheWriteError`, so that a failed write can be
told apart from a skipped one.

Writes go to a temporary file in the cache directory and are moved over the
entry with :func:`os.replace`, all while holding a cross-process
:class:`diskcache.Lock` for the key. Readers therefore see either the old
payload or the new one, never a torn write.

:meth:`FileCache.touch` bumps the mtime of an existing entry. The loader
calls it before a refresh so that requests arriving during a slow download
treat the entry as fresh. This narrows the window for duplicate downloads;
it does not close it.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Optional

import diskcache

from jsloader.exceptions import CacheKeyError, CacheWriteError
from jsloader.models import LoaderConfig

logger = logging.getLogger(__name__)

LOCK_DIRNAME = ".jsloader-locks"
"""Subdirectory of the cache directory holding the diskcache lock store."""

LOCK_EXPIRE_SECONDS = 30
"""A writer that dies while holding the lock releases it after this long."""


def _atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write *data* to *path* atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is removed and the error re-raised.
    """
    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


class FileCache:
    """Durable key -> bytes store with expiry semantics.

    Args:
        cache_directory: Directory holding the cache files. Reads treat a
            missing directory as a miss; the first :meth:`put` creates it
            along with the lock store.
        expires_in_seconds: Freshness window for :meth:`get`.

    Example::

        cache = FileCache("/var/cache/jsloader", expires_in_seconds=300)
        cache.put("tm.channel.0.min.js.cache", b"console.log(1)")
        cache.get("tm.channel.0.min.js.cache")  # b"console.log(1)"
    """

    def __init__(self, cache_directory: str | Path, expires_in_seconds: int) -> None:
        self._directory = Path(cache_directory)
        self._expires = expires_in_seconds
        self._locks: Optional[diskcache.Cache] = None
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(cls, config: LoaderConfig) -> FileCache:
        """Create the cache described by *config*."""
        return cls(config.cache_directory, config.cache_expires_in_seconds)

    @property
    def directory(self) -> Path:
        """The cache directory."""
        return self._directory

    @property
    def expires_in_seconds(self) -> int:
        """The freshness window in seconds."""
        return self._expires

    # ------------------------------------------------------------------ #
    # Key resolution
    # ------------------------------------------------------------------ #

    def full_path(self, key: str) -> Path:
        """Resolve *key* to its file inside the cache directory.

        Only the directory is resolved. The entry itself may be a symlink
        pointing elsewhere; reads follow it and :meth:`put` replaces it.

        Raises:
            CacheKeyError: If *key* is empty, contains a path separator or
                NUL, or is ``.`` or ``..``.
        """
        if not key or key in (".", "..") or "/" in key or "\\" in key or "\x00" in key:
            raise CacheKeyError(f"Invalid cache key: {key!r}")
        return self._directory.resolve() / key

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def get(self, key: str) -> Optional[bytes]:
        """Return the stored bytes if the entry exists and is fresh, else ``None``."""
        path = self.full_path(key)
        try:
            age = time.time() - path.stat().st_mtime
            if age > self._expires:
                return None
            return path.read_bytes()
        except OSError:
            return None

    def get_stale(self, key: str) -> Optional[bytes]:
        """Return the stored bytes regardless of age, or ``None`` if unreadable."""
        path = self.full_path(key)
        try:
            return path.read_bytes()
        except OSError as exc:
            logger.debug("No stale cache entry at %s: %s", path, exc)
            return None

    def is_fresh(self, key: str) -> bool:
        """Return whether the entry exists and is within the freshness window."""
        path = self.full_path(key)
        try:
            return time.time() - path.stat().st_mtime <= self._expires
        except OSError:
            return False

    def stat(self, key: str) -> dict[str, Any]:
        """Describe the entry for *key*.

        Returns:
            A ``dict`` with ``path`` and ``exists``, plus ``size``,
            ``age_seconds`` and ``fresh`` when the entry exists.
        """
        path = self.full_path(key)
        info: dict[str, Any] = {"path": str(path), "exists": False}
        try:
            st = path.stat()
        except OSError:
            return info
        age = time.time() - st.st_mtime
        info.update(
            exists=True,
            size=st.st_size,
            age_seconds=age,
            fresh=age <= self._expires,
        )
        return info

    def is_writable(self) -> bool:
        """Return whether the cache directory exists and is writable."""
        return self._directory.is_dir() and os.access(self._directory, os.W_OK)

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def touch(self, key: str) -> None:
        """Set the entry's mtime to now if it exists and is writable.

        A missing or read-only entry is left alone; this never creates a
        file and never raises.
        """
        path = self.full_path(key)
        try:
            if path.is_file() and os.access(path, os.W_OK):
                os.utime(path, None)
        except OSError as exc:
            logger.debug("Could not touch %s: %s", path, exc)

    def put(self, key: str, data: bytes) -> None:
        """Replace the entry for *key* with *data*.

        Raises:
            CacheWriteError: If the lock cannot be taken or the file cannot
                be written.
        """
        path = self.full_path(key)
        try:
            with diskcache.Lock(self._lock_store(), key, expire=LOCK_EXPIRE_SECONDS):
                _atomic_write_bytes(path, data)
        except (OSError, sqlite3.Error, diskcache.Timeout) as exc:
            raise CacheWriteError(f"Cannot write cache file {path}: {exc}") from exc
        logger.debug("Cached %d bytes at %s", len(data), path)

    def delete(self, key: str) -> bool:
        """Remove the entry for *key*.

        Returns:
            ``True`` if a file was removed, ``False`` if there was nothing
            to remove or it could not be removed.
        """
        path = self.full_path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("Could not delete cache file %s: %s", path, exc)
            return False
        return True

    def close(self) -> None:
        """Close the lock store, if one was opened."""
        with self._locks_guard:
            if self._locks is not None:
                self._locks.close()
                self._locks = None

    def _lock_store(self) -> diskcache.Cache:
        with self._locks_guard:
            if self._locks is None:
                self._locks = diskcache.Cache(str(self._directory / LOCK_DIRNAME))
            return self._locks
