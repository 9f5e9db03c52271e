#!/usr/bin/env python3
"""
Backup Storage Module

Durable, origin-scoped key-value storage used for auth session state and
editor backup snapshots. Each origin maps to one JSON document on disk.

The Problem:
- Backup snapshots must survive a crash or page reload
- Several session keeper processes may share the same storage directory

The Solution:
- File-based lock serialises read-modify-write cycles
- Writes go to a temp file and are renamed into place atomically
- Lock timeout prevents deadlocks

Usage:
    storage = FileKeyValueStorage("data/storage", origin="https://app.example.com")
    storage.set(backup_key("abc123"), json.dumps(snapshot))
    raw = storage.get(backup_key("abc123"))
"""

import fcntl
import json
import logging
import os
import re
import time
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

# Default location for storage documents
DEFAULT_STORAGE_DIR = "data/storage"

# Lock timeout in seconds (prevent deadlocks)
LOCK_TIMEOUT = 10

BACKUP_KEY_TEMPLATE = "design_{design_id}_backup"


def backup_key(design_id: str) -> str:
    """Storage key holding the backup snapshot for a design."""
    return BACKUP_KEY_TEMPLATE.format(design_id=design_id)


def _origin_filename(origin: str) -> str:
    """Turn an origin like https://app.example.com:443 into a safe file stem."""
    stem = re.sub(r"[^A-Za-z0-9._-]+", "_", origin).strip("_")
    return stem or "default"


class StorageLockTimeout(OSError):
    """Raised when the storage lock cannot be acquired in time."""


class FileKeyValueStorage:
    """
    Synchronous key-value storage persisted as one JSON file per origin.

    Values are strings, as with browser local storage. Callers serialise
    structured data themselves.
    """

    def __init__(self, directory: Optional[str] = None, origin: str = "default"):
        """
        Initialize the storage.

        Args:
            directory: Directory holding storage documents.
                       Defaults to data/storage.
            origin: Origin the storage is scoped to.
        """
        self.directory = Path(directory or DEFAULT_STORAGE_DIR)
        self.directory.mkdir(parents=True, exist_ok=True)

        self.origin = origin
        stem = _origin_filename(origin)
        self.data_file = self.directory / f"{stem}.json"
        self.lock_file = self.directory / f"{stem}.lock"

        logger.info(f"FileKeyValueStorage initialized: {self.data_file}")

    def _acquire_lock(self, timeout: float = LOCK_TIMEOUT) -> int:
        """
        Acquire the exclusive storage lock.

        Returns:
            File descriptor holding the lock

        Raises:
            StorageLockTimeout: If the lock is not acquired within timeout
        """
        start_time = time.time()
        lock_fd = os.open(str(self.lock_file), os.O_CREAT | os.O_RDWR)

        while True:
            try:
                fcntl.flock(lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                return lock_fd
            except OSError:
                if time.time() - start_time >= timeout:
                    os.close(lock_fd)
                    raise StorageLockTimeout(
                        f"Could not acquire storage lock {self.lock_file} after {timeout}s"
                    )
                time.sleep(0.05)

    def _release_lock(self, lock_fd: int):
        """Release the storage lock."""
        try:
            fcntl.flock(lock_fd, fcntl.LOCK_UN)
        finally:
            os.close(lock_fd)

    def _read(self) -> Dict[str, str]:
        if not self.data_file.exists():
            return {}
        try:
            with open(self.data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Storage document {self.data_file} is corrupt, starting empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]):
        # Write atomically using temp file
        temp_file = self.data_file.with_suffix(".tmp")
        with open(temp_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        temp_file.replace(self.data_file)

    def get(self, key: str) -> Optional[str]:
        """Return the value stored under key, or None."""
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        """Store a string value under key, replacing any previous value."""
        if not isinstance(value, str):
            raise TypeError(f"Storage values must be strings, got {type(value).__name__}")

        lock_fd = self._acquire_lock()
        try:
            data = self._read()
            data[key] = value
            self._write(data)
        finally:
            self._release_lock(lock_fd)

    def remove(self, key: str) -> None:
        """Remove key if present."""
        lock_fd = self._acquire_lock()
        try:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)
        finally:
            self._release_lock(lock_fd)

    def keys(self) -> List[str]:
        return list(self._read().keys())
