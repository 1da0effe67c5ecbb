"""Thread-safe helpers for atomic JSON persistence."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, TypeVar

T = TypeVar("T")

LOGGER = logging.getLogger(__name__)

_LOCKS: dict[str, threading.RLock] = {}
_LOCKS_GUARD = threading.Lock()


class StorageError(RuntimeError):
    """Raised when a JSON file cannot be written."""


def _get_lock(path: Path) -> threading.RLock:
    with _LOCKS_GUARD:
        key = str(path.resolve())
        lock = _LOCKS.get(key)
        if lock is None:
            lock = threading.RLock()
            _LOCKS[key] = lock
        return lock


def _load(path: Path, sample: T) -> T:
    if not path.exists():
        return sample
    try:
        with path.open("r", encoding="utf-8") as f:
            loaded = json.load(f)
    except (json.JSONDecodeError, OSError) as exc:
        LOGGER.warning("unreadable json file %s (%s), using default", path, exc)
        return sample
    if isinstance(loaded, type(sample)):
        return loaded  # type: ignore[return-value]
    LOGGER.warning("json file %s holds %s, expected %s", path, type(loaded).__name__, type(sample).__name__)
    return sample


def _dump(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_fd, tmp_name = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=path.name + ".",
        suffix=".tmp",
    )
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as tmp:
            json.dump(data, tmp, ensure_ascii=False, indent=2)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except OSError as exc:
        raise StorageError(f"failed writing {path}: {exc}") from exc
    finally:
        if os.path.exists(tmp_name):
            try:
                os.remove(tmp_name)
            except OSError:
                LOGGER.debug("could not remove temp file %s", tmp_name)


def read_json(path: Path, default_factory: Callable[[], T] | None = None) -> T:
    """Read *path* under its lock; missing or corrupt files give the default."""

    if default_factory is None:
        default_factory = dict  # type: ignore[assignment]
    path = Path(path)
    with _get_lock(path):
        return _load(path, default_factory())


@contextmanager
def atomic_write_json(path: Path, default_factory: Callable[[], T] | None = None) -> Iterator[T]:
    """Read-modify-write JSON atomically with an in-process lock.

    The yielded object is written back (temp file + ``os.replace``) when the
    block exits normally. If the block raises, nothing is written.
    """

    if default_factory is None:
        default_factory = dict  # type: ignore[assignment]

    path = Path(path)
    with _get_lock(path):
        data = _load(path, default_factory())
        yield data
        _dump(path, data)
