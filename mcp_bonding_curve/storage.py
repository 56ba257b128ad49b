"""
Key-Value State Storage

The bonding curve core persists a handful of scalar records (total supply,
total reserve, the immutable curve and denomination records) under stable keys.
This module provides the store abstraction and the transaction wrapper the
ledger uses to make every multi-step update all-or-nothing.

Components:
- KeyValueStore: protocol for string keys / string values with atomic batches
- MemoryStore: thread-safe in-process dict
- JsonFileStore: MemoryStore persisted as a single JSON document
- Transaction: buffered writes plus compensation callbacks

Consistency:
- ``apply`` writes a whole batch under one lock, so readers using
  ``get_many`` never observe half of a batch.
- A ``Transaction`` buffers writes until the ``with`` block exits cleanly.
  If the block raises, registered compensations run in reverse order, the
  buffer is discarded and the exception propagates unchanged.
"""
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Protocol

from mcp.server.fastmcp.utilities.logging import get_logger

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def get_many(self, keys: Iterable[str]) -> Dict[str, Optional[str]]:
        ...

    def apply(self, writes: Mapping[str, Optional[str]]) -> None:
        """Atomically set every key; a ``None`` value deletes the key."""
        ...


class MemoryStore:
    """In-memory store. All access is serialized through a single lock."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def get_many(self, keys: Iterable[str]) -> Dict[str, Optional[str]]:
        with self._lock:
            return {key: self._data.get(key) for key in keys}

    def apply(self, writes: Mapping[str, Optional[str]]) -> None:
        with self._lock:
            self._apply_locked(writes)

    def _apply_locked(self, writes: Mapping[str, Optional[str]]) -> None:
        for key, value in writes.items():
            if value is None:
                self._data.pop(key, None)
            else:
                self._data[key] = value

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self._data)} keys)"


class JsonFileStore(MemoryStore):
    """
    MemoryStore persisted to ``path`` as one JSON object.

    Each batch is written to a temporary file in the same directory and then
    moved over the previous document with ``os.replace``, so the file on disk
    always holds either the old or the new state.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        initial: Dict[str, str] = {}
        if self.path.exists():
            with open(self.path, "r") as f:
                initial = json.load(f)
            logger.info(f"Loaded {len(initial)} state entries from {self.path}")
        super().__init__(initial)

    def apply(self, writes: Mapping[str, Optional[str]]) -> None:
        with self._lock:
            previous = dict(self._data)
            self._apply_locked(writes)
            try:
                self._flush_locked()
            except OSError:
                self._data = previous
                logger.exception(f"Failed to persist state to {self.path}")
                raise

    def _flush_locked(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(self._data, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


class Transaction:
    """
    Unit of work over a KeyValueStore.

    Usage:
        with Transaction(store) as tx:
            tx.set("a", "1")
            token_ledger.mint(to, amount)
            tx.on_rollback(lambda: token_ledger.burn(to, amount))
            bank.send(...)

    Writes become visible only when the block exits without an exception.
    """

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._writes: Dict[str, Optional[str]] = {}
        self._compensations: List[Callable[[], None]] = []
        self.committed = False

    def get(self, key: str) -> Optional[str]:
        if key in self._writes:
            return self._writes[key]
        return self._store.get(key)

    def set(self, key: str, value: str) -> None:
        self._writes[key] = value

    def delete(self, key: str) -> None:
        self._writes[key] = None

    def on_rollback(self, compensation: Callable[[], None]) -> None:
        """Register an undo step for a side effect already performed outside the store."""
        self._compensations.append(compensation)

    def commit(self) -> None:
        self._store.apply(self._writes)
        self.committed = True

    def rollback(self) -> None:
        for compensation in reversed(self._compensations):
            try:
                compensation()
            except Exception:
                # Keep unwinding; the original failure is re-raised by __exit__.
                logger.exception("Compensation step failed during rollback")
        self._writes.clear()
        self._compensations.clear()

    def __enter__(self) -> "Transaction":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            try:
                self.commit()
            except Exception:
                self.rollback()
                raise
        else:
            self.rollback()
        return False
