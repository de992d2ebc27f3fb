# src/celerpay/runtime/snapshots.py
from __future__ import annotations

import copy
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from celerpay.ledger.constants import MIN_API_VERSION
from celerpay.ledger.state import normalize_state
from celerpay.ledger.types import SnapshotRef, parse_hash
from celerpay.runtime.errors import SnapshotNotFound


@dataclass(frozen=True)
class Snapshot:
    """An immutable point-in-time view of ledger state, addressed by height."""

    height: int
    block_hash: str
    state: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def api_version(self) -> int:
        v = self.state.get("api_version", MIN_API_VERSION)
        if isinstance(v, bool):
            return 0
        try:
            return int(v)
        except Exception:
            return 0


class SnapshotStore(ABC):
    """Retained snapshots of the state machine.

    Read methods return None when nothing is retained under the given key.
    put() and prune() belong to the state machine side; the gateway only reads.
    """

    @abstractmethod
    def head(self) -> Optional[Snapshot]:
        ...

    @abstractmethod
    def get(self, height: int) -> Optional[Snapshot]:
        ...

    @abstractmethod
    def get_by_hash(self, block_hash: str) -> Optional[Snapshot]:
        ...

    @abstractmethod
    def put(self, snapshot: Snapshot) -> None:
        ...

    @abstractmethod
    def prune(self, keep_last: int) -> int:
        ...


class MemorySnapshotStore(SnapshotStore):
    """In-process snapshot store (tests, dev, embedding)."""

    def __init__(self, snapshots: Optional[List[Snapshot]] = None) -> None:
        self._lock = threading.Lock()
        self._by_height: Dict[int, Snapshot] = {}
        for s in snapshots or []:
            self.put(s)

    def head(self) -> Optional[Snapshot]:
        with self._lock:
            if not self._by_height:
                return None
            return self._by_height[max(self._by_height)]

    def get(self, height: int) -> Optional[Snapshot]:
        with self._lock:
            return self._by_height.get(int(height))

    def get_by_hash(self, block_hash: str) -> Optional[Snapshot]:
        want = parse_hash(block_hash)
        with self._lock:
            for s in self._by_height.values():
                if s.block_hash == want:
                    return s
        return None

    def put(self, snapshot: Snapshot) -> None:
        snap = Snapshot(
            height=int(snapshot.height),
            block_hash=parse_hash(snapshot.block_hash, field="block_hash"),
            state=normalize_state(copy.deepcopy(dict(snapshot.state))),
        )
        with self._lock:
            self._by_height[snap.height] = snap

    def prune(self, keep_last: int) -> int:
        keep = max(1, int(keep_last))
        with self._lock:
            heights = sorted(self._by_height)
            drop = heights[:-keep]
            for h in drop:
                self._by_height.pop(h, None)
        return len(drop)


class SnapshotResolver:
    """Map an optional snapshot reference to a concrete retained snapshot.

    None means the current head, looked up again on every call.
    """

    def __init__(self, store: SnapshotStore) -> None:
        self._store = store

    @property
    def store(self) -> SnapshotStore:
        return self._store

    def resolve(self, at: Optional[SnapshotRef] = None) -> Snapshot:
        if at is None:
            snap = self._store.head()
        elif isinstance(at, int) and not isinstance(at, bool):
            snap = self._store.get(at) if at >= 0 else None
        else:
            try:
                want = parse_hash(at, field="at")
            except ValueError:
                raise SnapshotNotFound(at) from None
            snap = self._store.get_by_hash(want)

        if snap is None:
            raise SnapshotNotFound(at)
        return snap
