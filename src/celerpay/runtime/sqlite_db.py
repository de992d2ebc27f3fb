# src/celerpay/runtime/sqlite_db.py
from __future__ import annotations

import json
import os
import random
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional, Tuple

from celerpay.ledger.state import normalize_state
from celerpay.ledger.types import parse_hash
from celerpay.runtime.snapshots import Snapshot, SnapshotStore

SCHEMA_VERSION = 1

_SCHEMA: Tuple[str, ...] = (
    "CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT NOT NULL);",
    """
    CREATE TABLE IF NOT EXISTS snapshots (
      height INTEGER PRIMARY KEY,
      block_hash TEXT NOT NULL,
      state_json TEXT NOT NULL,
      created_ts_ms INTEGER NOT NULL
    );
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_snapshots_block_hash ON snapshots(block_hash);",
)

_SELECT = "SELECT height, block_hash, state_json FROM snapshots"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _env_ms(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    try:
        return max(0, int(raw)) if raw else int(default)
    except ValueError:
        return int(default)


def _encode_state(state: Any) -> str:
    # Sorted keys so identical states store byte-identical rows.
    return json.dumps(state, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True)
class SqliteTuning:
    """Lock and timeout knobs, all in milliseconds."""

    connect_timeout_ms: int = 30_000
    busy_timeout_ms: int = 30_000
    write_deadline_ms: int = 30_000

    @classmethod
    def from_env(cls) -> "SqliteTuning":
        connect = _env_ms("CELER_SQLITE_CONNECT_TIMEOUT_MS", cls.connect_timeout_ms)
        return cls(
            connect_timeout_ms=connect,
            busy_timeout_ms=_env_ms("CELER_SQLITE_BUSY_TIMEOUT_MS", connect),
            write_deadline_ms=max(250, _env_ms("CELER_SQLITE_WRITE_DEADLINE_MS", cls.write_deadline_ms)),
        )


def _locked(e: sqlite3.OperationalError) -> bool:
    msg = str(e).lower()
    return "database is locked" in msg or "database is busy" in msg


def _begin_immediate(con: sqlite3.Connection, deadline_ms: int) -> None:
    """Take the writer lock, backing off with jitter until the deadline passes."""
    give_up_at = _now_ms() + deadline_ms
    attempt = 0
    while True:
        try:
            con.execute("BEGIN IMMEDIATE;")
            return
        except sqlite3.OperationalError as e:
            if not _locked(e) or _now_ms() >= give_up_at:
                raise
            delay = min(0.25, 0.005 * (2.0 ** min(attempt, 8)))
            time.sleep(delay * (0.5 + random.random()))
            attempt += 1


class SqliteDB:
    """One SQLite file holding every retained snapshot.

    Connections are opened per operation and never shared between threads.
    WAL keeps gateway readers from blocking on the importer's writes.
    """

    def __init__(self, *, path: str, tuning: Optional[SqliteTuning] = None) -> None:
        self.path = str(path)
        self.tuning = tuning or SqliteTuning.from_env()

    def _connect(self) -> sqlite3.Connection:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        con = sqlite3.connect(
            self.path,
            timeout=self.tuning.connect_timeout_ms / 1000.0,
            isolation_level=None,  # explicit BEGIN/COMMIT
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row

        journal = con.execute("PRAGMA journal_mode=WAL;").fetchone()
        if journal is not None and str(journal[0]).lower() != "wal":
            con.close()
            raise RuntimeError(f"sqlite journal_mode is '{journal[0]}', expected 'wal'")

        for pragma in ("synchronous=NORMAL", "temp_store=MEMORY", f"busy_timeout={self.tuning.busy_timeout_ms}"):
            con.execute(f"PRAGMA {pragma};")
        return con

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        with self.connection() as con:
            _begin_immediate(con, self.tuning.write_deadline_ms)
            try:
                yield con
                con.execute("COMMIT;")
            except Exception:
                con.execute("ROLLBACK;")
                raise

    def init_schema(self) -> None:
        """Create tables on first use; refuse a file written by another schema version."""
        with self.write_tx() as con:
            for ddl in _SCHEMA:
                con.execute(ddl)

            row = con.execute("SELECT value FROM meta WHERE key='schema_version';").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(SCHEMA_VERSION),))
                return

            have = str(row["value"]).strip()
            if have != str(SCHEMA_VERSION):
                raise RuntimeError(
                    f"sqlite schema_version mismatch: have={have} want={SCHEMA_VERSION}; "
                    f"refusing to open {self.path}"
                )


class SqliteSnapshotStore(SnapshotStore):
    """Retained snapshots persisted in SQLite, one row per block height."""

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()

    @staticmethod
    def _decode(row: Optional[sqlite3.Row]) -> Optional[Snapshot]:
        if row is None:
            return None
        state = json.loads(str(row["state_json"]))
        if not isinstance(state, dict):
            raise ValueError(f"snapshot state at height {row['height']} is not a JSON object")
        return Snapshot(height=int(row["height"]), block_hash=str(row["block_hash"]), state=state)

    def _one(self, where: str, args: Tuple[Any, ...] = ()) -> Optional[Snapshot]:
        with self._db.connection() as con:
            return self._decode(con.execute(f"{_SELECT} {where};", args).fetchone())

    def head(self) -> Optional[Snapshot]:
        return self._one("ORDER BY height DESC LIMIT 1")

    def get(self, height: int) -> Optional[Snapshot]:
        return self._one("WHERE height=?", (int(height),))

    def get_by_hash(self, block_hash: str) -> Optional[Snapshot]:
        return self._one("WHERE block_hash=?", (parse_hash(block_hash),))

    def put(self, snapshot: Snapshot) -> None:
        if not isinstance(snapshot.state, dict):
            raise ValueError("snapshot state must be a dict")
        row = (
            int(snapshot.height),
            parse_hash(snapshot.block_hash, field="block_hash"),
            _encode_state(normalize_state(snapshot.state)),
            _now_ms(),
        )
        with self._db.write_tx() as con:
            con.execute(
                """
                INSERT INTO snapshots(height, block_hash, state_json, created_ts_ms) VALUES(?, ?, ?, ?)
                ON CONFLICT(height) DO UPDATE SET
                  block_hash=excluded.block_hash,
                  state_json=excluded.state_json,
                  created_ts_ms=excluded.created_ts_ms;
                """,
                row,
            )

    def prune(self, keep_last: int) -> int:
        """Delete all but the newest `keep_last` snapshots (at least one is kept)."""
        keep = max(1, int(keep_last))
        with self._db.write_tx() as con:
            cur = con.execute(
                "DELETE FROM snapshots WHERE height NOT IN (SELECT height FROM snapshots ORDER BY height DESC LIMIT ?);",
                (keep,),
            )
            return int(cur.rowcount or 0)
