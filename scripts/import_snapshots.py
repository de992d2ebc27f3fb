#!/usr/bin/env python3

"""Load snapshot documents into the gateway's SQLite store.

State-machine side tooling: the gateway itself never writes. Each input file
is a JSON object:

  {"height": 12, "block_hash": "0x...", "state": {...}}

or a JSON array of such objects.

Usage:
  python3 scripts/import_snapshots.py snap-000012.json [more.json ...]

Optional env overrides:
  CELER_DB_PATH=./data/celerpay.db
  CELER_KEEP_LAST=0      (0 = keep everything; N = prune to the newest N after import)
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, List

from celerpay.api.structured_logging import configure_structured_logging, log_event
from celerpay.runtime.snapshots import Snapshot
from celerpay.runtime.sqlite_db import SqliteDB, SqliteSnapshotStore

log = logging.getLogger("celerpay.import")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return int(default)


def _load_docs(path: Path) -> List[Any]:
    raw = json.loads(path.read_text(encoding="utf-8"))
    return raw if isinstance(raw, list) else [raw]


def _to_snapshot(doc: Any, *, where: str) -> Snapshot:
    if not isinstance(doc, dict):
        raise ValueError(f"{where}: snapshot document must be a JSON object")
    state = doc.get("state")
    if not isinstance(state, dict):
        raise ValueError(f"{where}: 'state' must be a JSON object")
    return Snapshot(height=int(doc["height"]), block_hash=str(doc["block_hash"]), state=state)


def main(argv: List[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    ap.add_argument("files", nargs="+", type=Path)
    ap.add_argument("--db", default=os.environ.get("CELER_DB_PATH", "./data/celerpay.db"))
    ap.add_argument("--keep-last", type=int, default=_env_int("CELER_KEEP_LAST", 0))
    args = ap.parse_args(argv)

    configure_structured_logging()
    store = SqliteSnapshotStore(db=SqliteDB(path=args.db))

    imported = 0
    for path in args.files:
        for i, doc in enumerate(_load_docs(path)):
            snap = _to_snapshot(doc, where=f"{path}[{i}]")
            store.put(snap)
            imported += 1
            log_event(log, "snapshot_imported", height=snap.height, block_hash=snap.block_hash, file=str(path))

    pruned = store.prune(args.keep_last) if args.keep_last > 0 else 0
    log_event(log, "import_done", imported=imported, pruned=pruned, db=args.db)
    return 0


if __name__ == "__main__":
    sys.exit(main())
