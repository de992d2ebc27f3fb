#!/usr/bin/env python3

"""Smoke test for the Celer Pay query gateway.

It verifies:
  - the app boots on a fresh SQLite snapshot store
  - /v1/health and /readyz respond
  - a JSON-RPC query and the matching REST query agree at the head snapshot
  - a query one block past the head fails with the application error code

Usage:
  python3 scripts/smoke.py
"""

from __future__ import annotations

import os
import tempfile

from fastapi.testclient import TestClient

from celerpay.api.app import create_app
from celerpay.api.config import load_gateway_config
from celerpay.api.errors import APP_ERROR_CODE
from celerpay.runtime.snapshots import Snapshot
from celerpay.runtime.sqlite_db import SqliteDB, SqliteSnapshotStore


def _h(n: int) -> str:
    return "0x" + f"{n:02x}" * 32


def main() -> int:
    with tempfile.TemporaryDirectory(prefix="celerpay-smoke-") as td:
        db_path = os.path.join(td, "celerpay.db")
        os.environ["CELER_DB_PATH"] = db_path
        os.environ.setdefault("CELER_MODE", "dev")

        channel_id = _h(0xC1)
        store = SqliteSnapshotStore(db=SqliteDB(path=db_path))
        store.put(
            Snapshot(
                height=1,
                block_hash=_h(0xB1),
                state={
                    "api_version": 2,
                    "system": {"ledger_id": _h(1), "wallet_id": _h(2), "pool_id": _h(3), "pay_resolver_id": _h(4)},
                    "channels": {
                        channel_id: {
                            "status": 1,
                            "peers": [
                                {"account": _h(0xA1), "deposit": 100, "withdrawal": 0},
                                {"account": _h(0xA2), "deposit": 50, "withdrawal": 5},
                            ],
                        }
                    },
                },
            )
        )

        app = create_app(boot_runtime=True, cfg=load_gateway_config())
        c = TestClient(app)

        r = c.get("/v1/health")
        assert r.status_code == 200, r.text
        assert c.get("/readyz").json().get("ok") is True

        rpc = c.post(
            "/rpc",
            json={"jsonrpc": "2.0", "id": 1, "method": "celerPayModule_getBalanceMap", "params": [channel_id]},
        ).json()
        rest = c.get(f"/v1/channels/{channel_id}/balance-map").json()
        assert rpc["result"] == rest["result"], (rpc, rest)

        past = c.post(
            "/rpc",
            json={"jsonrpc": "2.0", "id": 2, "method": "celerPayModule_getChannelStatus", "params": [channel_id, 2]},
        ).json()
        assert past["error"]["code"] == APP_ERROR_CODE, past

        print("OK: health/ready + rpc/rest agree + head+1 rejected", {"balance_map": rest["result"]})
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
