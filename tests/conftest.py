from __future__ import annotations

import dataclasses
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict

import pytest

# Ensure local "src/" takes precedence over any globally-installed "celerpay" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from celerpay.api.app import create_app  # noqa: E402
from celerpay.api.config import default_gateway_config  # noqa: E402
from celerpay.api.queries import CelerPayQueries  # noqa: E402
from celerpay.runtime import metrics  # noqa: E402
from celerpay.runtime.accessor import LedgerStateAccessor  # noqa: E402
from celerpay.runtime.snapshots import MemorySnapshotStore, Snapshot, SnapshotResolver  # noqa: E402

Json = Dict[str, Any]


def _h(n: int) -> str:
    return "0x" + f"{n:02x}" * 32


IDS = SimpleNamespace(
    ledger=_h(0x01),
    wallet_registry=_h(0x02),
    pool=_h(0x03),
    pay_resolver=_h(0x04),
    alice=_h(0xA1),
    bob=_h(0xA2),
    carol=_h(0xA3),
    channel=_h(0xC1),
    empty_channel=_h(0xC2),
    unknown_channel=_h(0xCF),
    wallet=_h(0xD1),
    unknown_wallet=_h(0xDF),
    pay_hash=_h(0xE1),
    list_hash_a=_h(0x5A),
    list_hash_b=_h(0x5B),
    block=[_h(0xB0), _h(0xB1), _h(0xB2)],
)


def _peer(account: str, **kw: Any) -> Json:
    rec: Json = {"account": account}
    rec.update(kw)
    return rec


def _state(*, api_version: int, height: int) -> Json:
    """Ledger state at a given height. Later heights extend earlier ones."""
    ids = IDS
    channel: Json = {
        "status": 1,
        "settle_finalized_time": None,
        "cooperative_withdraw_seq_num": 1,
        "peers": [
            _peer(
                ids.alice,
                deposit=100 + height,
                withdrawal=10,
                seq_num=3 + height,
                transfer_out=7,
                next_pay_id_list_hash=ids.list_hash_a,
                last_pay_resolve_deadline=40,
                pending_pay_out=2,
            ),
            _peer(
                ids.bob,
                deposit=200,
                withdrawal=20 + height,
                seq_num=5,
                transfer_out=9,
                next_pay_id_list_hash=ids.list_hash_b,
                last_pay_resolve_deadline=41,
                pending_pay_out=4,
            ),
        ],
        "withdraw_intent": None,
    }
    st: Json = {
        "api_version": api_version,
        "system": {
            "ledger_id": ids.ledger,
            "wallet_id": ids.wallet_registry,
            "pool_id": ids.pool,
            "pay_resolver_id": ids.pay_resolver,
        },
        "channels": {ids.channel: channel},
        "channel_status_nums": {"1": 1},
        "wallets": {ids.wallet: {"owners": [ids.alice, ids.bob], "balance": 300}},
        "pool": {"balances": {ids.alice: 10}, "allowances": {ids.alice: {ids.bob: 3}}},
    }
    if height >= 1:
        channel["withdraw_intent"] = {
            "receiver": ids.alice,
            "amount": 25,
            "request_time": 90,
            "recipient_channel_id": ids.empty_channel,
        }
        channel["balance_limits"] = 1_000
        channel["balance_limits_enabled"] = True
        st["channels"][ids.empty_channel] = {"status": 1, "peers": []}
        st["channel_status_nums"] = {"1": 2}
    if height >= 2:
        channel["status"] = 2
        channel["settle_finalized_time"] = 120
        st["channel_status_nums"] = {"1": 1, "2": 1}
    return st


def make_snapshots() -> list[Snapshot]:
    return [
        Snapshot(height=0, block_hash=IDS.block[0], state=_state(api_version=1, height=0)),
        Snapshot(height=1, block_hash=IDS.block[1], state=_state(api_version=2, height=1)),
        Snapshot(height=2, block_hash=IDS.block[2], state=_state(api_version=2, height=2)),
    ]


@pytest.fixture
def ids() -> SimpleNamespace:
    return IDS


@pytest.fixture
def snapshots() -> list[Snapshot]:
    return make_snapshots()


@pytest.fixture
def store(snapshots) -> MemorySnapshotStore:
    return MemorySnapshotStore(snapshots)


@pytest.fixture
def queries(store) -> CelerPayQueries:
    metrics.reset()
    return CelerPayQueries(resolver=SnapshotResolver(store), accessor=LedgerStateAccessor())


@pytest.fixture
def app(queries):
    cfg = dataclasses.replace(default_gateway_config(), mode="dev")
    app = create_app(boot_runtime=False, cfg=cfg)
    app.state.queries = queries
    return app


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    with TestClient(app) as c:
        yield c


@pytest.fixture
def unreadable_row_client(tmp_path, snapshots):
    """Client over a sqlite store whose height-1 row holds invalid JSON."""
    from fastapi.testclient import TestClient

    from celerpay.runtime.sqlite_db import SqliteDB, SqliteSnapshotStore

    db = SqliteDB(path=str(tmp_path / "celerpay.db"))
    store = SqliteSnapshotStore(db=db)
    for s in snapshots:
        store.put(s)
    with db.write_tx() as con:
        con.execute("UPDATE snapshots SET state_json='{broken' WHERE height=1;")

    metrics.reset()
    cfg = dataclasses.replace(default_gateway_config(), mode="dev")
    app = create_app(boot_runtime=False, cfg=cfg)
    app.state.queries = CelerPayQueries(resolver=SnapshotResolver(store), accessor=LedgerStateAccessor())
    with TestClient(app) as c:
        yield c
