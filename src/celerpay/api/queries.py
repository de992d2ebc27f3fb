# src/celerpay/api/queries.py
"""Query facade: one operation per logical query.

Every operation follows the same path:
  1. resolve the optional snapshot reference
  2. call the matching accessor method at that snapshot with the keys unchanged
  3. shape the raw result for the wire
  4. on failure, raise the normalised ApiError instead of a partial result

Operations hold no state and never depend on each other.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from celerpay.api import shaper
from celerpay.api.errors import normalize_accessor_error, normalize_resolution_error
from celerpay.ledger.types import (
    AccountId,
    ChannelId,
    PayHash,
    SnapshotRef,
    WalletId,
    parse_account_id,
    parse_hash,
    parse_u8,
)
from celerpay.runtime.accessor import StateAccessor
from celerpay.runtime.errors import SnapshotNotFound
from celerpay.runtime.metrics import record_query
from celerpay.runtime.snapshots import Snapshot, SnapshotResolver

Parser = Callable[[Any], Any]

# Transport-side parsers for every key name an operation can declare.
KEY_PARSERS: Dict[str, Parser] = {
    "channel_id": lambda v: parse_hash(v, field="channel_id"),
    "wallet_id": lambda v: parse_hash(v, field="wallet_id"),
    "pay_hash": lambda v: parse_hash(v, field="pay_hash"),
    "owner": lambda v: parse_account_id(v, field="owner"),
    "spender": lambda v: parse_account_id(v, field="spender"),
    "channel_status": lambda v: parse_u8(v, field="channel_status"),
}


@dataclass(frozen=True)
class Operation:
    name: str
    rpc_method: str
    keys: Tuple[str, ...]
    error_message: str
    shape: shaper.Shaper
    aliases: Tuple[str, ...] = ()


def _op(
    name: str,
    rpc_method: str,
    keys: Tuple[str, ...],
    error_message: str,
    shape: shaper.Shaper,
    aliases: Tuple[str, ...] = (),
) -> Operation:
    return Operation(name, rpc_method, keys, error_message, shape, aliases)


_CH = ("channel_id",)

OPERATIONS: Dict[str, Operation] = {
    o.name: o
    for o in (
        _op("get_celer_ledger_id", "celerPayModule_getCelerLedgerId", (), "Can't get celer ledger id", shaper.scalar),
        _op("get_celer_wallet_id", "celerPayModule_getCelerWalletId", (), "Can't get celer wallet id", shaper.scalar),
        _op("get_pool_id", "celerPayModule_getPoolId", (), "Can't get pool id", shaper.scalar),
        _op("get_pay_resolver_id", "celerPayModule_getPayResolverId", (), "Can't get pay resolver id", shaper.scalar),
        _op(
            "get_settle_finalized_time",
            "celerPayModule_getSettleFinalizedTime",
            _CH,
            "Can't get settle finalized time",
            shaper.optional,
            aliases=("celerPaymodule_getSettleFinalizedTime",),
        ),
        _op("get_channel_status", "celerPayModule_getChannelStatus", _CH, "Can't get channel status", shaper.scalar),
        _op(
            "get_cooperative_withdraw_seq_num",
            "celerPayModule_getCooperativeWithdrawSeqNum",
            _CH,
            "Can't get cooperative withdraw sequence number",
            shaper.optional,
        ),
        _op("get_balance_map", "celerPayModule_getBalanceMap", _CH, "Can't get balance map", shaper.balance_map),
        _op(
            "get_state_seq_num_map",
            "celerPayModule_getStateSeqNumMap",
            _CH,
            "Can't get state sequence number map",
            shaper.keyed,
        ),
        _op("get_transfer_out_map", "celerPayModule_getTransferOutMap", _CH, "Can't get transfer out map", shaper.keyed),
        _op(
            "get_next_pay_id_list_hash_map",
            "celerPayModule_getNextPayIdListHashMap",
            _CH,
            "Can't get next pay id list hash map",
            shaper.keyed,
        ),
        _op(
            "get_last_pay_resolve_deadline_map",
            "celerPayModule_getLastPayResolveDeadlineMap",
            _CH,
            "Can't get last pay resolve deadline map",
            shaper.keyed,
        ),
        _op(
            "get_pending_pay_out_map",
            "celerPayModule_getPendingPayOutMap",
            _CH,
            "Can't get pending pay out map",
            shaper.keyed,
        ),
        _op(
            "get_withdraw_intent",
            "celerPayModule_getWithdrawIntent",
            _CH,
            "Can't get withdraw intent",
            shaper.withdraw_intent,
        ),
        _op(
            "get_channel_status_num",
            "celerPayModule_getChannelStatusNum",
            ("channel_status",),
            "Can't get channel status num",
            shaper.optional,
        ),
        _op("get_balance_limit", "celerPayModule_getBalanceLimit", _CH, "Can't get balance limit", shaper.optional),
        _op(
            "get_balance_limits_enabled",
            "celerPayModule_getBalanceLimitsEnabled",
            _CH,
            "Can't get balance limits enabled",
            shaper.optional,
        ),
        _op(
            "get_peers_migration_info",
            "celerPayModule_getPeersMigrationInfo",
            _CH,
            "Can't get peers migration info",
            shaper.migration_info,
        ),
        _op("get_wallet_owners", "celerPayModule_getWalletOwners", ("wallet_id",), "Can't get wallet owners", shaper.sequence),
        _op("get_wallet_balance", "celerPayModule_getBalance", ("wallet_id",), "Can't get wallet balance", shaper.optional),
        _op("get_pool_balance", "celerPayModule_balanceOf", ("owner",), "Can't get pool balance", shaper.optional),
        _op("get_allowance", "celerPayModule_allowance", ("owner", "spender"), "Can't get allowance", shaper.optional),
        _op("calculate_pay_id", "celerPayModule_calculatePayId", ("pay_hash",), "Can't calculate pay id", shaper.scalar),
    )
}

RPC_METHODS: Dict[str, Operation] = {}
for _o in OPERATIONS.values():
    RPC_METHODS[_o.rpc_method] = _o
    for _alias in _o.aliases:
        RPC_METHODS[_alias] = _o


class CelerPayQueries:
    """Snapshot-scoped query facade over a StateAccessor."""

    def __init__(self, *, resolver: SnapshotResolver, accessor: StateAccessor) -> None:
        self._resolver = resolver
        self._accessor = accessor

    @property
    def resolver(self) -> SnapshotResolver:
        return self._resolver

    def head(self) -> Snapshot:
        try:
            return self._resolver.resolve(None)
        except SnapshotNotFound as e:
            raise normalize_resolution_error(e, op="head") from e
        except Exception as e:
            raise normalize_accessor_error(e, op="head", message="Can't get head snapshot") from e

    def run(self, name: str, *keys: Any, at: Optional[SnapshotRef] = None) -> Any:
        """Run a catalogue operation by name. Keys must already be parsed."""
        op = OPERATIONS[name]
        if len(keys) != len(op.keys):
            raise TypeError(f"{name} takes {len(op.keys)} key(s), got {len(keys)}")

        try:
            snap = self._resolver.resolve(at)
        except SnapshotNotFound as e:
            err = normalize_resolution_error(e, op=name)
            record_query(name, error_kind=err.kind.value if err.kind else None)
            raise err from e
        except Exception as e:
            # Store failures (unreadable row, locked file) while loading the snapshot.
            err = normalize_accessor_error(e, op=name, message=op.error_message)
            record_query(name, error_kind=err.kind.value if err.kind else None)
            raise err from e

        try:
            raw = getattr(self._accessor, name)(snap, *keys)
            shaped = op.shape(raw)
        except Exception as e:
            err = normalize_accessor_error(e, op=name, message=op.error_message)
            record_query(name, error_kind=err.kind.value if err.kind else None)
            raise err from e

        record_query(name)
        return shaped

    # ---- System accounts ----

    def get_celer_ledger_id(self, at: Optional[SnapshotRef] = None) -> AccountId:
        return self.run("get_celer_ledger_id", at=at)

    def get_celer_wallet_id(self, at: Optional[SnapshotRef] = None) -> AccountId:
        return self.run("get_celer_wallet_id", at=at)

    def get_pool_id(self, at: Optional[SnapshotRef] = None) -> AccountId:
        return self.run("get_pool_id", at=at)

    def get_pay_resolver_id(self, at: Optional[SnapshotRef] = None) -> AccountId:
        return self.run("get_pay_resolver_id", at=at)

    # ---- Channels ----

    def get_settle_finalized_time(self, channel_id: ChannelId, at: Optional[SnapshotRef] = None) -> Optional[int]:
        return self.run("get_settle_finalized_time", channel_id, at=at)

    def get_channel_status(self, channel_id: ChannelId, at: Optional[SnapshotRef] = None) -> int:
        return self.run("get_channel_status", channel_id, at=at)

    def get_cooperative_withdraw_seq_num(self, channel_id: ChannelId, at: Optional[SnapshotRef] = None) -> Optional[int]:
        return self.run("get_cooperative_withdraw_seq_num", channel_id, at=at)

    def get_balance_map(self, channel_id: ChannelId, at: Optional[SnapshotRef] = None) -> Optional[List[List[Any]]]:
        return self.run("get_balance_map", channel_id, at=at)

    def get_state_seq_num_map(self, channel_id: ChannelId, at: Optional[SnapshotRef] = None) -> Optional[List[List[Any]]]:
        return self.run("get_state_seq_num_map", channel_id, at=at)

    def get_transfer_out_map(self, channel_id: ChannelId, at: Optional[SnapshotRef] = None) -> Optional[List[List[Any]]]:
        return self.run("get_transfer_out_map", channel_id, at=at)

    def get_next_pay_id_list_hash_map(
        self, channel_id: ChannelId, at: Optional[SnapshotRef] = None
    ) -> Optional[List[List[Any]]]:
        return self.run("get_next_pay_id_list_hash_map", channel_id, at=at)

    def get_last_pay_resolve_deadline_map(
        self, channel_id: ChannelId, at: Optional[SnapshotRef] = None
    ) -> Optional[List[List[Any]]]:
        return self.run("get_last_pay_resolve_deadline_map", channel_id, at=at)

    def get_pending_pay_out_map(self, channel_id: ChannelId, at: Optional[SnapshotRef] = None) -> Optional[List[List[Any]]]:
        return self.run("get_pending_pay_out_map", channel_id, at=at)

    def get_withdraw_intent(self, channel_id: ChannelId, at: Optional[SnapshotRef] = None) -> Optional[List[Any]]:
        return self.run("get_withdraw_intent", channel_id, at=at)

    def get_channel_status_num(self, channel_status: int, at: Optional[SnapshotRef] = None) -> Optional[int]:
        return self.run("get_channel_status_num", channel_status, at=at)

    def get_balance_limit(self, channel_id: ChannelId, at: Optional[SnapshotRef] = None) -> Optional[int]:
        return self.run("get_balance_limit", channel_id, at=at)

    def get_balance_limits_enabled(self, channel_id: ChannelId, at: Optional[SnapshotRef] = None) -> Optional[bool]:
        return self.run("get_balance_limits_enabled", channel_id, at=at)

    def get_peers_migration_info(self, channel_id: ChannelId, at: Optional[SnapshotRef] = None) -> Optional[List[List[Any]]]:
        return self.run("get_peers_migration_info", channel_id, at=at)

    # ---- Wallets ----

    def get_wallet_owners(self, wallet_id: WalletId, at: Optional[SnapshotRef] = None) -> Optional[List[AccountId]]:
        return self.run("get_wallet_owners", wallet_id, at=at)

    def get_wallet_balance(self, wallet_id: WalletId, at: Optional[SnapshotRef] = None) -> Optional[int]:
        return self.run("get_wallet_balance", wallet_id, at=at)

    # ---- Pool ----

    def get_pool_balance(self, owner: AccountId, at: Optional[SnapshotRef] = None) -> Optional[int]:
        return self.run("get_pool_balance", owner, at=at)

    def get_allowance(self, owner: AccountId, spender: AccountId, at: Optional[SnapshotRef] = None) -> Optional[int]:
        return self.run("get_allowance", owner, spender, at=at)

    # ---- Pay resolver ----

    def calculate_pay_id(self, pay_hash: PayHash, at: Optional[SnapshotRef] = None) -> str:
        return self.run("calculate_pay_id", pay_hash, at=at)
