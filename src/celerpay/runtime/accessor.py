"""celerpay.runtime.accessor

Versioned state accessor: one read method per logical query, each taking the
snapshot to read at followed by the query's keys.

Snapshots carry the accessor api version their state document was written
for. Version handling stays inside this module:
  - versions outside MIN_API_VERSION..CURRENT_API_VERSION are refused
  - queries introduced after a snapshot's version are reported as unsupported
"""

from __future__ import annotations

import functools
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from celerpay.ledger.constants import (
    CURRENT_API_VERSION,
    MIN_API_VERSION,
    NONEXISTENT_CHANNEL_STATUS,
    VALID_CHANNEL_STATUS_CODES,
)
from celerpay.ledger.state import LedgerView, WithdrawIntent
from celerpay.ledger.types import AccountId, Balance, BlockNumber, ChannelId, Hash, PayHash, WalletId
from celerpay.runtime.errors import AccessorError
from celerpay.runtime.pay_id import compute_pay_id
from celerpay.runtime.snapshots import Snapshot

F = TypeVar("F", bound=Callable[..., Any])

# Per-peer values of a channel migration, in wire order after the account:
# (deposit, withdrawal, seq_num, transfer_out, pending_pay_out)
MigrationRow = Tuple[Balance, Balance, int, Balance, Balance]


class StateAccessor(ABC):
    """Read capability of the state machine, addressed at a snapshot."""

    @abstractmethod
    def get_celer_ledger_id(self, at: Snapshot) -> AccountId: ...

    @abstractmethod
    def get_celer_wallet_id(self, at: Snapshot) -> AccountId: ...

    @abstractmethod
    def get_pool_id(self, at: Snapshot) -> AccountId: ...

    @abstractmethod
    def get_pay_resolver_id(self, at: Snapshot) -> AccountId: ...

    @abstractmethod
    def get_settle_finalized_time(self, at: Snapshot, channel_id: ChannelId) -> Optional[BlockNumber]: ...

    @abstractmethod
    def get_channel_status(self, at: Snapshot, channel_id: ChannelId) -> int: ...

    @abstractmethod
    def get_cooperative_withdraw_seq_num(self, at: Snapshot, channel_id: ChannelId) -> Optional[int]: ...

    @abstractmethod
    def get_balance_map(
        self, at: Snapshot, channel_id: ChannelId
    ) -> Optional[Dict[AccountId, Tuple[Balance, Balance]]]: ...

    @abstractmethod
    def get_state_seq_num_map(self, at: Snapshot, channel_id: ChannelId) -> Optional[Dict[AccountId, int]]: ...

    @abstractmethod
    def get_transfer_out_map(self, at: Snapshot, channel_id: ChannelId) -> Optional[Dict[AccountId, Balance]]: ...

    @abstractmethod
    def get_next_pay_id_list_hash_map(self, at: Snapshot, channel_id: ChannelId) -> Optional[Dict[AccountId, Hash]]: ...

    @abstractmethod
    def get_last_pay_resolve_deadline_map(
        self, at: Snapshot, channel_id: ChannelId
    ) -> Optional[Dict[AccountId, BlockNumber]]: ...

    @abstractmethod
    def get_pending_pay_out_map(self, at: Snapshot, channel_id: ChannelId) -> Optional[Dict[AccountId, Balance]]: ...

    @abstractmethod
    def get_withdraw_intent(self, at: Snapshot, channel_id: ChannelId) -> Optional[WithdrawIntent]: ...

    @abstractmethod
    def get_channel_status_num(self, at: Snapshot, channel_status: int) -> Optional[int]: ...

    @abstractmethod
    def get_balance_limit(self, at: Snapshot, channel_id: ChannelId) -> Optional[Balance]: ...

    @abstractmethod
    def get_balance_limits_enabled(self, at: Snapshot, channel_id: ChannelId) -> Optional[bool]: ...

    @abstractmethod
    def get_peers_migration_info(
        self, at: Snapshot, channel_id: ChannelId
    ) -> Optional[Dict[AccountId, MigrationRow]]: ...

    @abstractmethod
    def get_wallet_owners(self, at: Snapshot, wallet_id: WalletId) -> Optional[List[AccountId]]: ...

    @abstractmethod
    def get_wallet_balance(self, at: Snapshot, wallet_id: WalletId) -> Optional[Balance]: ...

    @abstractmethod
    def get_pool_balance(self, at: Snapshot, owner: AccountId) -> Optional[Balance]: ...

    @abstractmethod
    def get_allowance(self, at: Snapshot, owner: AccountId, spender: AccountId) -> Optional[Balance]: ...

    @abstractmethod
    def calculate_pay_id(self, at: Snapshot, pay_hash: PayHash) -> Hash: ...


def _query(since: int = MIN_API_VERSION) -> Callable[[F], F]:
    """Gate a read on the snapshot's api version and map schema errors."""

    def deco(fn: F) -> F:
        @functools.wraps(fn)
        def wrapper(self: "LedgerStateAccessor", at: Snapshot, *keys: Any) -> Any:
            v = at.api_version
            if v < MIN_API_VERSION or v > CURRENT_API_VERSION:
                raise AccessorError(
                    "version_mismatch",
                    f"snapshot api_version {v} is outside supported range {MIN_API_VERSION}..{CURRENT_API_VERSION}",
                    {"height": at.height},
                )
            if v < since:
                raise AccessorError(
                    "unsupported",
                    f"{fn.__name__} requires api_version >= {since}",
                    {"height": at.height, "api_version": v},
                )
            try:
                return fn(self, LedgerView.from_state(at.state), *keys)
            except ValueError as e:
                raise AccessorError("corrupt_state", str(e), {"height": at.height}) from e

        return wrapper  # type: ignore[return-value]

    return deco


class LedgerStateAccessor(StateAccessor):
    """StateAccessor over snapshot state documents (api versions 1..2)."""

    # ---- System accounts ----

    @_query()
    def get_celer_ledger_id(self, view: LedgerView) -> AccountId:
        return view.system_account("ledger_id")

    @_query()
    def get_celer_wallet_id(self, view: LedgerView) -> AccountId:
        return view.system_account("wallet_id")

    @_query()
    def get_pool_id(self, view: LedgerView) -> AccountId:
        return view.system_account("pool_id")

    @_query()
    def get_pay_resolver_id(self, view: LedgerView) -> AccountId:
        return view.system_account("pay_resolver_id")

    # ---- Channels ----

    @_query()
    def get_settle_finalized_time(self, view: LedgerView, channel_id: ChannelId) -> Optional[BlockNumber]:
        ch = view.channel(channel_id)
        return ch.settle_finalized_time if ch is not None else None

    @_query()
    def get_channel_status(self, view: LedgerView, channel_id: ChannelId) -> int:
        ch = view.channel(channel_id)
        return ch.status if ch is not None else NONEXISTENT_CHANNEL_STATUS

    @_query()
    def get_cooperative_withdraw_seq_num(self, view: LedgerView, channel_id: ChannelId) -> Optional[int]:
        ch = view.channel(channel_id)
        return ch.cooperative_withdraw_seq_num if ch is not None else None

    @_query()
    def get_balance_map(self, view: LedgerView, channel_id: ChannelId) -> Optional[Dict[AccountId, Tuple[Balance, Balance]]]:
        ch = view.channel(channel_id)
        if ch is None:
            return None
        return {a: (p.deposit, p.withdrawal) for a, p in ch.peer_map().items()}

    @_query()
    def get_state_seq_num_map(self, view: LedgerView, channel_id: ChannelId) -> Optional[Dict[AccountId, int]]:
        ch = view.channel(channel_id)
        if ch is None:
            return None
        return {a: p.seq_num for a, p in ch.peer_map().items()}

    @_query()
    def get_transfer_out_map(self, view: LedgerView, channel_id: ChannelId) -> Optional[Dict[AccountId, Balance]]:
        ch = view.channel(channel_id)
        if ch is None:
            return None
        return {a: p.transfer_out for a, p in ch.peer_map().items()}

    @_query()
    def get_next_pay_id_list_hash_map(self, view: LedgerView, channel_id: ChannelId) -> Optional[Dict[AccountId, Hash]]:
        ch = view.channel(channel_id)
        if ch is None:
            return None
        return {a: p.next_pay_id_list_hash for a, p in ch.peer_map().items()}

    @_query()
    def get_last_pay_resolve_deadline_map(
        self, view: LedgerView, channel_id: ChannelId
    ) -> Optional[Dict[AccountId, BlockNumber]]:
        ch = view.channel(channel_id)
        if ch is None:
            return None
        return {a: p.last_pay_resolve_deadline for a, p in ch.peer_map().items()}

    @_query()
    def get_pending_pay_out_map(self, view: LedgerView, channel_id: ChannelId) -> Optional[Dict[AccountId, Balance]]:
        ch = view.channel(channel_id)
        if ch is None:
            return None
        return {a: p.pending_pay_out for a, p in ch.peer_map().items()}

    @_query()
    def get_withdraw_intent(self, view: LedgerView, channel_id: ChannelId) -> Optional[WithdrawIntent]:
        ch = view.channel(channel_id)
        return ch.withdraw_intent if ch is not None else None

    @_query()
    def get_channel_status_num(self, view: LedgerView, channel_status: int) -> Optional[int]:
        if int(channel_status) not in VALID_CHANNEL_STATUS_CODES:
            return None
        return view.channel_status_num(channel_status)

    @_query(since=2)
    def get_balance_limit(self, view: LedgerView, channel_id: ChannelId) -> Optional[Balance]:
        ch = view.channel(channel_id)
        return ch.balance_limits if ch is not None else None

    @_query(since=2)
    def get_balance_limits_enabled(self, view: LedgerView, channel_id: ChannelId) -> Optional[bool]:
        ch = view.channel(channel_id)
        return ch.balance_limits_enabled if ch is not None else None

    @_query(since=2)
    def get_peers_migration_info(self, view: LedgerView, channel_id: ChannelId) -> Optional[Dict[AccountId, MigrationRow]]:
        ch = view.channel(channel_id)
        if ch is None:
            return None
        return {
            a: (p.deposit, p.withdrawal, p.seq_num, p.transfer_out, p.pending_pay_out)
            for a, p in ch.peer_map().items()
        }

    # ---- Wallets ----

    @_query()
    def get_wallet_owners(self, view: LedgerView, wallet_id: WalletId) -> Optional[List[AccountId]]:
        w = view.wallet(wallet_id)
        return list(w.owners) if w is not None else None

    @_query()
    def get_wallet_balance(self, view: LedgerView, wallet_id: WalletId) -> Optional[Balance]:
        w = view.wallet(wallet_id)
        return w.balance if w is not None else None

    # ---- Pool ----

    @_query()
    def get_pool_balance(self, view: LedgerView, owner: AccountId) -> Optional[Balance]:
        return view.pool_balance(owner)

    @_query()
    def get_allowance(self, view: LedgerView, owner: AccountId, spender: AccountId) -> Optional[Balance]:
        return view.allowance(owner, spender)

    # ---- Pay resolver ----

    @_query()
    def calculate_pay_id(self, view: LedgerView, pay_hash: PayHash) -> Hash:
        return compute_pay_id(pay_hash=pay_hash, pay_resolver_id=view.system_account("pay_resolver_id"))
