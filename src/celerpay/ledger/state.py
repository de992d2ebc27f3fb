# src/celerpay/ledger/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from celerpay.ledger.types import AccountId, Balance, BlockNumber, ChannelId, Hash, WalletId, parse_id

def _coerce_int(v: Any, *, field: str) -> int:
    try:
        # bool is an int subclass; disallow it explicitly
        if isinstance(v, bool):
            raise ValueError("bool is not a valid int")
        n = int(v)
    except Exception as e:
        raise ValueError(f"ledger state schema error: field '{field}' must be int-coercible (got {type(v).__name__})") from e
    if n < 0:
        raise ValueError(f"ledger state schema error: field '{field}' must be non-negative")
    return n


def _opt_int(v: Any, *, field: str) -> Optional[int]:
    return None if v is None else _coerce_int(v, field=field)


def _coerce_id(v: Any, *, field: str) -> str:
    try:
        return parse_id(v, field=field)
    except ValueError as e:
        raise ValueError(f"ledger state schema error: {e}") from e


def _require_dict(v: Any, *, field: str) -> Dict[str, Any]:
    if isinstance(v, dict):
        return v
    if v is None:
        return {}
    raise ValueError(f"ledger state schema error: field '{field}' must be dict (got {type(v).__name__})")


def _require_list(v: Any, *, field: str) -> List[Any]:
    if isinstance(v, list):
        return v
    if v is None:
        return []
    raise ValueError(f"ledger state schema error: field '{field}' must be list (got {type(v).__name__})")


def _coerce_bool(v: Any, *, field: str) -> bool:
    if v is None:
        return False
    if not isinstance(v, bool):
        raise ValueError(f"ledger state schema error: field '{field}' must be bool (got {type(v).__name__})")
    return v


def _normalise_keys(table: Dict[str, Any], *, field: str) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in table.items():
        key = _coerce_id(k, field=f"{field} key")
        if key in out:
            raise ValueError(f"ledger state schema error: duplicate key {key} in '{field}'")
        out[key] = v
    return out


def normalize_state(state: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of a state document with every id-keyed table in canonical key form.

    Snapshot stores apply this on write, so reads use exact key lookups.
    Raises ValueError for a key that is not an id or that collides with
    another key once normalised. Tables of the wrong shape are kept as-is
    and reported by the read that touches them.
    """
    doc = dict(state)
    for name in ("channels", "wallets"):
        if isinstance(doc.get(name), dict):
            doc[name] = _normalise_keys(doc[name], field=name)
    if not isinstance(doc.get("pool"), dict):
        return doc
    pool = dict(doc["pool"])
    if isinstance(pool.get("balances"), dict):
        pool["balances"] = _normalise_keys(pool["balances"], field="pool.balances")
    if isinstance(pool.get("allowances"), dict):
        allowances = _normalise_keys(pool["allowances"], field="pool.allowances")
        pool["allowances"] = {
            owner: _normalise_keys(per_owner, field=f"pool.allowances[{owner}]") if isinstance(per_owner, dict) else per_owner
            for owner, per_owner in allowances.items()
        }
    doc["pool"] = pool
    return doc


@dataclass(frozen=True, slots=True)
class PeerState:
    account: AccountId
    deposit: Balance = 0
    withdrawal: Balance = 0
    seq_num: int = 0
    transfer_out: Balance = 0
    next_pay_id_list_hash: Hash = "0x" + "00" * 32
    last_pay_resolve_deadline: BlockNumber = 0
    pending_pay_out: Balance = 0

    @classmethod
    def from_dict(cls, d: Any, *, where: str) -> "PeerState":
        rec = _require_dict(d, field=where)
        return cls(
            account=_coerce_id(rec.get("account"), field=f"{where}.account"),
            deposit=_coerce_int(rec.get("deposit", 0), field=f"{where}.deposit"),
            withdrawal=_coerce_int(rec.get("withdrawal", 0), field=f"{where}.withdrawal"),
            seq_num=_coerce_int(rec.get("seq_num", 0), field=f"{where}.seq_num"),
            transfer_out=_coerce_int(rec.get("transfer_out", 0), field=f"{where}.transfer_out"),
            next_pay_id_list_hash=_coerce_id(
                rec.get("next_pay_id_list_hash", "0x" + "00" * 32), field=f"{where}.next_pay_id_list_hash"
            ),
            last_pay_resolve_deadline=_coerce_int(
                rec.get("last_pay_resolve_deadline", 0), field=f"{where}.last_pay_resolve_deadline"
            ),
            pending_pay_out=_coerce_int(rec.get("pending_pay_out", 0), field=f"{where}.pending_pay_out"),
        )


@dataclass(frozen=True, slots=True)
class WithdrawIntent:
    receiver: AccountId
    amount: Balance
    request_time: BlockNumber
    recipient_channel_id: Hash

    @classmethod
    def from_dict(cls, d: Any, *, where: str) -> Optional["WithdrawIntent"]:
        if d is None:
            return None
        rec = _require_dict(d, field=where)
        return cls(
            receiver=_coerce_id(rec.get("receiver"), field=f"{where}.receiver"),
            amount=_coerce_int(rec.get("amount", 0), field=f"{where}.amount"),
            request_time=_coerce_int(rec.get("request_time", 0), field=f"{where}.request_time"),
            recipient_channel_id=_coerce_id(
                rec.get("recipient_channel_id", "0x" + "00" * 32), field=f"{where}.recipient_channel_id"
            ),
        )


@dataclass(frozen=True, slots=True)
class ChannelView:
    """Immutable view of one channel as recorded at a snapshot."""

    channel_id: ChannelId
    status: int
    settle_finalized_time: Optional[BlockNumber] = None
    cooperative_withdraw_seq_num: Optional[int] = None
    peers: Tuple[PeerState, ...] = ()
    withdraw_intent: Optional[WithdrawIntent] = None
    balance_limits: Optional[Balance] = None
    balance_limits_enabled: bool = False

    @classmethod
    def from_dict(cls, channel_id: ChannelId, d: Any) -> "ChannelView":
        where = f"channels[{channel_id}]"
        rec = _require_dict(d, field=where)
        peers = tuple(
            PeerState.from_dict(p, where=f"{where}.peers[{i}]")
            for i, p in enumerate(_require_list(rec.get("peers"), field=f"{where}.peers"))
        )
        seen: set[str] = set()
        for p in peers:
            if p.account in seen:
                raise ValueError(f"ledger state schema error: duplicate peer {p.account} in {where}.peers")
            seen.add(p.account)
        return cls(
            channel_id=channel_id,
            status=_coerce_int(rec.get("status", 0), field=f"{where}.status"),
            settle_finalized_time=_opt_int(rec.get("settle_finalized_time"), field=f"{where}.settle_finalized_time"),
            cooperative_withdraw_seq_num=_opt_int(
                rec.get("cooperative_withdraw_seq_num"), field=f"{where}.cooperative_withdraw_seq_num"
            ),
            peers=peers,
            withdraw_intent=WithdrawIntent.from_dict(rec.get("withdraw_intent"), where=f"{where}.withdraw_intent"),
            balance_limits=_opt_int(rec.get("balance_limits"), field=f"{where}.balance_limits"),
            balance_limits_enabled=_coerce_bool(
                rec.get("balance_limits_enabled"), field=f"{where}.balance_limits_enabled"
            ),
        )

    def peer_map(self) -> Dict[AccountId, PeerState]:
        """Peers keyed by account, in the channel's peer order."""
        return {p.account: p for p in self.peers}


@dataclass(frozen=True, slots=True)
class WalletView:
    wallet_id: WalletId
    owners: Tuple[AccountId, ...] = ()
    balance: Balance = 0

    @classmethod
    def from_dict(cls, wallet_id: WalletId, d: Any) -> "WalletView":
        where = f"wallets[{wallet_id}]"
        rec = _require_dict(d, field=where)
        owners = tuple(
            _coerce_id(o, field=f"{where}.owners[{i}]")
            for i, o in enumerate(_require_list(rec.get("owners"), field=f"{where}.owners"))
        )
        return cls(
            wallet_id=wallet_id,
            owners=owners,
            balance=_coerce_int(rec.get("balance", 0), field=f"{where}.balance"),
        )


@dataclass(frozen=True, slots=True)
class LedgerView:
    """
    Read-only view over one snapshot's state document.

    Roots are parsed lazily: a lookup only validates the part of the
    document it touches.
    """

    system: Dict[str, Any] = field(default_factory=dict)
    channels: Dict[str, Any] = field(default_factory=dict)
    channel_status_nums: Dict[str, Any] = field(default_factory=dict)
    wallets: Dict[str, Any] = field(default_factory=dict)
    pool: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_state(cls, state: Mapping[str, Any]) -> "LedgerView":
        return cls(
            system=_require_dict(state.get("system"), field="system"),
            channels=_require_dict(state.get("channels"), field="channels"),
            channel_status_nums=_require_dict(state.get("channel_status_nums"), field="channel_status_nums"),
            wallets=_require_dict(state.get("wallets"), field="wallets"),
            pool=_require_dict(state.get("pool"), field="pool"),
        )

    def system_account(self, name: str) -> AccountId:
        v = self.system.get(name)
        if v is None:
            raise ValueError(f"ledger state schema error: system account '{name}' is missing")
        return _coerce_id(v, field=f"system.{name}")

    def channel(self, channel_id: ChannelId) -> Optional[ChannelView]:
        rec = self.channels.get(channel_id)
        if rec is None:
            return None
        return ChannelView.from_dict(channel_id, rec)

    def channel_status_num(self, status: int) -> Optional[int]:
        v = self.channel_status_nums.get(str(int(status)))
        return _opt_int(v, field=f"channel_status_nums[{status}]")

    def wallet(self, wallet_id: WalletId) -> Optional[WalletView]:
        rec = self.wallets.get(wallet_id)
        if rec is None:
            return None
        return WalletView.from_dict(wallet_id, rec)

    def pool_balance(self, owner: AccountId) -> Optional[Balance]:
        balances = _require_dict(self.pool.get("balances"), field="pool.balances")
        return _opt_int(balances.get(owner), field=f"pool.balances[{owner}]")

    def allowance(self, owner: AccountId, spender: AccountId) -> Optional[Balance]:
        allowances = _require_dict(self.pool.get("allowances"), field="pool.allowances")
        per_owner = allowances.get(owner)
        if per_owner is None:
            return None
        per_owner = _require_dict(per_owner, field=f"pool.allowances[{owner}]")
        return _opt_int(per_owner.get(spender), field=f"pool.allowances[{owner}][{spender}]")
