"""celerpay.ledger.types

Opaque identifier types and the key parsers used at the transport boundary.

Every identifier (AccountId, ChannelId, WalletId, PayHash, Hash) is a 32-byte
value carried as a lowercase ``0x``-prefixed hex string. The ledger layer never
looks inside them: equality is string equality after normalisation.
"""

from __future__ import annotations

import re
from typing import Any, Optional, Union

from celerpay.ledger.constants import ID_BYTES

AccountId = str
ChannelId = str
WalletId = str
PayHash = str
Hash = str
Balance = int
BlockNumber = int

# A snapshot is addressed by block height, or by the block hash of a retained snapshot.
SnapshotRef = Union[int, str]

_HEX_RE = re.compile(r"^[0-9a-f]+$")

U8_MAX = 0xFF


def parse_id(v: Any, *, field: str = "id") -> str:
    """Normalise a 32-byte identifier to ``0x`` + 64 lowercase hex digits.

    Raises ValueError for anything that is not exactly 32 bytes of hex.
    """
    if not isinstance(v, str):
        raise ValueError(f"{field} must be a hex string (got {type(v).__name__})")
    s = v.strip().lower()
    if s.startswith("0x"):
        s = s[2:]
    if len(s) != ID_BYTES * 2 or not _HEX_RE.match(s):
        raise ValueError(f"{field} must be {ID_BYTES} bytes of hex")
    return "0x" + s


def parse_account_id(v: Any, *, field: str = "account") -> AccountId:
    return parse_id(v, field=field)


def parse_hash(v: Any, *, field: str = "hash") -> Hash:
    return parse_id(v, field=field)


def parse_u8(v: Any, *, field: str = "value") -> int:
    # bool is an int subclass; disallow it explicitly
    if isinstance(v, bool):
        raise ValueError(f"{field} must be an integer")
    if isinstance(v, str):
        s = v.strip()
        if not s.isdigit():
            raise ValueError(f"{field} must be an integer")
        v = int(s)
    if not isinstance(v, int):
        raise ValueError(f"{field} must be an integer")
    if v < 0 or v > U8_MAX:
        raise ValueError(f"{field} must be in 0..{U8_MAX}")
    return int(v)


def id_bytes(v: str) -> bytes:
    return bytes.fromhex(parse_id(v)[2:])


def parse_snapshot_ref(v: Any) -> Optional[SnapshotRef]:
    """Parse an optional snapshot reference.

    Accepts:
      - None / "" -> None (current head)
      - non-negative int, or a decimal string -> block height
      - ``0x``-prefixed 32-byte hex string -> block hash
    """
    if v is None:
        return None
    if isinstance(v, bool):
        raise ValueError("at must be a block number or block hash")
    if isinstance(v, int):
        if v < 0:
            raise ValueError("at must be a non-negative block number")
        return int(v)
    if isinstance(v, str):
        s = v.strip()
        if s == "":
            return None
        if s.lower().startswith("0x"):
            return parse_hash(s, field="at")
        if s.isdigit():
            return int(s)
    raise ValueError("at must be a block number or block hash")
