# src/celerpay/ledger/constants.py
from __future__ import annotations

from enum import IntEnum


class ChannelStatus(IntEnum):
    """Channel lifecycle codes as recorded by the ledger."""

    UNINITIALIZED = 0
    OPERABLE = 1
    SETTLING = 2
    CLOSED = 3
    MIGRATED = 4


# Status reported for a channel id the ledger has never seen.
NONEXISTENT_CHANNEL_STATUS = int(ChannelStatus.UNINITIALIZED)

VALID_CHANNEL_STATUS_CODES = frozenset(int(s) for s in ChannelStatus)

# Width of every opaque identifier (account, channel, wallet, hash), in bytes.
ID_BYTES = 32

# Accessor api versions this build can read.
MIN_API_VERSION = 1
CURRENT_API_VERSION = 2
