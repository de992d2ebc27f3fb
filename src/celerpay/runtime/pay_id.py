# src/celerpay/runtime/pay_id.py

from __future__ import annotations

import hashlib

from celerpay.ledger.constants import ID_BYTES
from celerpay.ledger.types import AccountId, Hash, PayHash, id_bytes


def _blake2_256(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=ID_BYTES).digest()


def compute_pay_id(*, pay_hash: PayHash, pay_resolver_id: AccountId) -> Hash:
    """Compute the payment identifier for a conditional payment.

    Contract:
      - pay_id = blake2b-256(pay_hash || pay_resolver_id), raw 32-byte inputs
      - depends on nothing but its two inputs
    """
    return "0x" + _blake2_256(id_bytes(pay_hash) + id_bytes(pay_resolver_id)).hex()
