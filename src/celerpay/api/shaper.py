"""Wire shaping for accessor results.

Accessors return Python-native values; callers receive a small set of stable
shapes:

  - scalar            -> as-is
  - optional scalar   -> as-is, None when the entity does not exist
  - keyed collection  -> [keys, values_0, ..., values_n], index-aligned,
                         None when the owning entity does not exist
  - composite tuple   -> fixed-arity list, None when absent

Shaping is structural only: no unit conversion, filtering or truncation.
"""

from __future__ import annotations

from typing import Any, Callable, List, Mapping, Optional, Sequence

from celerpay.ledger.state import WithdrawIntent

Shaper = Callable[[Any], Any]


def scalar(v: Any) -> Any:
    return v


def optional(v: Any) -> Any:
    return v


def keyed(v: Optional[Mapping[str, Any]]) -> Optional[List[List[Any]]]:
    """Ordered mapping key -> value  =>  [keys, values]."""
    if v is None:
        return None
    return [list(v.keys()), list(v.values())]


def keyed_columns(width: int) -> Shaper:
    """Ordered mapping key -> tuple of `width` values  =>  [keys, col_0, ..., col_{width-1}]."""

    def shape(v: Optional[Mapping[str, Sequence[Any]]]) -> Optional[List[List[Any]]]:
        if v is None:
            return None
        keys: List[Any] = []
        cols: List[List[Any]] = [[] for _ in range(width)]
        for k, row in v.items():
            if len(row) != width:
                raise ValueError(f"row for {k!r} has {len(row)} values, expected {width}")
            keys.append(k)
            for i, x in enumerate(row):
                cols[i].append(x)
        return [keys, *cols]

    return shape


def sequence(v: Optional[Sequence[Any]]) -> Optional[List[Any]]:
    if v is None:
        return None
    return list(v)


def withdraw_intent(v: Optional[WithdrawIntent]) -> Optional[List[Any]]:
    if v is None:
        return None
    return [v.receiver, v.amount, v.request_time, v.recipient_channel_id]


balance_map = keyed_columns(2)
migration_info = keyed_columns(5)
