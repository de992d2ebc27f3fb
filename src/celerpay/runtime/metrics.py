from __future__ import annotations

import os
import threading
import time
from typing import Dict, List, Optional, Tuple

_lock = threading.Lock()
_queries: Dict[str, int] = {}
_errors: Dict[Tuple[str, str], int] = {}
_started_ms = int(time.time() * 1000)


def metrics_enabled() -> bool:
    v = (os.environ.get("CELER_METRICS_ENABLED") or "").strip().lower()
    return v in {"1", "true", "yes", "y", "on"}


def record_query(op: str, *, error_kind: Optional[str] = None) -> None:
    """Count one query; error_kind is set when it failed."""
    with _lock:
        _queries[op] = _queries.get(op, 0) + 1
        if error_kind:
            key = (op, error_kind)
            _errors[key] = _errors.get(key, 0) + 1


def snapshot() -> dict:
    with _lock:
        now = int(time.time() * 1000)
        return {
            "ts_ms": now,
            "uptime_ms": now - _started_ms,
            "queries_total": sum(_queries.values()),
            "errors_total": sum(_errors.values()),
            "queries": dict(_queries),
            "errors": {f"{op}:{kind}": n for (op, kind), n in _errors.items()},
        }


def reset() -> None:
    with _lock:
        _queries.clear()
        _errors.clear()


def format_prometheus(prefix: str = "celerpay_") -> str:
    """Prometheus text exposition, one labelled series per operation."""
    pre = prefix or "celerpay_"
    with _lock:
        uptime = int(time.time() * 1000) - _started_ms
        queries = sorted(_queries.items())
        errors = sorted(_errors.items())

    lines: List[str] = [
        f"# TYPE {pre}uptime_ms gauge",
        f"{pre}uptime_ms {uptime}",
        f"# TYPE {pre}queries_total counter",
    ]
    lines += [f'{pre}queries_total{{op="{op}"}} {n}' for op, n in queries]
    lines.append(f"# TYPE {pre}query_errors_total counter")
    lines += [f'{pre}query_errors_total{{op="{op}",kind="{kind}"}} {n}' for (op, kind), n in errors]
    return "\n".join(lines) + "\n"
