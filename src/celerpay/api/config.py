# src/celerpay/api/config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    if v is None:
        return int(default)
    try:
        s = str(v).strip()
        return int(s) if s else int(default)
    except ValueError:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


@dataclass(frozen=True)
class GatewayConfig:
    mode: str  # "dev" | "testnet" | "prod"

    # SQLite file holding the retained snapshots.
    db_path: str

    api_host: str
    api_port: int

    log_level: str

    max_request_bytes: int
    max_batch: int


_ALLOWED_MODES = {"dev", "testnet", "prod"}
_ALLOWED_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def validate_gateway_config(cfg: GatewayConfig) -> None:
    """Fail-fast validation for operator config."""
    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {sorted(_ALLOWED_MODES)}; got: {cfg.mode!r}")

    if not isinstance(cfg.db_path, str) or not cfg.db_path.strip():
        raise ValueError("db_path must be a non-empty string")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if str(cfg.log_level).strip().upper() not in _ALLOWED_LEVELS:
        raise ValueError(f"log_level must be one of {sorted(_ALLOWED_LEVELS)}; got: {cfg.log_level!r}")

    if int(cfg.max_request_bytes) < 1024:
        raise ValueError(f"max_request_bytes must be >= 1024; got: {cfg.max_request_bytes}")

    if int(cfg.max_batch) <= 0:
        raise ValueError(f"max_batch must be > 0; got: {cfg.max_batch}")


def default_gateway_config() -> GatewayConfig:
    return GatewayConfig(
        # Production-safe default: docs disabled unless a mode says otherwise.
        mode="prod",
        db_path="./data/celerpay.db",
        api_host="127.0.0.1",
        api_port=9933,
        log_level="INFO",
        max_request_bytes=1_000_000,
        max_batch=100,
    )


def _from_mapping(raw: Json, base: GatewayConfig) -> GatewayConfig:
    return GatewayConfig(
        mode=_as_str(raw.get("mode"), base.mode).strip().lower(),
        db_path=_as_str(raw.get("db_path"), base.db_path),
        api_host=_as_str(raw.get("api_host"), base.api_host),
        api_port=_as_int(raw.get("api_port"), base.api_port),
        log_level=_as_str(raw.get("log_level"), base.log_level).strip().upper(),
        max_request_bytes=_as_int(raw.get("max_request_bytes"), base.max_request_bytes),
        max_batch=_as_int(raw.get("max_batch"), base.max_batch),
    )


def read_gateway_config_file(path: str, *, base: Optional[GatewayConfig] = None) -> GatewayConfig:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("gateway config must be a JSON object")
    return _from_mapping(raw, base or default_gateway_config())


def _env_overrides() -> Json:
    names = {
        "mode": "CELER_MODE",
        "db_path": "CELER_DB_PATH",
        "api_host": "CELER_API_HOST",
        "api_port": "CELER_API_PORT",
        "log_level": "CELER_LOG_LEVEL",
        "max_request_bytes": "CELER_MAX_REQUEST_BYTES",
        "max_batch": "CELER_MAX_BATCH",
    }
    return {k: os.environ[env] for k, env in names.items() if os.environ.get(env, "").strip()}


def load_gateway_config(*, config_path: Optional[str] = None) -> GatewayConfig:
    """Defaults, then the JSON file (CELER_CONFIG_PATH), then CELER_* env vars."""
    cfg = default_gateway_config()
    p = config_path or os.environ.get("CELER_CONFIG_PATH")
    if p:
        cfg = read_gateway_config_file(p, base=cfg)
    cfg = _from_mapping(_env_overrides(), cfg)
    validate_gateway_config(cfg)
    return cfg
