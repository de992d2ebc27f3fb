from __future__ import annotations

from fastapi.testclient import TestClient

from celerpay.api.app import create_app
from celerpay.api.errors import INVALID_REQUEST


def test_request_size_limit_returns_413(monkeypatch):
    # Smallest limit the config accepts.
    monkeypatch.setenv("CELER_MAX_REQUEST_BYTES", "1024")
    monkeypatch.setenv("CELER_MODE", "dev")
    monkeypatch.delenv("CELER_CONFIG_PATH", raising=False)

    app = create_app(boot_runtime=False)
    c = TestClient(app)

    payload = {"jsonrpc": "2.0", "id": 1, "method": "celerPayModule_getPoolId", "params": ["x" * 2000]}

    r = c.post("/rpc", json=payload)
    assert r.status_code == 413

    j = r.json()
    assert j.get("ok") is False
    assert isinstance(j.get("error"), dict)
    assert j["error"].get("code") == INVALID_REQUEST
