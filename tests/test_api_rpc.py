from __future__ import annotations

import dataclasses

from fastapi.testclient import TestClient

from celerpay.api.app import create_app
from celerpay.api.config import default_gateway_config
from celerpay.api.errors import APP_ERROR_CODE, INVALID_PARAMS, INVALID_REQUEST, METHOD_NOT_FOUND, PARSE_ERROR
from celerpay.runtime import metrics


def _call(client, method, params=None, req_id=1):
    body = {"jsonrpc": "2.0", "id": req_id, "method": method}
    if params is not None:
        body["params"] = params
    r = client.post("/rpc", json=body)
    assert r.status_code == 200, r.text
    return r.json()


def test_single_call(client, ids) -> None:
    j = _call(client, "celerPayModule_getBalanceMap", [ids.channel])
    assert j == {"jsonrpc": "2.0", "id": 1, "result": [[ids.alice, ids.bob], [102, 200], [10, 22]]}


def test_block_reference_is_last_positional_param(client, ids) -> None:
    assert _call(client, "celerPayModule_getChannelStatus", [ids.channel, 1])["result"] == 1
    assert _call(client, "celerPayModule_getChannelStatus", [ids.channel, ids.block[2]])["result"] == 2
    assert _call(client, "celerPayModule_getChannelStatus", [ids.channel, None])["result"] == 2


def test_named_params(client, ids) -> None:
    j = _call(client, "celerPayModule_allowance", {"owner": ids.alice, "spender": ids.bob, "at": 0})
    assert j["result"] == 3


def test_zero_key_methods(client, ids) -> None:
    assert _call(client, "celerPayModule_getCelerLedgerId")["result"] == ids.ledger
    assert _call(client, "celerPayModule_getPoolId", [0])["result"] == ids.pool


def test_absent_result_is_null(client, ids) -> None:
    j = _call(client, "celerPayModule_getWalletOwners", [ids.unknown_wallet])
    assert "result" in j and j["result"] is None
    assert "error" not in j


def test_misspelled_alias_is_served(client, ids) -> None:
    a = _call(client, "celerPayModule_getSettleFinalizedTime", [ids.channel])
    b = _call(client, "celerPaymodule_getSettleFinalizedTime", [ids.channel])
    assert a["result"] == b["result"] == 120


def test_query_failure_uses_application_code(client, ids) -> None:
    j = _call(client, "celerPayModule_getBalanceLimit", [ids.channel, 0], req_id="abc")
    assert j["id"] == "abc"
    assert "result" not in j
    assert j["error"]["code"] == APP_ERROR_CODE
    assert j["error"]["message"] == "Can't get balance limit"
    assert j["error"]["data"]


def test_past_head_fails(client, ids) -> None:
    j = _call(client, "celerPayModule_getChannelStatus", [ids.channel, 3])
    assert j["error"]["code"] == APP_ERROR_CODE


def test_unknown_method(client) -> None:
    j = _call(client, "celerPayModule_getEverything")
    assert j["error"]["code"] == METHOD_NOT_FOUND


def test_invalid_params(client, ids) -> None:
    assert _call(client, "celerPayModule_getBalanceMap", ["0x1234"])["error"]["code"] == INVALID_PARAMS
    assert _call(client, "celerPayModule_getBalanceMap", [])["error"]["code"] == INVALID_PARAMS
    assert _call(client, "celerPayModule_getBalanceMap", [ids.channel, 1, 2])["error"]["code"] == INVALID_PARAMS
    assert _call(client, "celerPayModule_getBalanceMap", [ids.channel, "latest"])["error"]["code"] == INVALID_PARAMS
    assert _call(client, "celerPayModule_getBalanceMap", {"channel": ids.channel})["error"]["code"] == INVALID_PARAMS
    assert _call(client, "celerPayModule_getChannelStatusNum", [256])["error"]["code"] == INVALID_PARAMS


def test_parse_error(client) -> None:
    r = client.post("/rpc", content=b"{not json", headers={"content-type": "application/json"})
    assert r.status_code == 200
    assert r.json()["error"]["code"] == PARSE_ERROR


def test_invalid_request_object(client) -> None:
    r = client.post("/rpc", json={"jsonrpc": "1.0", "id": 1, "method": "celerPayModule_getPoolId"})
    assert r.json()["error"]["code"] == INVALID_REQUEST
    assert r.json()["id"] is None


def test_batch(client, ids) -> None:
    r = client.post(
        "/rpc",
        json=[
            {"jsonrpc": "2.0", "id": 1, "method": "celerPayModule_getPoolId"},
            {"jsonrpc": "2.0", "method": "celerPayModule_getPoolId"},
            {"jsonrpc": "2.0", "id": 2, "method": "celerPayModule_getChannelStatus", "params": [ids.channel, 99]},
            {"jsonrpc": "2.0", "id": 3, "method": "celerPayModule_balanceOf", "params": [ids.alice]},
        ],
    )
    assert r.status_code == 200
    out = r.json()
    assert [x["id"] for x in out] == [1, 2, 3]
    assert out[0]["result"] == ids.pool
    assert out[1]["error"]["code"] == APP_ERROR_CODE
    assert out[2]["result"] == 10


def test_empty_and_oversized_batch(client, app) -> None:
    assert client.post("/rpc", json=[]).json()["error"]["code"] == INVALID_REQUEST

    n = app.state.cfg.max_batch + 1
    batch = [{"jsonrpc": "2.0", "id": i, "method": "celerPayModule_getPoolId"} for i in range(n)]
    assert client.post("/rpc", json=batch).json()["error"]["code"] == INVALID_REQUEST


def test_notifications_get_no_body(client) -> None:
    r = client.post("/rpc", json={"jsonrpc": "2.0", "method": "celerPayModule_getPoolId"})
    assert r.status_code == 204

    r = client.post("/rpc", json=[{"jsonrpc": "2.0", "method": "celerPayModule_getPoolId"}])
    assert r.status_code == 204


def test_rpc_methods_listing(client) -> None:
    methods = _call(client, "rpc_methods")["result"]
    assert "celerPayModule_getBalanceMap" in methods
    assert "celerPaymodule_getSettleFinalizedTime" in methods
    assert "rpc_methods" in methods
    assert methods == sorted(methods)


def test_rest_and_rpc_agree(client, ids) -> None:
    rpc = _call(client, "celerPayModule_getPeersMigrationInfo", [ids.channel, 1])["result"]
    rest = client.get(f"/v1/channels/{ids.channel}/migration-info", params={"at": 1}).json()["result"]
    assert rpc == rest


def test_unreadable_snapshot_fails_only_its_batch_item(unreadable_row_client, ids) -> None:
    r = unreadable_row_client.post(
        "/rpc",
        json=[
            {"jsonrpc": "2.0", "id": 1, "method": "celerPayModule_getPoolId", "params": [0]},
            {"jsonrpc": "2.0", "id": 2, "method": "celerPayModule_getPoolId", "params": [1]},
        ],
    )
    assert r.status_code == 200
    out = r.json()
    assert out[0] == {"jsonrpc": "2.0", "id": 1, "result": ids.pool}
    assert out[1]["id"] == 2
    assert out[1]["error"]["code"] == APP_ERROR_CODE
    assert out[1]["error"]["message"] == "Can't get pool id"
    assert out[1]["error"]["data"]

    snap = metrics.snapshot()
    assert snap["errors"] == {"get_pool_id:internal": 1}


def test_rpc_without_backend_answers_with_rpc_error() -> None:
    cfg = dataclasses.replace(default_gateway_config(), mode="dev")
    c = TestClient(create_app(boot_runtime=False, cfg=cfg))

    r = c.post("/rpc", json={"jsonrpc": "2.0", "id": 7, "method": "celerPayModule_getPoolId"})
    assert r.status_code == 200
    j = r.json()
    assert j["jsonrpc"] == "2.0"
    assert j["id"] is None
    assert j["error"]["code"] == APP_ERROR_CODE
    assert "result" not in j
