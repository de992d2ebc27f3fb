from __future__ import annotations

import hashlib

import pytest

from celerpay.ledger.state import WithdrawIntent
from celerpay.runtime.accessor import LedgerStateAccessor
from celerpay.runtime.errors import AccessorError
from celerpay.runtime.pay_id import compute_pay_id
from celerpay.runtime.snapshots import Snapshot


@pytest.fixture
def acc() -> LedgerStateAccessor:
    return LedgerStateAccessor()


def test_system_accounts(acc, snapshots, ids) -> None:
    at = snapshots[1]
    assert acc.get_celer_ledger_id(at) == ids.ledger
    assert acc.get_celer_wallet_id(at) == ids.wallet_registry
    assert acc.get_pool_id(at) == ids.pool
    assert acc.get_pay_resolver_id(at) == ids.pay_resolver


def test_channel_reads_follow_peer_order(acc, snapshots, ids) -> None:
    at = snapshots[1]
    assert acc.get_balance_map(at, ids.channel) == {ids.alice: (101, 10), ids.bob: (200, 21)}
    assert list(acc.get_state_seq_num_map(at, ids.channel)) == [ids.alice, ids.bob]
    assert acc.get_transfer_out_map(at, ids.channel) == {ids.alice: 7, ids.bob: 9}
    assert acc.get_next_pay_id_list_hash_map(at, ids.channel) == {ids.alice: ids.list_hash_a, ids.bob: ids.list_hash_b}
    assert acc.get_last_pay_resolve_deadline_map(at, ids.channel) == {ids.alice: 40, ids.bob: 41}
    assert acc.get_pending_pay_out_map(at, ids.channel) == {ids.alice: 2, ids.bob: 4}
    assert acc.get_cooperative_withdraw_seq_num(at, ids.channel) == 1
    assert acc.get_withdraw_intent(at, ids.channel) == WithdrawIntent(
        receiver=ids.alice, amount=25, request_time=90, recipient_channel_id=ids.empty_channel
    )


def test_unknown_channel_is_absent_not_an_error(acc, snapshots, ids) -> None:
    at = snapshots[2]
    assert acc.get_channel_status(at, ids.unknown_channel) == 0
    assert acc.get_balance_map(at, ids.unknown_channel) is None
    assert acc.get_settle_finalized_time(at, ids.unknown_channel) is None
    assert acc.get_withdraw_intent(at, ids.unknown_channel) is None
    assert acc.get_peers_migration_info(at, ids.unknown_channel) is None


def test_existing_channel_without_peers_gives_empty_maps(acc, snapshots, ids) -> None:
    at = snapshots[1]
    assert acc.get_balance_map(at, ids.empty_channel) == {}
    assert acc.get_transfer_out_map(at, ids.empty_channel) == {}
    assert acc.get_peers_migration_info(at, ids.empty_channel) == {}


def test_reads_are_scoped_to_the_given_snapshot(acc, snapshots, ids) -> None:
    assert acc.get_channel_status(snapshots[1], ids.channel) == 1
    assert acc.get_channel_status(snapshots[2], ids.channel) == 2
    assert acc.get_settle_finalized_time(snapshots[1], ids.channel) is None
    assert acc.get_settle_finalized_time(snapshots[2], ids.channel) == 120


def test_channel_status_num(acc, snapshots) -> None:
    at = snapshots[2]
    assert acc.get_channel_status_num(at, 1) == 1
    assert acc.get_channel_status_num(at, 2) == 1
    assert acc.get_channel_status_num(at, 3) is None
    # Not a defined status code.
    assert acc.get_channel_status_num(at, 200) is None


def test_wallet_and_pool(acc, snapshots, ids) -> None:
    at = snapshots[0]
    assert acc.get_wallet_owners(at, ids.wallet) == [ids.alice, ids.bob]
    assert acc.get_wallet_balance(at, ids.wallet) == 300
    assert acc.get_wallet_owners(at, ids.unknown_wallet) is None
    assert acc.get_wallet_balance(at, ids.unknown_wallet) is None
    assert acc.get_pool_balance(at, ids.alice) == 10
    assert acc.get_pool_balance(at, ids.carol) is None
    assert acc.get_allowance(at, ids.alice, ids.bob) == 3
    assert acc.get_allowance(at, ids.bob, ids.alice) is None


def test_newer_queries_are_unsupported_on_v1_snapshots(acc, snapshots, ids) -> None:
    for fn in (acc.get_balance_limit, acc.get_balance_limits_enabled, acc.get_peers_migration_info):
        with pytest.raises(AccessorError) as ei:
            fn(snapshots[0], ids.channel)
        assert ei.value.code == "unsupported"
        assert ei.value.details["height"] == 0

    assert acc.get_balance_limit(snapshots[1], ids.channel) == 1_000
    assert acc.get_balance_limits_enabled(snapshots[1], ids.channel) is True
    assert acc.get_peers_migration_info(snapshots[1], ids.channel)[ids.bob] == (200, 21, 5, 9, 4)


@pytest.mark.parametrize("version", [0, 3, "x"])
def test_out_of_range_api_version_is_refused(acc, snapshots, ids, version) -> None:
    st = dict(snapshots[1].state)
    st["api_version"] = version
    at = Snapshot(height=5, block_hash="0x" + "b5" * 32, state=st)
    with pytest.raises(AccessorError) as ei:
        acc.get_channel_status(at, ids.channel)
    assert ei.value.code == "version_mismatch"


def test_schema_errors_become_corrupt_state(acc, snapshots, ids) -> None:
    st = dict(snapshots[1].state)
    st["channels"] = {ids.channel: {"status": 1, "peers": [{"account": "nope"}]}}
    at = Snapshot(height=5, block_hash="0x" + "b5" * 32, state=st)
    with pytest.raises(AccessorError) as ei:
        acc.get_balance_map(at, ids.channel)
    assert ei.value.code == "corrupt_state"

    # A read that never touches the bad record still succeeds.
    assert acc.get_celer_ledger_id(at) == ids.ledger


def test_duplicate_peer_is_corrupt_state(acc, snapshots, ids) -> None:
    st = dict(snapshots[1].state)
    peer = {"account": ids.alice, "deposit": 1}
    st["channels"] = {ids.channel: {"status": 1, "peers": [peer, dict(peer, deposit=2)]}}
    at = Snapshot(height=5, block_hash="0x" + "b5" * 32, state=st)
    for fn in (acc.get_balance_map, acc.get_state_seq_num_map, acc.get_peers_migration_info):
        with pytest.raises(AccessorError) as ei:
            fn(at, ids.channel)
        assert ei.value.code == "corrupt_state"


@pytest.mark.parametrize("flag", ["false", 0, 1])
def test_non_bool_limits_flag_is_corrupt_state(acc, snapshots, ids, flag) -> None:
    st = dict(snapshots[1].state)
    st["channels"] = {ids.channel: {"status": 1, "peers": [], "balance_limits_enabled": flag}}
    at = Snapshot(height=5, block_hash="0x" + "b5" * 32, state=st)
    with pytest.raises(AccessorError) as ei:
        acc.get_balance_limits_enabled(at, ids.channel)
    assert ei.value.code == "corrupt_state"


def test_missing_limits_flag_reads_as_disabled(acc, snapshots, ids) -> None:
    st = dict(snapshots[1].state)
    st["channels"] = {ids.channel: {"status": 1, "peers": []}}
    at = Snapshot(height=5, block_hash="0x" + "b5" * 32, state=st)
    assert acc.get_balance_limits_enabled(at, ids.channel) is False


def test_missing_system_account_is_corrupt_state(acc, ids) -> None:
    at = Snapshot(height=0, block_hash="0x" + "b0" * 32, state={"api_version": 2, "system": {}})
    with pytest.raises(AccessorError) as ei:
        acc.get_pool_id(at)
    assert ei.value.code == "corrupt_state"


def test_calculate_pay_id_binds_the_pay_resolver(acc, snapshots, ids) -> None:
    expected = hashlib.blake2b(
        bytes.fromhex(ids.pay_hash[2:]) + bytes.fromhex(ids.pay_resolver[2:]), digest_size=32
    ).hexdigest()
    assert acc.calculate_pay_id(snapshots[2], ids.pay_hash) == "0x" + expected
    assert compute_pay_id(pay_hash=ids.pay_hash, pay_resolver_id=ids.pay_resolver) == "0x" + expected

    # Deterministic and sensitive to both inputs.
    assert acc.calculate_pay_id(snapshots[2], ids.pay_hash) == acc.calculate_pay_id(snapshots[2], ids.pay_hash)
    assert compute_pay_id(pay_hash=ids.pay_hash, pay_resolver_id=ids.ledger) != "0x" + expected
