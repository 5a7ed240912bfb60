# tests/test_executor.py

import json

import pytest

from conftest import OWNER, WEEK, units
from dao_node.dao_executor import DaoExecutor, build_executor
from dao_node.dao_runtime import events as ev
from dao_node.dao_runtime.audit import verify_chain
from dao_node.dao_runtime.errors import (
    ContractPaused,
    InsufficientStake,
    InvalidAmount,
    InvalidArgument,
    ReentrantCall,
    UnknownOperation,
)


def test_unknown_operation(executor):
    with pytest.raises(UnknownOperation):
        executor.call("self_destruct", OWNER)


def test_bad_arguments_are_rejected_before_dispatch(executor):
    with pytest.raises(UnknownOperation):
        executor.call("join", "@a")  # missing stake
    with pytest.raises(UnknownOperation):
        executor.call("get_balance", "@a", extra=1)
    assert len(executor.state.events) == 0


def test_mutating_call_returns_receipt(executor):
    receipt = executor.call("join", "@a", stake=units(1))

    assert receipt["ok"] is True
    assert receipt["op"] == "join"
    assert receipt["event"]["name"] == ev.MEMBER_JOINED
    assert receipt["event"]["seq"] == 1
    assert executor.call("total_voting_power", "@a") == 101
    assert executor.call("get_member_details", "@a")["voting_power"] == 100
    assert executor.call("get_member_details", "@x", identity="@a")["stake"] == units(1)


def test_failed_call_leaves_state_untouched(executor):
    before = executor.state.to_dict()
    with pytest.raises(InsufficientStake):
        executor.call("join", "@a", stake=1)
    assert executor.state.to_dict() == before


def test_unexpected_failure_rolls_back_partial_mutation(executor, monkeypatch):
    before = executor.state.to_dict()

    def boom(*args, **kwargs):
        raise RuntimeError("event store offline")

    monkeypatch.setattr(executor.engine, "_emit", boom)
    with pytest.raises(RuntimeError):
        executor.call("join", "@a", stake=units(1))

    assert executor.state.to_dict() == before
    assert not executor.state.members.is_member("@a")
    assert executor.state.treasury.escrowed_stake == 0


def test_rollback_cuts_only_the_failed_calls_events(executor, monkeypatch):
    executor.call("deposit", "@donor", amount=units(1))
    kept = executor.events_since(0)
    log = executor.state.events

    def fail_after_emit(name, **data):
        log.emit(name, 0, **data)
        raise RuntimeError("listener store offline")

    monkeypatch.setattr(executor.engine, "_emit", fail_after_emit)
    with pytest.raises(RuntimeError):
        executor.call("deposit", "@donor", amount=units(1))

    assert executor.state.events is log
    assert executor.events_since(0) == kept
    assert executor.call("get_balance", "@donor") == units(1)


def test_mistyped_arguments_are_governance_errors(executor):
    executor.call("deposit", "@donor", amount=units(1))
    executor.call("create_proposal", OWNER, title="t", description="d", funding_amount=units("0.5"))
    before = executor.state.to_dict()

    with pytest.raises(InvalidAmount):
        executor.call("deposit", "@donor", amount="abc")
    with pytest.raises(InvalidAmount):
        executor.call("join", "@a", stake=None)
    with pytest.raises(InvalidArgument):
        executor.call("vote", OWNER, proposal_id=1, support="false")
    with pytest.raises(InvalidArgument):
        executor.call("vote", OWNER, proposal_id="1", support=True)
    with pytest.raises(InvalidArgument):
        executor.call("list_proposals", OWNER, limit="10")

    assert executor.state.to_dict() == before
    assert executor.call("get_proposal", OWNER, proposal_id=1)["votes_for"] == 0


def test_listeners_receive_events_and_failures_are_ignored(executor):
    seen = []

    def bad(event):
        raise ValueError("listener bug")

    executor.subscribe(bad)
    executor.subscribe(seen.append)
    executor.call("deposit", "@donor", amount=units(1))
    executor.unsubscribe(seen.append)
    executor.call("deposit", "@donor", amount=units(1))

    assert [e.name for e in seen] == [ev.FUNDS_DEPOSITED]
    assert executor.call("get_balance", "@donor") == units(2)


def test_listeners_not_called_for_failed_operations(executor):
    seen = []
    executor.subscribe(seen.append)
    executor.call("pause", OWNER)
    with pytest.raises(ContractPaused):
        executor.call("deposit", "@donor", amount=1)
    assert [e.name for e in seen] == [ev.PAUSED]


def test_nested_call_from_recipient_is_rejected(executor, sink, clock):
    nested = []

    def hook(recipient, amount):
        try:
            executor.call("deposit", recipient, amount=1)
        except ReentrantCall as e:
            nested.append(e.code)

    executor.call("join", "@a", stake=units(1))
    executor.call("deposit", "@donor", amount=units(2))
    pid = executor.call("create_proposal", "@a", title="t", description="d", funding_amount=units(1))["event"]["data"]["proposal_id"]
    executor.call("vote", "@a", proposal_id=pid, support=True)
    clock.advance(WEEK + 1)
    sink.register_hook("@a", hook)

    receipt = executor.call("execute", OWNER, proposal_id=pid)

    assert nested == ["reentrant_call"]
    assert receipt["event"]["data"]["amount_paid"] == units(1)
    assert executor.call("get_balance", OWNER) == units(1)
    assert executor.check_invariants() == []


def test_event_log_is_hash_chained(executor):
    executor.call("join", "@a", stake=units(1))
    executor.call("deposit", "@donor", amount=units(1))
    executor.call("leave", "@a")

    events = executor.events_since(0)
    assert [e["seq"] for e in events] == [1, 2, 3]
    assert verify_chain(events)
    assert executor.events_since(2) == events[2:]

    tampered = [dict(e) for e in events]
    tampered[1]["data"] = dict(tampered[1]["data"], amount=5)
    assert not verify_chain(tampered)


def test_status_summarises_state(executor):
    executor.call("join", "@a", stake=units(1))
    executor.call("deposit", "@donor", amount=units(2))

    st = executor.call("status", "@anyone")

    assert st["owner"] == OWNER
    assert st["paused"] is False
    assert st["member_count"] == 2
    assert st["total_voting_power"] == 101
    assert st["treasury_balance"] == units(2)
    assert st["escrowed_stake"] == units(1)
    assert st["event_count"] == 2
    assert st["invariants_ok"] is True
    assert st["persistent"] is False


# ============================================================
# Persistence
# ============================================================

def _persistent(tmp_path, clock, sink):
    return DaoExecutor(OWNER, data_dir=str(tmp_path), persist=True, clock=clock, sink=sink)


def test_state_survives_restart(tmp_path, clock, sink):
    ex = _persistent(tmp_path, clock, sink)
    ex.call("join", "@a", stake=units(1))
    ex.call("deposit", "@donor", amount=units(2))
    ex.call("create_proposal", "@a", title="t", description="d", funding_amount=units(1))
    ex.call("vote", "@a", proposal_id=1, support=True)

    again = _persistent(tmp_path, clock, sink)

    assert again.state.to_dict() == ex.state.to_dict()
    assert again.call("has_voted", "@a", proposal_id=1) is True
    assert again.call("get_balance", "@a") == units(2)
    assert ex.status()["state_hash"]


def test_failed_call_is_not_persisted(tmp_path, clock, sink):
    ex = _persistent(tmp_path, clock, sink)
    ex.call("join", "@a", stake=units(1))
    on_disk = (tmp_path / "dao_state.json").read_bytes()
    events_on_disk = ex.store.events_path.read_bytes()

    with pytest.raises(InsufficientStake):
        ex.call("join", "@b", stake=1)

    assert (tmp_path / "dao_state.json").read_bytes() == on_disk
    assert ex.store.events_path.read_bytes() == events_on_disk


def test_corrupt_primary_falls_back_to_backup(tmp_path, clock, sink):
    ex = _persistent(tmp_path, clock, sink)
    ex.call("join", "@a", stake=units(1))
    ex.call("deposit", "@donor", amount=units(2))

    (tmp_path / "dao_state.json").write_text("{ not json", encoding="utf-8")
    again = _persistent(tmp_path, clock, sink)

    assert again.state.members.is_member("@a")
    assert again.call("get_balance", "@a") == 0


def test_hand_edited_primary_fails_hash_check(tmp_path, clock, sink):
    ex = _persistent(tmp_path, clock, sink)
    ex.call("deposit", "@donor", amount=units(2))

    path = tmp_path / "dao_state.json"
    raw = json.loads(path.read_text(encoding="utf-8"))
    raw["treasury"]["balance"] = units(1000)
    path.write_text(json.dumps(raw), encoding="utf-8")

    again = _persistent(tmp_path, clock, sink)
    assert again.call("get_balance", OWNER) == 0


def test_events_are_appended_not_rewritten(tmp_path, clock, sink):
    ex = _persistent(tmp_path, clock, sink)
    ex.call("join", "@a", stake=units(1))
    first = ex.store.events_path.read_bytes()
    ex.call("deposit", "@donor", amount=units(2))

    lines = ex.store.events_path.read_bytes().splitlines()
    assert ex.store.events_path.read_bytes().startswith(first)
    assert [json.loads(line)["name"] for line in lines] == [ev.MEMBER_JOINED, ev.FUNDS_DEPOSITED]

    snapshot = json.loads((tmp_path / "dao_state.json").read_text(encoding="utf-8"))
    assert "events" not in snapshot
    assert snapshot["event_count"] == 2
    assert snapshot["events_head"] == ex.status()["events_head"]


def test_events_past_the_snapshot_are_cut_on_load(tmp_path, clock, sink):
    ex = _persistent(tmp_path, clock, sink)
    ex.call("join", "@a", stake=units(1))
    ex.store.append_events([{"seq": 2, "name": ev.FUNDS_DEPOSITED, "data": {}}])

    again = _persistent(tmp_path, clock, sink)

    assert len(again.state.events) == 1
    assert len(again.store.events_path.read_bytes().splitlines()) == 1
    assert verify_chain(again.events_since(0))


def test_missing_events_refuse_to_load(tmp_path, clock, sink):
    ex = _persistent(tmp_path, clock, sink)
    ex.call("join", "@a", stake=units(1))
    ex.store.events_path.write_bytes(b"")

    with pytest.raises(ValueError):
        _persistent(tmp_path, clock, sink)


def test_unreadable_snapshots_refuse_to_start(tmp_path, clock, sink):
    ex = _persistent(tmp_path, clock, sink)
    ex.call("deposit", "@donor", amount=units(2))
    for path in ex.store.candidates():
        if path.exists():
            path.write_text("{ not json", encoding="utf-8")

    with pytest.raises(ValueError, match="refusing to start"):
        _persistent(tmp_path, clock, sink)


def _disk_full(state):
    raise OSError(28, "No space left on device")


@pytest.mark.parametrize(
    "op,caller,kwargs,payee",
    [
        ("admin_withdraw", OWNER, {"amount": units(1)}, OWNER),
        ("execute", OWNER, {"proposal_id": 1}, "@a"),
        ("leave", "@a", {}, "@a"),
    ],
)
def test_failed_save_after_payout_keeps_committed_state(tmp_path, clock, sink, monkeypatch, op, caller, kwargs, payee):
    ex = _persistent(tmp_path, clock, sink)
    ex.call("join", "@a", stake=units(1))
    ex.call("deposit", "@donor", amount=units(2))
    ex.call("create_proposal", "@a", title="t", description="d", funding_amount=units(1))
    ex.call("vote", "@a", proposal_id=1, support=True)
    clock.advance(WEEK + 1)
    monkeypatch.setattr(ex.store, "save", _disk_full)

    receipt = ex.call(op, caller, **kwargs)

    assert receipt["ok"] is True
    assert receipt["persisted"] is False
    assert ex.status()["unsaved"] is True
    assert sink.balance_of(payee) == units(1)
    treasury = ex.state.treasury
    assert treasury.balance + treasury.escrowed_stake + sink.balance_of(payee) == units(3)
    assert ex.check_invariants() == []

    monkeypatch.undo()
    assert ex.call("deposit", "@donor", amount=1)["persisted"] is True
    assert ex.status()["unsaved"] is False

    again = _persistent(tmp_path, clock, sink)
    assert again.state.to_dict() == ex.state.to_dict()
    assert verify_chain(again.events_since(0))
    assert sink.balance_of(payee) == units(1)

def test_build_executor_from_config(tmp_path, clock):
    cfg = {
        "governance": {"voting_period_sec": 60, "min_quorum_pct": 50},
        "admin": {"owner": "@boss"},
        "persistence": {"enabled": False, "data_dir": str(tmp_path)},
    }
    ex = build_executor(cfg)

    assert ex.state.control.owner == "@boss"
    assert ex.state.params.voting_period_sec == 60
    assert ex.state.params.min_quorum_pct == 50
    assert ex.store is None
