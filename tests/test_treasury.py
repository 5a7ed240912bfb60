# tests/test_treasury.py

import pytest

from conftest import OWNER, WEEK, FailingSink, units
from dao_node.dao_runtime import events as ev
from dao_node.dao_runtime.engine import DaoState, GovernanceEngine
from dao_node.dao_runtime.errors import (
    InsufficientBalance,
    InsufficientFunds,
    InvalidAmount,
    NotAMember,
    PayoutFailed,
    TransferFailed,
    ZeroDeposit,
)
from dao_node.dao_runtime.transfers import LedgerValueSink
from dao_node.dao_runtime.treasury import Treasury


def _engine_with(sink, clock, params):
    return GovernanceEngine(DaoState.bootstrap(OWNER, params, clock()), clock=clock, sink=sink)


# ============================================================
# Treasury unit behaviour
# ============================================================

def test_deposit_accumulates():
    t = Treasury()
    assert t.deposit(5) == 5
    assert t.deposit(7) == 12


@pytest.mark.parametrize("amount", [0, -1])
def test_non_positive_deposit_rejected(amount):
    t = Treasury(balance=3)
    with pytest.raises(ZeroDeposit):
        t.deposit(amount)
    assert t.balance == 3


def test_payout_restores_balance_when_sink_fails():
    t = Treasury(balance=10)
    sink = FailingSink()
    with pytest.raises(TransferFailed) as exc:
        t.payout(sink, "@a", 4)
    assert t.balance == 10
    assert sink.attempts == [("@a", 4)]
    assert isinstance(exc.value.__cause__, RuntimeError)


def test_payout_over_balance_never_reaches_sink():
    t = Treasury(balance=3)
    sink = FailingSink()
    with pytest.raises(InsufficientBalance):
        t.payout(sink, "@a", 4)
    assert sink.attempts == []


def test_refund_cannot_exceed_escrow():
    t = Treasury(balance=100, escrowed_stake=5)
    with pytest.raises(InsufficientBalance):
        t.refund_stake(LedgerValueSink(), "@a", 6)
    assert (t.balance, t.escrowed_stake) == (100, 5)


def test_ledger_sink_reverts_credit_when_hook_rejects():
    sink = LedgerValueSink({"@a": 2})

    def reject(recipient, amount):
        raise RuntimeError("no thanks")

    sink.register_hook("@a", reject)
    sink.register_hook("@b", reject)
    with pytest.raises(RuntimeError):
        sink.send("@a", 5)
    with pytest.raises(RuntimeError):
        sink.send("@b", 5)
    assert sink.balances == {"@a": 2}

    sink.clear_hook("@a")
    sink.send("@a", 5)
    assert sink.balance_of("@a") == 7


# ============================================================
# Through the engine
# ============================================================

def test_deposit_and_receive_emit_funds_deposited(engine):
    first = engine.deposit("@donor", units(1))
    second = engine.receive("@someone", units("0.5"))

    assert first.name == second.name == ev.FUNDS_DEPOSITED
    assert first.data["direct"] is False
    assert second.data["direct"] is True
    assert second.data["balance"] == units("1.5")
    assert engine.get_balance() == units("1.5")


def test_deposit_from_non_member_is_allowed(engine):
    engine.deposit("@nobody", 1)
    assert engine.get_balance() == 1


def test_zero_deposit_through_engine(engine):
    with pytest.raises(ZeroDeposit):
        engine.deposit("@donor", 0)
    with pytest.raises(ZeroDeposit):
        engine.receive("@donor", 0)
    assert len(engine.state.events) == 0


@pytest.mark.parametrize("amount", ["abc", "100", None, 1.5, True])
def test_mistyped_amounts_rejected(engine, amount):
    engine.deposit("@donor", units(1))
    for op in (engine.deposit, engine.receive, engine.admin_withdraw):
        caller = OWNER if op == engine.admin_withdraw else "@donor"
        with pytest.raises(InvalidAmount):
            op(caller, amount)
    with pytest.raises(InvalidAmount):
        engine.join("@a", amount)
    with pytest.raises(InvalidAmount):
        engine.create_proposal(OWNER, "t", "d", amount)

    assert engine.get_balance() == units(1)
    assert len(engine.state.events) == 1


def test_stake_is_escrowed_not_spendable(engine):
    engine.join("@a", units(3))

    assert engine.get_balance() == 0
    assert engine.get_escrowed_stake() == units(3)
    with pytest.raises(InvalidAmount):
        engine.create_proposal("@a", "t", "d", 0)
    with pytest.raises(InsufficientFunds):
        engine.create_proposal("@a", "t", "d", units(1))


def test_leave_refunds_exact_stake(engine, sink):
    engine.join("@a", units("2.5"))
    engine.deposit("@donor", units(1))

    event = engine.leave("@a")

    assert event.name == ev.MEMBER_LEFT
    assert event.data["stake_returned"] == units("2.5")
    assert sink.balance_of("@a") == units("2.5")
    assert engine.get_escrowed_stake() == 0
    assert engine.get_balance() == units(1)
    assert not engine.state.members.is_member("@a")


def test_leave_non_member_rejected(engine):
    with pytest.raises(NotAMember):
        engine.leave("@ghost")


def test_owner_leaving_refunds_nothing(engine, sink):
    event = engine.leave(OWNER)
    assert event.data["stake_returned"] == 0
    assert sink.balances == {}
    assert engine.total_voting_power() == 0


def test_failed_refund_keeps_membership(clock, params):
    engine = _engine_with(FailingSink(), clock, params)
    engine.join("@a", units(1))

    with pytest.raises(TransferFailed):
        engine.leave("@a")

    m = engine.get_member_details("@a")
    assert m["active"] and m["stake"] == units(1) and m["voting_power"] == 100
    assert engine.get_escrowed_stake() == units(1)
    assert not engine.state.guard.entered
    assert [e["name"] for e in engine.state.events.to_list()] == [ev.MEMBER_JOINED]


def test_failed_payout_leaves_proposal_executable(clock, params):
    failing = FailingSink()
    engine = _engine_with(failing, clock, params)
    engine.join("@a", units(1))
    engine.deposit("@donor", units(2))
    pid = engine.create_proposal("@a", "t", "d", units(1)).data["proposal_id"]
    engine.vote(pid, "@a", True)
    clock.advance(WEEK + 1)

    with pytest.raises(PayoutFailed):
        engine.execute(pid)

    p = engine.get_proposal(pid)
    assert p["is_active"] and not p["is_executed"] and p["approved"] is None
    assert p["amount_paid"] == 0
    assert engine.get_balance() == units(2)
    assert failing.attempts == [("@a", units(1))]

    # once the recipient accepts, the same proposal executes
    engine.sink = LedgerValueSink()
    event = engine.execute(pid)
    assert event.data["amount_paid"] == units(1)
    assert engine.get_balance() == units(1)
