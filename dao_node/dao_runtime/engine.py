from __future__ import annotations

"""
Governance engine: the proposal lifecycle over membership and treasury.

    Created -> Active (voting window) -> Approved | Rejected -> Executed

``DaoState`` is the single aggregate holding everything that persists
(admin control, membership, proposals, treasury, event log). It is built
once at bootstrap, with the owner as first member, and is never reset.

``GovernanceEngine`` runs operations against that aggregate. Every
mutating operation:

1. checks the reentrancy guard and the pause flag,
2. validates everything it can before touching state,
3. mutates, performing at most one outbound transfer under the guard,
4. appends exactly one event and returns it.

A failure at any step leaves the aggregate as it was before the call.
Time comes from the injected ``clock`` and value leaves through the
injected ``ValueSink``; the engine owns neither.
"""

import copy
import logging
import time
from typing import Any, Callable, Dict, Iterator, List, NamedTuple, Optional

from . import events as ev
from .audit import GENESIS_HASH
from .control import AdminControl, ReentrancyGuard
from .errors import (
    AlreadyExecuted,
    InsufficientFunds,
    InvalidAmount,
    InvalidArgument,
    NoVotingPower,
    PayoutFailed,
    ProposalInactive,
    TransferFailed,
    VotingClosed,
    VotingStillActive,
)
from .events import Event, EventLog
from .membership import MembershipLedger
from .params import GovernanceParams
from .proposals import Proposal, ProposalStore
from .transfers import LedgerValueSink, ValueSink
from .treasury import Treasury

log = logging.getLogger(__name__)

Clock = Callable[[], int]

STATE_SCHEMA_VERSION = 1


def system_clock() -> int:
    return int(time.time())


def _is_int(value: Any) -> bool:
    # bool is an int subclass but never a count or an amount.
    return isinstance(value, int) and not isinstance(value, bool)


def require_amount(value: Any, name: str = "amount") -> int:
    if not _is_int(value):
        raise InvalidAmount(f"{name} must be an integer in base units", field=name, value=repr(value))
    return value


def require_int(value: Any, name: str) -> int:
    if not _is_int(value):
        raise InvalidArgument(f"{name} must be an integer", field=name, value=repr(value))
    return value


def require_bool(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise InvalidArgument(f"{name} must be true or false", field=name, value=repr(value))
    return value


class Checkpoint(NamedTuple):
    """Copy of everything but the event log, plus the log length at that point."""

    state: "DaoState"
    event_count: int


class DaoState:
    def __init__(
        self,
        params: GovernanceParams,
        control: AdminControl,
        members: MembershipLedger,
        proposals: ProposalStore,
        treasury: Treasury,
        events: EventLog,
    ) -> None:
        self.params = params
        self.control = control
        self.members = members
        self.proposals = proposals
        self.treasury = treasury
        self.events = events
        self.guard = ReentrancyGuard()

    @classmethod
    def bootstrap(cls, owner: str, params: GovernanceParams, now: int) -> "DaoState":
        state = cls(
            params=params,
            control=AdminControl(owner),
            members=MembershipLedger(params),
            proposals=ProposalStore(params),
            treasury=Treasury(),
            events=EventLog(),
        )
        state.members.add(owner, stake=0, voting_power=params.owner_voting_power, joined_at=now)
        log.info("bootstrapped DAO state owner=%s power=%d", owner, params.owner_voting_power)
        return state

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------

    def checkpoint(self) -> Checkpoint:
        """
        Copy the bounded parts of the aggregate. The event log only grows, so
        it is not copied; its length is recorded and it is cut back on restore.
        """
        events = self.events
        self.events = EventLog()
        try:
            snap = copy.deepcopy(self)
        finally:
            self.events = events
        return Checkpoint(snap, len(events))

    def restore(self, cp: Checkpoint) -> "DaoState":
        """Return the state as it was at ``cp``, reusing this state's event log."""
        self.events.truncate(cp.event_count)
        cp.state.events = self.events
        return cp.state

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        # The event log is persisted separately (append-only); only its
        # length and head hash travel with the snapshot.
        return {
            "schema_version": STATE_SCHEMA_VERSION,
            "params": self.params.to_dict(),
            "control": self.control.to_dict(),
            "membership": self.members.to_dict(),
            "proposals": self.proposals.to_dict(),
            "treasury": self.treasury.to_dict(),
            "event_count": len(self.events),
            "events_head": self.events.head_hash,
        }

    @classmethod
    def from_dict(
        cls,
        raw: Dict[str, Any],
        params: Optional[GovernanceParams] = None,
        events: Optional[EventLog] = None,
    ) -> "DaoState":
        version = int(raw.get("schema_version", STATE_SCHEMA_VERSION) or STATE_SCHEMA_VERSION)
        if version > STATE_SCHEMA_VERSION:
            raise ValueError(f"unsupported state schema_version={version}")
        event_log = events if events is not None else EventLog()
        expected = (int(raw.get("event_count", 0) or 0), str(raw.get("events_head") or GENESIS_HASH))
        if expected != (len(event_log), event_log.head_hash):
            raise ValueError("event log does not match the snapshot it was loaded with")
        p = params or GovernanceParams.from_mapping(raw.get("params") or {})
        return cls(
            params=p,
            control=AdminControl.from_dict(raw["control"]),
            members=MembershipLedger.from_dict(raw.get("membership") or {}, p),
            proposals=ProposalStore.from_dict(raw.get("proposals") or {}, p),
            treasury=Treasury.from_dict(raw.get("treasury") or {}),
            events=event_log,
        )

    def check_invariants(self) -> List[str]:
        """Return a list of violated invariants (empty when consistent)."""
        problems: List[str] = []
        if not self.members.check_index():
            problems.append("membership_index")
        staked = sum(m.stake for m in self.members.members.values() if m.active)
        if staked != self.treasury.escrowed_stake:
            problems.append("escrow_mismatch")
        if self.treasury.balance < 0 or self.treasury.escrowed_stake < 0:
            problems.append("negative_balance")
        for p in self.proposals.proposals.values():
            if p.is_executed and p.is_active:
                problems.append(f"proposal_{p.id}_flags")
            if p.amount_paid and not p.approved:
                problems.append(f"proposal_{p.id}_unapproved_payout")
        if self.proposals.proposals and self.proposals.next_id <= max(self.proposals.proposals):
            problems.append("proposal_counter")
        return problems


class GovernanceEngine:
    def __init__(
        self,
        state: DaoState,
        *,
        clock: Optional[Clock] = None,
        sink: Optional[ValueSink] = None,
    ) -> None:
        self.state = state
        self.clock: Clock = clock or system_clock
        self.sink: ValueSink = sink if sink is not None else LedgerValueSink()

    @property
    def params(self) -> GovernanceParams:
        return self.state.params

    def now(self) -> int:
        return int(self.clock())

    def _gate(self) -> None:
        self.state.guard.require_not_entered()
        self.state.control.require_not_paused()

    def _emit(self, name: str, **data: Any) -> Event:
        return self.state.events.emit(name, self.now(), **data)

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def join(self, identity: str, stake: int) -> Event:
        self._gate()
        st = self.state
        now = self.now()
        member = st.members.join(identity, require_amount(stake, "stake"), now)
        st.treasury.escrow(member.stake)
        return self._emit(ev.MEMBER_JOINED, member=identity, stake=member.stake, voting_power=member.voting_power)

    def leave(self, identity: str) -> Event:
        self._gate()
        st = self.state
        member = st.members.require_member(identity)
        refund = member.stake

        with st.guard.enter("leave"):
            # Refund first; membership only changes once the value has left.
            st.treasury.refund_stake(self.sink, identity, refund)
            st.members.remove(identity)
        return self._emit(ev.MEMBER_LEFT, member=identity, stake_returned=refund)

    def total_voting_power(self) -> int:
        return self.state.members.total_voting_power()

    def get_active_members(self) -> Iterator[str]:
        return self.state.members.get_active_members()

    def get_member_details(self, identity: str) -> Dict[str, Any]:
        m = self.state.members.get(identity)
        if m is None:
            return {"identity": identity, "active": False, "voting_power": 0, "joined_at": 0, "stake": 0, "proposal_count": 0}
        return {
            "identity": identity,
            "active": m.active,
            "voting_power": m.voting_power,
            "joined_at": m.joined_at,
            "stake": m.stake,
            "proposal_count": len(m.proposal_ids),
        }

    def get_member_proposals(self, identity: str) -> List[int]:
        return self.state.members.proposals_of(identity)

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    def create_proposal(self, proposer: str, title: str, description: str, funding_amount: int) -> Event:
        self._gate()
        st = self.state
        st.members.require_member(proposer)
        st.proposals.validate_text(title, description)
        amount = require_amount(funding_amount, "funding_amount")
        if amount < self.params.min_proposal_amount:
            raise InvalidAmount(amount=amount, min_amount=self.params.min_proposal_amount)
        if amount > st.treasury.balance:
            raise InsufficientFunds(amount=amount, balance=st.treasury.balance)

        p = st.proposals.create(proposer, title, description, amount, self.now())
        st.members.record_proposal(proposer, p.id)
        return self._emit(
            ev.PROPOSAL_CREATED,
            proposal_id=p.id,
            proposer=proposer,
            title=title,
            funding_amount=amount,
            voting_end_time=p.voting_end_time,
        )

    def vote(self, proposal_id: int, voter: str, support: bool) -> Event:
        self._gate()
        st = self.state
        support = require_bool(support, "support")
        p = st.proposals.get(require_int(proposal_id, "proposal_id"))
        if not p.is_active or self.now() > p.voting_end_time:
            raise VotingClosed(proposal_id=p.id)
        member = st.members.require_member(voter)

        # Power is read now; later changes to the member do not touch this vote.
        p.record_vote(voter, support, member.voting_power)
        return self._emit(
            ev.VOTE_CASTED,
            proposal_id=p.id,
            voter=voter,
            support=support,
            voting_power=member.voting_power,
        )

    def execute(self, proposal_id: int) -> Event:
        self._gate()
        st = self.state
        p = st.proposals.get(require_int(proposal_id, "proposal_id"))
        if p.is_executed:
            raise AlreadyExecuted(proposal_id=p.id)
        if not p.is_active:
            raise ProposalInactive(proposal_id=p.id)
        if self.now() <= p.voting_end_time:
            raise VotingStillActive(proposal_id=p.id, voting_end_time=p.voting_end_time)

        total_votes = p.total_votes
        total_power = st.members.total_voting_power()
        if total_power == 0:
            raise NoVotingPower(proposal_id=p.id)

        quorum = self.params.quorum_reached(total_votes, total_power)
        approved = quorum and p.votes_for > p.votes_against

        p.is_executed = True
        p.is_active = False
        p.approved = approved

        paid = 0
        if approved and st.treasury.balance >= p.funding_amount:
            try:
                with st.guard.enter("execute"):
                    paid = st.treasury.payout(self.sink, p.proposer, p.funding_amount)
            except TransferFailed as e:
                p.is_executed = False
                p.is_active = True
                p.approved = None
                raise PayoutFailed(proposal_id=p.id, recipient=p.proposer, amount=p.funding_amount) from e
        elif approved:
            log.warning(
                "proposal %d approved but treasury %d cannot cover %d; closing without payout",
                p.id,
                st.treasury.balance,
                p.funding_amount,
            )
        p.amount_paid = paid

        return self._emit(
            ev.PROPOSAL_EXECUTED,
            proposal_id=p.id,
            approved=approved,
            amount_paid=paid,
            votes_for=p.votes_for,
            votes_against=p.votes_against,
            total_power=total_power,
        )

    def get_proposal(self, proposal_id: int) -> Dict[str, Any]:
        return self.state.proposals.get(require_int(proposal_id, "proposal_id")).to_view(self.now())

    def list_proposals(self, offset: int = 0, limit: int = 50) -> List[Dict[str, Any]]:
        now = self.now()
        offset = require_int(offset, "offset")
        limit = require_int(limit, "limit")
        return [p.to_view(now) for p in self.state.proposals.iter_range(offset, limit)]

    def proposal_count(self) -> int:
        return len(self.state.proposals)

    def has_voted(self, proposal_id: int, identity: str) -> bool:
        return identity in self.state.proposals.get(require_int(proposal_id, "proposal_id")).has_voted

    def get_proposal_voting_stats(self, proposal_id: int) -> Dict[str, Any]:
        p: Proposal = self.state.proposals.get(require_int(proposal_id, "proposal_id"))
        now = self.now()
        total_power = self.state.members.total_voting_power()
        total_votes = p.total_votes
        participation = (total_votes * 100 // total_power) if total_power else 0
        quorum = total_power > 0 and self.params.quorum_reached(total_votes, total_power)
        return {
            "proposal_id": p.id,
            "votes_for": p.votes_for,
            "votes_against": p.votes_against,
            "total_votes": total_votes,
            "total_voting_power": total_power,
            "participation_pct": participation,
            "quorum_pct": self.params.min_quorum_pct,
            "quorum_reached": quorum,
            "passing": bool(quorum and p.votes_for > p.votes_against),
            "time_remaining": max(0, p.voting_end_time - now),
            "status": p.status(now),
        }

    # ------------------------------------------------------------------
    # Treasury
    # ------------------------------------------------------------------

    def deposit(self, sender: str, amount: int) -> Event:
        self._gate()
        amount = require_amount(amount)
        balance = self.state.treasury.deposit(amount)
        return self._emit(ev.FUNDS_DEPOSITED, sender=sender, amount=amount, balance=balance, direct=False)

    def receive(self, sender: str, amount: int) -> Event:
        """Record a bare value transfer; pause does not apply so funds are never stranded."""
        self.state.guard.require_not_entered()
        amount = require_amount(amount)
        balance = self.state.treasury.deposit(amount)
        return self._emit(ev.FUNDS_DEPOSITED, sender=sender, amount=amount, balance=balance, direct=True)

    def get_balance(self) -> int:
        return self.state.treasury.balance

    def get_escrowed_stake(self) -> int:
        return self.state.treasury.escrowed_stake

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def pause(self, caller: str) -> Event:
        self.state.guard.require_not_entered()
        self.state.control.pause(caller)
        return self._emit(ev.PAUSED, by=caller)

    def unpause(self, caller: str) -> Event:
        self.state.guard.require_not_entered()
        self.state.control.unpause(caller)
        return self._emit(ev.UNPAUSED, by=caller)

    def admin_withdraw(self, caller: str, amount: int) -> Event:
        # Available while paused.
        st = self.state
        st.guard.require_not_entered()
        st.control.require_owner(caller)
        amount = require_amount(amount)
        if amount <= 0:
            raise InvalidAmount(amount=amount)
        st.treasury.require_available(amount)

        with st.guard.enter("admin_withdraw"):
            st.treasury.payout(self.sink, caller, amount)
        return self._emit(ev.EMERGENCY_WITHDRAWAL, to=caller, amount=amount, balance=st.treasury.balance)

    def is_paused(self) -> bool:
        return self.state.control.paused


__all__ = ["Checkpoint", "DaoState", "GovernanceEngine", "require_amount", "require_bool", "require_int", "system_clock"]
