"""
ProposalStore – funding proposals, weighted tallies, per-proposal voter sets

- Ids are 1-based and strictly increasing; an id is never reused
- Each proposal tracks FOR / AGAINST power and the set of identities that voted
- Once executed a proposal is terminal: no tally, flag or outcome changes
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set

from .errors import AlreadyVoted, InvalidDescription, InvalidTitle, ProposalNotFound
from .params import GovernanceParams

STATUS_ACTIVE = "active"
STATUS_AWAITING_EXECUTION = "awaiting_execution"
STATUS_EXECUTED = "executed"


class VoterSet:
    """Membership-tested set of voter identities; deliberately not iterable."""

    def __init__(self, ids: Optional[Set[str]] = None) -> None:
        self._ids: Set[str] = set(ids or ())

    def __contains__(self, identity: object) -> bool:
        return identity in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, identity: str) -> None:
        self._ids.add(identity)

    def to_list(self) -> List[str]:
        # Persistence only.
        return sorted(self._ids)


@dataclass
class Proposal:
    id: int
    proposer: str
    title: str
    description: str
    funding_amount: int
    created_at: int
    voting_end_time: int
    votes_for: int = 0
    votes_against: int = 0
    is_active: bool = True
    is_executed: bool = False
    approved: Optional[bool] = None
    amount_paid: int = 0
    has_voted: VoterSet = field(default_factory=VoterSet)

    @property
    def total_votes(self) -> int:
        return self.votes_for + self.votes_against

    def status(self, now: int) -> str:
        if self.is_executed:
            return STATUS_EXECUTED
        if now <= self.voting_end_time:
            return STATUS_ACTIVE
        return STATUS_AWAITING_EXECUTION

    def record_vote(self, voter: str, support: bool, power: int) -> None:
        if voter in self.has_voted:
            raise AlreadyVoted(proposal_id=self.id, voter=voter)
        if support:
            self.votes_for += int(power)
        else:
            self.votes_against += int(power)
        self.has_voted.add(voter)

    def to_view(self, now: int) -> Dict[str, Any]:
        return {
            "id": self.id,
            "proposer": self.proposer,
            "title": self.title,
            "description": self.description,
            "funding_amount": self.funding_amount,
            "votes_for": self.votes_for,
            "votes_against": self.votes_against,
            "created_at": self.created_at,
            "voting_end_time": self.voting_end_time,
            "is_active": self.is_active,
            "is_executed": self.is_executed,
            "approved": self.approved,
            "amount_paid": self.amount_paid,
            "voter_count": len(self.has_voted),
            "status": self.status(now),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "proposer": self.proposer,
            "title": self.title,
            "description": self.description,
            "funding_amount": self.funding_amount,
            "created_at": self.created_at,
            "voting_end_time": self.voting_end_time,
            "votes_for": self.votes_for,
            "votes_against": self.votes_against,
            "is_active": self.is_active,
            "is_executed": self.is_executed,
            "approved": self.approved,
            "amount_paid": self.amount_paid,
            "has_voted": self.has_voted.to_list(),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Proposal":
        approved = raw.get("approved")
        return cls(
            id=int(raw["id"]),
            proposer=str(raw["proposer"]),
            title=str(raw["title"]),
            description=str(raw["description"]),
            funding_amount=int(raw["funding_amount"]),
            created_at=int(raw["created_at"]),
            voting_end_time=int(raw["voting_end_time"]),
            votes_for=int(raw.get("votes_for", 0) or 0),
            votes_against=int(raw.get("votes_against", 0) or 0),
            is_active=bool(raw.get("is_active", True)),
            is_executed=bool(raw.get("is_executed", False)),
            approved=None if approved is None else bool(approved),
            amount_paid=int(raw.get("amount_paid", 0) or 0),
            has_voted=VoterSet(set(raw.get("has_voted") or [])),
        )


class ProposalStore:
    def __init__(self, params: GovernanceParams) -> None:
        self.params = params
        self.proposals: Dict[int, Proposal] = {}
        self.next_id: int = 1

    def __len__(self) -> int:
        return len(self.proposals)

    def validate_text(self, title: str, description: str) -> None:
        if not isinstance(title, str) or not (1 <= len(title) <= self.params.title_max_len):
            raise InvalidTitle(length=len(title) if isinstance(title, str) else None)
        if not isinstance(description, str) or not (1 <= len(description) <= self.params.description_max_len):
            raise InvalidDescription(length=len(description) if isinstance(description, str) else None)

    def create(
        self,
        proposer: str,
        title: str,
        description: str,
        funding_amount: int,
        created_at: int,
    ) -> Proposal:
        pid = self.next_id
        p = Proposal(
            id=pid,
            proposer=proposer,
            title=title,
            description=description,
            funding_amount=int(funding_amount),
            created_at=int(created_at),
            voting_end_time=int(created_at) + self.params.voting_period_sec,
        )
        self.proposals[pid] = p
        self.next_id += 1
        return p

    def get(self, proposal_id: int) -> Proposal:
        try:
            return self.proposals[int(proposal_id)]
        except (KeyError, TypeError, ValueError):
            raise ProposalNotFound(proposal_id=proposal_id) from None

    def iter_range(self, offset: int = 0, limit: int = 50) -> Iterator[Proposal]:
        ids = sorted(self.proposals.keys())[max(0, int(offset)):]
        for pid in ids[: max(0, int(limit))]:
            yield self.proposals[pid]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "next_id": self.next_id,
            "proposals": {str(k): v.to_dict() for k, v in self.proposals.items()},
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], params: GovernanceParams) -> "ProposalStore":
        store = cls(params)
        for rec in (raw.get("proposals") or {}).values():
            p = Proposal.from_dict(rec)
            store.proposals[p.id] = p
        highest = max(store.proposals.keys(), default=0)
        store.next_id = max(int(raw.get("next_id", 1) or 1), highest + 1)
        return store
