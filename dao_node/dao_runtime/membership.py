from __future__ import annotations

"""
Membership ledger: who is in, with how much stake and voting power.

Active identities are kept in a list plus an identity -> position dict,
maintained together so that

    active_list[index[identity]] == identity

holds for every active identity. Removal swaps the last entry into the
vacated slot (O(1)) and rewrites the moved entry's position.

Member records outlive membership: leaving clears stake and power but keeps
``joined_at`` and the list of proposals the identity created.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from .errors import AlreadyMember, InsufficientStake, NotAMember
from .params import GovernanceParams


@dataclass
class Member:
    active: bool = False
    voting_power: int = 0
    joined_at: int = 0
    stake: int = 0
    proposal_ids: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Member":
        return cls(
            active=bool(raw.get("active", False)),
            voting_power=int(raw.get("voting_power", 0) or 0),
            joined_at=int(raw.get("joined_at", 0) or 0),
            stake=int(raw.get("stake", 0) or 0),
            proposal_ids=[int(x) for x in raw.get("proposal_ids", []) or []],
        )


class MembershipLedger:
    def __init__(self, params: GovernanceParams) -> None:
        self.params = params
        self.members: Dict[str, Member] = {}
        self._active: List[str] = []
        self._index: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_member(self, identity: str) -> bool:
        m = self.members.get(identity)
        return m is not None and m.active

    def get(self, identity: str) -> Optional[Member]:
        return self.members.get(identity)

    def require_member(self, identity: str) -> Member:
        m = self.members.get(identity)
        if m is None or not m.active:
            raise NotAMember(identity=identity)
        return m

    def member_count(self) -> int:
        return len(self._active)

    def total_voting_power(self) -> int:
        # Live sum; never cached.
        total = 0
        for identity in self._active:
            total += self.members[identity].voting_power
        return total

    def get_active_members(self) -> Iterator[str]:
        return iter(list(self._active))

    def proposals_of(self, identity: str) -> List[int]:
        m = self.members.get(identity)
        return list(m.proposal_ids) if m is not None else []

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def check_join(self, identity: str, stake: int) -> int:
        """Validate a join without mutating; returns the voting power it would grant."""
        if self.is_member(identity):
            raise AlreadyMember(identity=identity)
        if int(stake) < self.params.min_stake:
            raise InsufficientStake(stake=int(stake), min_stake=self.params.min_stake)
        return self.params.voting_power_for_stake(stake)

    def add(self, identity: str, *, stake: int, voting_power: int, joined_at: int) -> Member:
        if self.is_member(identity):
            raise AlreadyMember(identity=identity)
        if not (1 <= voting_power <= self.params.max_voting_power):
            raise ValueError(f"voting power out of range: {voting_power}")

        prior = self.members.get(identity)
        m = Member(
            active=True,
            voting_power=int(voting_power),
            joined_at=int(joined_at),
            stake=int(stake),
            proposal_ids=list(prior.proposal_ids) if prior is not None else [],
        )
        self.members[identity] = m
        self._index[identity] = len(self._active)
        self._active.append(identity)
        return m

    def join(self, identity: str, stake: int, joined_at: int) -> Member:
        power = self.check_join(identity, stake)
        return self.add(identity, stake=int(stake), voting_power=power, joined_at=joined_at)

    def remove(self, identity: str) -> int:
        """Deactivate ``identity``; returns the stake that is owed back."""
        m = self.require_member(identity)

        pos = self._index.pop(identity)
        last = self._active.pop()
        if last != identity:
            self._active[pos] = last
            self._index[last] = pos

        stake = m.stake
        m.active = False
        m.voting_power = 0
        m.stake = 0
        return stake

    def record_proposal(self, identity: str, proposal_id: int) -> None:
        self.require_member(identity).proposal_ids.append(int(proposal_id))

    # ------------------------------------------------------------------
    # Invariants / persistence
    # ------------------------------------------------------------------

    def check_index(self) -> bool:
        if len(self._active) != len(self._index):
            return False
        if len(set(self._active)) != len(self._active):
            return False
        for identity, pos in self._index.items():
            if pos >= len(self._active) or self._active[pos] != identity:
                return False
            if not self.is_member(identity):
                return False
        active_records = sum(1 for m in self.members.values() if m.active)
        return active_records == len(self._active)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "members": {k: v.to_dict() for k, v in self.members.items()},
            "active": list(self._active),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], params: GovernanceParams) -> "MembershipLedger":
        ledger = cls(params)
        for identity, rec in (raw.get("members") or {}).items():
            ledger.members[str(identity)] = Member.from_dict(rec)
        for identity in raw.get("active") or []:
            identity = str(identity)
            ledger._index[identity] = len(ledger._active)
            ledger._active.append(identity)
        if not ledger.check_index():
            raise ValueError("persisted membership index is inconsistent")
        return ledger
