# dao_node/dao_runtime/params.py
from __future__ import annotations

"""
Governance "knobs" for the DAO runtime.

All amounts are integers in base units; one whole unit of value is
``UNIT`` base units (18 decimals). Nothing in the runtime uses floats for
balances or voting power.

Key rules encoded here
----------------------
1. **Voting power comes from stake.**
   power = clamp(stake * POWER_PER_UNIT // UNIT, 1, MAX_VOTING_POWER)
   so 0.01 unit -> 1, 1 unit -> 100, 10+ units -> 1000.

2. **Quorum is a percentage of live total voting power.**
   A proposal counts only if total_votes * 100 >= total_power * MIN_QUORUM.

3. **Approval is a strict majority of cast power.** Ties fail.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict

UNIT: int = 10**18
MIN_STAKE: int = UNIT // 100
MIN_PROPOSAL_AMOUNT: int = UNIT // 100
MAX_VOTING_POWER: int = 1000
POWER_PER_UNIT: int = 100
MIN_QUORUM: int = 30  # percent
VOTING_PERIOD: int = 7 * 24 * 60 * 60  # seconds
OWNER_VOTING_POWER: int = 1
TITLE_MAX_LEN: int = 100
DESCRIPTION_MAX_LEN: int = 1000


# ---------------------------------------------------------------------------
# Core parameter table
# ---------------------------------------------------------------------------

GOVERNANCE_PARAMS: Dict[str, Any] = {
    "unit": UNIT,
    "min_stake": MIN_STAKE,
    "min_proposal_amount": MIN_PROPOSAL_AMOUNT,
    "max_voting_power": MAX_VOTING_POWER,
    "power_per_unit": POWER_PER_UNIT,
    "min_quorum_pct": MIN_QUORUM,
    "voting_period_sec": VOTING_PERIOD,
    # Power granted to the owner when it is bootstrapped as first member.
    # The owner stakes nothing, so nothing is escrowed for it.
    "owner_voting_power": OWNER_VOTING_POWER,
    "title_max_len": TITLE_MAX_LEN,
    "description_max_len": DESCRIPTION_MAX_LEN,
}


@dataclass(frozen=True)
class GovernanceParams:
    unit: int = UNIT
    min_stake: int = MIN_STAKE
    min_proposal_amount: int = MIN_PROPOSAL_AMOUNT
    max_voting_power: int = MAX_VOTING_POWER
    power_per_unit: int = POWER_PER_UNIT
    min_quorum_pct: int = MIN_QUORUM
    voting_period_sec: int = VOTING_PERIOD
    owner_voting_power: int = OWNER_VOTING_POWER
    title_max_len: int = TITLE_MAX_LEN
    description_max_len: int = DESCRIPTION_MAX_LEN

    def __post_init__(self) -> None:
        if self.unit <= 0:
            raise ValueError("unit must be positive")
        if self.max_voting_power < 1:
            raise ValueError("max_voting_power must be >= 1")
        if not (0 <= self.min_quorum_pct <= 100):
            raise ValueError("min_quorum_pct must be within [0, 100]")
        if self.voting_period_sec < 0:
            raise ValueError("voting_period_sec must be >= 0")
        if not (1 <= self.owner_voting_power <= self.max_voting_power):
            raise ValueError("owner_voting_power must be within [1, max_voting_power]")

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "GovernanceParams":
        known = {k: int(v) for k, v in (data or {}).items() if k in GOVERNANCE_PARAMS}
        return cls(**known)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def voting_power_for_stake(self, stake: int) -> int:
        power = (int(stake) * self.power_per_unit) // self.unit
        if power < 1:
            return 1
        if power > self.max_voting_power:
            return self.max_voting_power
        return power

    def quorum_reached(self, total_votes: int, total_power: int) -> bool:
        return int(total_votes) * 100 >= int(total_power) * self.min_quorum_pct


DEFAULT_PARAMS = GovernanceParams()


def get_param(name: str, default: Any | None = None) -> Any:
    """
    Read a default governance parameter by name.

    >>> get_param("min_quorum_pct")
    30
    """
    return GOVERNANCE_PARAMS.get(name, default)
