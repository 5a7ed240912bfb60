from __future__ import annotations

"""
Typed failures for the DAO runtime.

Every failure carries a stable snake_case ``code`` (used in receipts and as
the HTTP ``detail``) and belongs to exactly one category class, so callers
can branch on the category without enumerating every kind:

    ValidationError     bad input shape / bounds
    AuthorizationError  caller is not allowed to do this
    StateError          the operation does not fit the current state
    ResourceError       not enough funds / stake / voting power
    TransferError       a value transfer could not be settled
    AvailabilityError   the contract is paused

``NotAMember`` is both an authorization and a state failure.
"""

from typing import Any, Dict, Optional


class GovernanceError(Exception):
    code: str = "governance_error"
    category: str = "governance"

    def __init__(self, message: Optional[str] = None, **context: Any) -> None:
        super().__init__(message or self.code)
        self.context: Dict[str, Any] = dict(context)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"ok": False, "error": self.code, "category": self.category}
        if self.context:
            out["context"] = dict(self.context)
        return out


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class ValidationError(GovernanceError):
    code = "validation_error"
    category = "validation"


class AuthorizationError(GovernanceError):
    code = "authorization_error"
    category = "authorization"


class StateError(GovernanceError):
    code = "state_error"
    category = "state"


class ResourceError(GovernanceError):
    code = "resource_error"
    category = "resource"


class TransferError(GovernanceError):
    code = "transfer_error"
    category = "transfer"


class AvailabilityError(GovernanceError):
    code = "availability_error"
    category = "availability"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class InvalidTitle(ValidationError):
    code = "invalid_title"


class InvalidDescription(ValidationError):
    code = "invalid_description"


class InvalidAmount(ValidationError):
    code = "invalid_amount"


class ZeroDeposit(ValidationError):
    code = "zero_deposit"


class InvalidArgument(ValidationError):
    code = "invalid_argument"


class UnknownOperation(ValidationError):
    code = "unknown_operation"


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class NotOwner(AuthorizationError):
    code = "not_owner"


class NotAMember(AuthorizationError, StateError):
    code = "not_a_member"
    category = "authorization"


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


class AlreadyMember(StateError):
    code = "already_member"


class AlreadyVoted(StateError):
    code = "already_voted"


class AlreadyExecuted(StateError):
    code = "already_executed"


class VotingStillActive(StateError):
    code = "voting_still_active"


class VotingClosed(StateError):
    code = "voting_closed"


class ProposalInactive(StateError):
    code = "proposal_inactive"


class ProposalNotFound(StateError):
    code = "proposal_not_found"


class NotPaused(StateError):
    code = "not_paused"


class ReentrantCall(StateError):
    code = "reentrant_call"


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


class InsufficientStake(ResourceError):
    code = "insufficient_stake"


class InsufficientFunds(ResourceError):
    code = "insufficient_funds"


class InsufficientBalance(ResourceError):
    code = "insufficient_balance"


class NoVotingPower(ResourceError):
    code = "no_voting_power"


# ---------------------------------------------------------------------------
# Transfers / availability
# ---------------------------------------------------------------------------


class TransferFailed(TransferError):
    code = "transfer_failed"


class PayoutFailed(TransferError):
    code = "payout_failed"


class ContractPaused(AvailabilityError):
    code = "contract_paused"


__all__ = [
    "GovernanceError",
    "ValidationError",
    "AuthorizationError",
    "StateError",
    "ResourceError",
    "TransferError",
    "AvailabilityError",
    "InvalidTitle",
    "InvalidDescription",
    "InvalidAmount",
    "ZeroDeposit",
    "InvalidArgument",
    "UnknownOperation",
    "NotOwner",
    "NotAMember",
    "AlreadyMember",
    "AlreadyVoted",
    "AlreadyExecuted",
    "VotingStillActive",
    "VotingClosed",
    "ProposalInactive",
    "ProposalNotFound",
    "NotPaused",
    "ReentrantCall",
    "InsufficientStake",
    "InsufficientFunds",
    "InsufficientBalance",
    "NoVotingPower",
    "TransferFailed",
    "PayoutFailed",
    "ContractPaused",
]
