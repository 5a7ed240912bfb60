from __future__ import annotations

"""
Shared plumbing for the HTTP routers.

- `executor_dep`: the process-wide DaoExecutor (overridable in tests via
  `app.dependency_overrides`)
- `caller_id`: the calling identity, taken from the X-Caller-Id header
- `run_call`: dispatch to the executor, translating runtime failures into
  HTTPException with the failure code as `detail`
"""

from typing import Any, Dict, Optional, Type

from fastapi import Header, HTTPException

from ..dao_executor import DaoExecutor, get_executor
from ..dao_runtime import errors as E

_STATUS_BY_CATEGORY: Dict[Type[E.GovernanceError], int] = {
    E.ValidationError: 400,
    E.AuthorizationError: 403,
    E.StateError: 409,
    E.ResourceError: 422,
    E.TransferError: 502,
    E.AvailabilityError: 503,
}


def status_for(err: E.GovernanceError) -> int:
    if isinstance(err, E.ProposalNotFound):
        return 404
    for cls, code in _STATUS_BY_CATEGORY.items():
        if isinstance(err, cls):
            return code
    return 400


def executor_dep() -> DaoExecutor:
    return get_executor()


def caller_id(x_caller_id: Optional[str] = Header(default=None)) -> str:
    uid = (x_caller_id or "").strip()
    if not uid:
        raise HTTPException(status_code=401, detail="caller_required")
    return uid


def run_call(ex: DaoExecutor, operation: str, caller: str, **kwargs: Any) -> Any:
    try:
        return ex.call(operation, caller, **kwargs)
    except E.GovernanceError as e:
        raise HTTPException(status_code=status_for(e), detail=e.code) from e
