from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..dao_executor import DaoExecutor
from .deps import caller_id, executor_dep, run_call

router = APIRouter(prefix="/members", tags=["members"])


class JoinRequest(BaseModel):
    stake: int = Field(..., description="Stake in base units; refunded on leave.")


@router.post("/join")
def join(payload: JoinRequest, uid: str = Depends(caller_id), ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    return run_call(ex, "join", uid, stake=payload.stake)


@router.post("/leave")
def leave(uid: str = Depends(caller_id), ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    return run_call(ex, "leave", uid)


@router.get("")
def list_members(ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    members = run_call(ex, "get_active_members", "")
    return {"ok": True, "members": members, "count": len(members)}


@router.get("/voting-power")
def voting_power(ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    return {"ok": True, "total_voting_power": run_call(ex, "total_voting_power", "")}


@router.get("/{identity}")
def member_details(identity: str, ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    return {"ok": True, "member": run_call(ex, "get_member_details", "", identity=identity)}


@router.get("/{identity}/proposals")
def member_proposals(identity: str, ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    return {"ok": True, "proposal_ids": run_call(ex, "get_member_proposals", "", identity=identity)}
