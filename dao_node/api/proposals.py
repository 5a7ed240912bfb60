from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ..dao_executor import DaoExecutor
from .deps import caller_id, executor_dep, run_call

router = APIRouter(prefix="/proposals", tags=["proposals"])


class ProposalCreate(BaseModel):
    title: str
    description: str
    funding_amount: int = Field(..., description="Requested amount in base units.")


class VoteRequest(BaseModel):
    support: bool


@router.post("")
def create_proposal(
    payload: ProposalCreate,
    uid: str = Depends(caller_id),
    ex: DaoExecutor = Depends(executor_dep),
) -> Dict[str, Any]:
    receipt = run_call(
        ex,
        "create_proposal",
        uid,
        title=payload.title,
        description=payload.description,
        funding_amount=payload.funding_amount,
    )
    pid = receipt["event"]["data"]["proposal_id"]
    receipt["proposal"] = run_call(ex, "get_proposal", uid, proposal_id=pid)
    return receipt


@router.get("")
def list_proposals(
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    ex: DaoExecutor = Depends(executor_dep),
) -> Dict[str, Any]:
    return {"ok": True, "proposals": run_call(ex, "list_proposals", "", offset=offset, limit=limit)}


@router.get("/{proposal_id}")
def get_proposal(proposal_id: int, ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    return {"ok": True, "proposal": run_call(ex, "get_proposal", "", proposal_id=proposal_id)}


@router.get("/{proposal_id}/stats")
def proposal_stats(proposal_id: int, ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    return {"ok": True, "stats": run_call(ex, "get_proposal_voting_stats", "", proposal_id=proposal_id)}


@router.get("/{proposal_id}/voters/{identity}")
def has_voted(proposal_id: int, identity: str, ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    voted = run_call(ex, "has_voted", "", proposal_id=proposal_id, identity=identity)
    return {"ok": True, "proposal_id": proposal_id, "identity": identity, "has_voted": voted}


@router.post("/{proposal_id}/vote")
def vote(
    proposal_id: int,
    payload: VoteRequest,
    uid: str = Depends(caller_id),
    ex: DaoExecutor = Depends(executor_dep),
) -> Dict[str, Any]:
    return run_call(ex, "vote", uid, proposal_id=proposal_id, support=payload.support)


@router.post("/{proposal_id}/execute")
def execute(proposal_id: int, uid: str = Depends(caller_id), ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    return run_call(ex, "execute", uid, proposal_id=proposal_id)
