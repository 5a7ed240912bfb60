from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..dao_executor import DaoExecutor
from .deps import caller_id, executor_dep, run_call

router = APIRouter(prefix="/treasury", tags=["treasury"])


class Transfer(BaseModel):
    amount: int


@router.get("/balance")
def balance(ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    return {"ok": True, "balance": run_call(ex, "get_balance", "")}


@router.post("/deposit")
def deposit(payload: Transfer, uid: str = Depends(caller_id), ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    return run_call(ex, "deposit", uid, amount=payload.amount)


@router.post("/receive")
def receive(payload: Transfer, uid: str = Depends(caller_id), ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    # Bare value transfers land here; recorded as deposits even while paused.
    return run_call(ex, "receive", uid, amount=payload.amount)
