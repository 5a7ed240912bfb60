from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..dao_executor import DaoExecutor
from .deps import caller_id, executor_dep, run_call

router = APIRouter(prefix="/admin", tags=["admin"])


class WithdrawRequest(BaseModel):
    amount: int


@router.post("/pause")
def pause(uid: str = Depends(caller_id), ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    return run_call(ex, "pause", uid)


@router.post("/unpause")
def unpause(uid: str = Depends(caller_id), ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    return run_call(ex, "unpause", uid)


@router.post("/withdraw")
def withdraw(payload: WithdrawRequest, uid: str = Depends(caller_id), ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    return run_call(ex, "admin_withdraw", uid, amount=payload.amount)


@router.get("/status")
def status(ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    return run_call(ex, "status", "")
