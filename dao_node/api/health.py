# dao_node/api/health.py
from __future__ import annotations

"""
Health & audit API.

Routes
------
- GET /health
    Heartbeat plus a pass/fail on the state invariants.

- GET /health/events?since=N&limit=M
    Event log page (hash-chained), for observers that index or audit.
"""

import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from ..dao_executor import DaoExecutor
from .deps import executor_dep

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health(ex: DaoExecutor = Depends(executor_dep)) -> Dict[str, Any]:
    problems = ex.check_invariants()
    return {"ok": not problems, "ts": time.time(), "problems": problems}


@router.get("/events")
def events(
    since: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    ex: DaoExecutor = Depends(executor_dep),
) -> Dict[str, Any]:
    items = ex.events_since(since, limit)
    return {"ok": True, "events": items, "next": items[-1]["seq"] if items else since}
