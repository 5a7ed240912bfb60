from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from .api import admin, health, members, proposals, treasury
from .api.deps import executor_dep
from .dao_executor import DaoExecutor

log = logging.getLogger(__name__)


def create_app(executor: Optional[DaoExecutor] = None) -> FastAPI:
    """
    Build the HTTP app. With ``executor`` given, every route uses it instead of
    the process-wide one (tests, embedding).
    """
    app = FastAPI(title="DAO Node API")

    if executor is not None:
        app.dependency_overrides[executor_dep] = lambda: executor

    app.include_router(health.router)
    app.include_router(members.router)
    app.include_router(proposals.router)
    app.include_router(treasury.router)
    app.include_router(admin.router)

    log.info("DAO API ready")
    return app
