from __future__ import annotations

"""
DAO Executor

The single writer in front of the governance engine.

- Serializes every boundary call behind one re-entrant lock
- Dispatches calls by operation name; unknown names fail with UnknownOperation
- All-or-nothing: checkpoints the bounded state before a top-level mutating
  call and restores it if the call raises; the event log is cut back to its
  recorded length instead of being copied
- Persists after each committed mutating call (when enabled): new events are
  appended to the event file, then the snapshot is rewritten
- A committed call is never rolled back. Value may already have left through
  the sink, so a failed save is logged, the receipt says ``persisted: False``
  and the executor reports ``unsaved`` until a later save succeeds
- Publishes the call's event to listeners after commit (fire-and-forget)
- Refuses to start when snapshot files exist but none of them is readable

A value sink may run recipient code that calls back into the executor on the
same thread. The lock is re-entrant, so such a call is answered with
ReentrantCall instead of deadlocking, and nothing is mutated.
"""

import inspect
import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .config import (
    get_owner,
    governance_params_from_config,
    load_config,
    persistence_enabled,
)
from .dao_runtime.atomic_store import StateStore
from .dao_runtime.audit import merkle_root, verify_chain
from .dao_runtime.engine import Clock, DaoState, GovernanceEngine, system_clock
from .dao_runtime.errors import GovernanceError, ReentrantCall, UnknownOperation
from .dao_runtime.events import Event, EventListener, EventLog, publish
from .dao_runtime.params import GovernanceParams
from .dao_runtime.transfers import LedgerValueSink, ValueSink

log = logging.getLogger(__name__)

MUTATING_OPS = frozenset(
    {
        "join",
        "leave",
        "create_proposal",
        "vote",
        "execute",
        "deposit",
        "receive",
        "pause",
        "unpause",
        "admin_withdraw",
    }
)

READ_OPS = frozenset(
    {
        "total_voting_power",
        "get_active_members",
        "get_proposal",
        "get_member_details",
        "get_member_proposals",
        "get_balance",
        "has_voted",
        "get_proposal_voting_stats",
        "list_proposals",
        "status",
    }
)


class DaoExecutor:
    def __init__(
        self,
        owner: str,
        *,
        params: Optional[GovernanceParams] = None,
        data_dir: Optional[str] = None,
        persist: bool = False,
        clock: Optional[Clock] = None,
        sink: Optional[ValueSink] = None,
        keep_backups: int = 2,
        filename: str = "dao_state.json",
    ) -> None:
        self._lock = threading.RLock()
        self._depth = 0
        self._listeners: List[EventListener] = []
        self.clock: Clock = clock or system_clock
        self.sink: ValueSink = sink if sink is not None else LedgerValueSink()

        self.store: Optional[StateStore] = None
        if persist:
            self.store = StateStore(data_dir or "data", filename=filename, keep_backups=keep_backups)

        state = self._load_or_bootstrap(owner, params or GovernanceParams())
        self.engine = GovernanceEngine(state, clock=self.clock, sink=self.sink)
        self.state_hash = ""
        self.unsaved = False
        # Events up to this seq are already in the event file.
        self._journaled_seq = len(state.events)

        if self.store is not None and not self.store.path.exists():
            self.save_state()

        self._handlers: Dict[str, Callable[..., Any]] = {
            "join": lambda caller, stake: self.engine.join(caller, stake),
            "leave": lambda caller: self.engine.leave(caller),
            "create_proposal": lambda caller, title, description, funding_amount: self.engine.create_proposal(
                caller, title, description, funding_amount
            ),
            "vote": lambda caller, proposal_id, support: self.engine.vote(proposal_id, caller, support),
            "execute": lambda caller, proposal_id: self.engine.execute(proposal_id),
            "deposit": lambda caller, amount: self.engine.deposit(caller, amount),
            "receive": lambda caller, amount: self.engine.receive(caller, amount),
            "pause": lambda caller: self.engine.pause(caller),
            "unpause": lambda caller: self.engine.unpause(caller),
            "admin_withdraw": lambda caller, amount: self.engine.admin_withdraw(caller, amount),
            "total_voting_power": lambda caller: self.engine.total_voting_power(),
            "get_active_members": lambda caller: list(self.engine.get_active_members()),
            "get_proposal": lambda caller, proposal_id: self.engine.get_proposal(proposal_id),
            "get_member_details": lambda caller, identity=None: self.engine.get_member_details(identity or caller),
            "get_member_proposals": lambda caller, identity=None: self.engine.get_member_proposals(identity or caller),
            "get_balance": lambda caller: self.engine.get_balance(),
            "has_voted": lambda caller, proposal_id, identity=None: self.engine.has_voted(proposal_id, identity or caller),
            "get_proposal_voting_stats": lambda caller, proposal_id: self.engine.get_proposal_voting_stats(proposal_id),
            "list_proposals": lambda caller, offset=0, limit=50: self.engine.list_proposals(offset, limit),
            "status": lambda caller: self.status(),
        }

    # ----------------------- construction ------------------

    def _load_or_bootstrap(self, owner: str, params: GovernanceParams) -> DaoState:
        if self.store is not None:
            raw = self.store.load()
            if raw is None and self.store.exists():
                raise ValueError(f"no readable DAO snapshot in {self.store.data_dir}; refusing to start over existing files")
            if raw is not None:
                records = self.store.read_events(int(raw.get("event_count", 0) or 0))
                if not verify_chain(records):
                    raise ValueError(f"event file {self.store.events_path} fails its hash chain")
                state = DaoState.from_dict(raw, params, EventLog.from_list(records))
                if state.control.owner != owner:
                    log.warning("persisted owner %s differs from configured owner %s; keeping persisted", state.control.owner, owner)
                problems = state.check_invariants()
                if problems:
                    raise ValueError(f"persisted DAO state violates invariants: {problems}")
                log.info("loaded DAO state from %s (%d events)", self.store.path, len(state.events))
                return state
        return DaoState.bootstrap(owner, params, int(self.clock()))

    # ----------------------- listeners ------------------

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ----------------------- dispatch ------------------

    @property
    def state(self) -> DaoState:
        return self.engine.state

    def call(self, operation: str, caller: str, **kwargs: Any) -> Any:
        handler = self._handlers.get(operation)
        if handler is None:
            raise UnknownOperation(operation=operation)
        try:
            inspect.signature(handler).bind(caller, **kwargs)
        except TypeError as e:
            raise UnknownOperation(f"bad arguments for {operation}: {e}", operation=operation) from None

        with self._lock:
            if operation in READ_OPS:
                return handler(caller, **kwargs)
            return self._call_mutating(operation, handler, caller, kwargs)

    def _call_mutating(self, operation: str, handler: Callable[..., Any], caller: str, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        if self._depth > 0:
            # Nested call from inside a transfer; rejected before anything is touched.
            raise ReentrantCall(operation=operation, active_scope=self.state.guard.scope)

        cp = self.engine.state.checkpoint()
        self._depth += 1
        try:
            event: Event = handler(caller, **kwargs)
        except GovernanceError as e:
            self.engine.state = self.engine.state.restore(cp)
            log.warning("%s by %s failed: %s %s", operation, caller, e.code, e.context or "")
            raise
        except Exception:
            self.engine.state = self.engine.state.restore(cp)
            log.exception("%s by %s failed unexpectedly; state rolled back", operation, caller)
            raise
        finally:
            self._depth -= 1

        # Committed from here on: nothing below restores the checkpoint.
        persisted = self._persist_committed(operation)
        publish(event, self._listeners)
        return {"ok": True, "op": operation, "event": event.to_dict(), "persisted": persisted}

    # ----------------------- persistence ------------------

    def _persist_committed(self, operation: str) -> bool:
        if self.store is None:
            return False
        try:
            self.save_state()
        except Exception:
            self.unsaved = True
            log.exception("%s committed but saving %s failed; state is ahead of disk", operation, self.store.path)
            return False
        return True

    def save_state(self) -> None:
        if self.store is None:
            return
        with self._lock:
            st = self.engine.state
            pending = st.events.since(self._journaled_seq, len(st.events))
            self.store.append_events([e.to_dict() for e in pending])
            self._journaled_seq += len(pending)
            self.state_hash = self.store.save(st.to_dict())
            self.unsaved = False

    # ----------------------- introspection ------------------

    def check_invariants(self) -> List[str]:
        with self._lock:
            return self.state.check_invariants()

    def events_since(self, seq: int = 0, limit: int = 100) -> List[Dict[str, Any]]:
        with self._lock:
            return [e.to_dict() for e in self.state.events.since(seq, limit)]

    def status(self) -> Dict[str, Any]:
        with self._lock:
            st = self.state
            last = st.events.last()
            return {
                "ok": True,
                "owner": st.control.owner,
                "paused": st.control.paused,
                "member_count": st.members.member_count(),
                "total_voting_power": st.members.total_voting_power(),
                "proposal_count": len(st.proposals),
                "treasury_balance": st.treasury.balance,
                "escrowed_stake": st.treasury.escrowed_stake,
                "event_count": len(st.events),
                "events_head": last.hash if last is not None else "",
                "events_root": merkle_root([e["hash"] for e in st.events.to_list()]),
                "state_hash": self.state_hash,
                "persistent": self.store is not None,
                "unsaved": self.unsaved,
                "params": st.params.to_dict(),
                "invariants_ok": not st.check_invariants(),
            }


# ------------------------------------------------------------------------------
# Process-wide executor
# ------------------------------------------------------------------------------

_executor: Optional[DaoExecutor] = None
_executor_lock = threading.Lock()


def build_executor(cfg: Optional[Dict[str, Any]] = None) -> DaoExecutor:
    cfg = cfg if cfg is not None else load_config()
    pers = cfg.get("persistence", {})
    data_dir = str(pers.get("data_dir") or "data")
    if not os.path.isabs(data_dir):
        data_dir = str(Path(os.getcwd()) / data_dir)
    return DaoExecutor(
        get_owner(cfg),
        params=governance_params_from_config(cfg),
        data_dir=data_dir,
        persist=persistence_enabled(cfg),
        keep_backups=int(pers.get("keep_backups", 2)),
        filename=str(pers.get("filename") or "dao_state.json"),
    )


def get_executor() -> DaoExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = build_executor()
        return _executor


def set_executor(ex: Optional[DaoExecutor]) -> None:
    global _executor
    with _executor_lock:
        _executor = ex
