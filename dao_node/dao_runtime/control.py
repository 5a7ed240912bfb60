from __future__ import annotations

"""
Administrative control primitives.

1) **AdminControl**
   - `owner` fixed at bootstrap
   - `require_owner(caller)` -> raises NotOwner
   - `require_not_paused()`  -> raises ContractPaused
   - `pause(caller)` / `unpause(caller)` (owner only, not idempotent:
     pausing twice raises ContractPaused, unpausing twice raises NotPaused)

2) **ReentrancyGuard**
   A latch held for the duration of any operation that sends value out.
   While it is held every mutating operation is rejected with ReentrantCall.
   Typical pattern:

       with guard.enter("payout"):
           ...

The guard is per state aggregate and is never persisted: a snapshot always
describes a state with no operation in flight.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from .errors import ContractPaused, NotOwner, NotPaused, ReentrantCall


class ReentrancyGuard:
    def __init__(self) -> None:
        self._scope: Optional[str] = None

    @property
    def entered(self) -> bool:
        return self._scope is not None

    @property
    def scope(self) -> Optional[str]:
        return self._scope

    def require_not_entered(self) -> None:
        if self._scope is not None:
            raise ReentrantCall(active_scope=self._scope)

    @contextmanager
    def enter(self, scope: str = "default") -> Iterator[None]:
        self.require_not_entered()
        self._scope = scope
        try:
            yield
        finally:
            self._scope = None

    def __deepcopy__(self, memo: Dict[int, Any]) -> "ReentrancyGuard":
        # Snapshots carry a released guard.
        return ReentrancyGuard()


class AdminControl:
    def __init__(self, owner: str, paused: bool = False) -> None:
        owner = str(owner or "").strip()
        if not owner:
            raise ValueError("owner identity required")
        self.owner: str = owner
        self.paused: bool = bool(paused)

    def is_owner(self, caller: str) -> bool:
        return str(caller) == self.owner

    def require_owner(self, caller: str) -> None:
        if not self.is_owner(caller):
            raise NotOwner(caller=caller)

    def require_not_paused(self) -> None:
        if self.paused:
            raise ContractPaused()

    def pause(self, caller: str) -> None:
        self.require_owner(caller)
        self.require_not_paused()
        self.paused = True

    def unpause(self, caller: str) -> None:
        self.require_owner(caller)
        if not self.paused:
            raise NotPaused()
        self.paused = False

    def to_dict(self) -> Dict[str, Any]:
        return {"owner": self.owner, "paused": self.paused}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AdminControl":
        return cls(owner=str(raw["owner"]), paused=bool(raw.get("paused", False)))
