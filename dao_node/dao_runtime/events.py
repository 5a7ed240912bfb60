from __future__ import annotations

"""
Notification records emitted by successful mutating operations.

Each event is appended to an in-state log with a sequence number and a hash
chained to the previous event, then handed to any registered listeners.
Listener delivery is fire-and-forget: a failing listener is logged and
otherwise ignored, it never aborts the operation that produced the event.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .audit import GENESIS_HASH, chain_hash

log = logging.getLogger(__name__)

MEMBER_JOINED = "MemberJoined"
MEMBER_LEFT = "MemberLeft"
PROPOSAL_CREATED = "ProposalCreated"
VOTE_CASTED = "VoteCasted"
PROPOSAL_EXECUTED = "ProposalExecuted"
FUNDS_DEPOSITED = "FundsDeposited"
PAUSED = "Paused"
UNPAUSED = "Unpaused"
EMERGENCY_WITHDRAWAL = "EmergencyWithdrawal"

EventListener = Callable[["Event"], None]


@dataclass(frozen=True)
class Event:
    seq: int
    name: str
    ts: int
    data: Dict[str, Any] = field(default_factory=dict)
    prev_hash: str = GENESIS_HASH
    hash: str = ""

    def body(self) -> Dict[str, Any]:
        return {"seq": self.seq, "name": self.name, "ts": self.ts, "data": dict(self.data)}

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Event":
        return cls(
            seq=int(raw["seq"]),
            name=str(raw["name"]),
            ts=int(raw["ts"]),
            data=dict(raw.get("data") or {}),
            prev_hash=str(raw.get("prev_hash") or GENESIS_HASH),
            hash=str(raw.get("hash") or ""),
        )


def publish(ev: Event, listeners: List[EventListener]) -> None:
    for listener in list(listeners):
        try:
            listener(ev)
        except Exception:
            log.exception("event listener failed for %s #%d", ev.name, ev.seq)


class EventLog:
    def __init__(self, events: Optional[List[Event]] = None) -> None:
        self._events: List[Event] = list(events or [])

    def __len__(self) -> int:
        return len(self._events)

    @property
    def head_hash(self) -> str:
        return self._events[-1].hash if self._events else GENESIS_HASH

    def emit(self, name: str, ts: int, **data: Any) -> Event:
        prev = self.head_hash
        seq = len(self._events) + 1
        body = {"seq": seq, "name": name, "ts": int(ts), "data": data}
        ev = Event(seq=seq, name=name, ts=int(ts), data=data, prev_hash=prev, hash=chain_hash(prev, body))
        self._events.append(ev)
        log.info("event %s #%d %s", name, seq, data)
        return ev

    def truncate(self, length: int) -> None:
        del self._events[length:]

    def since(self, seq: int = 0, limit: int = 100) -> List[Event]:
        # seq is 1-based and contiguous, so events after seq start at index seq.
        start = max(0, int(seq))
        return self._events[start : start + max(0, int(limit))]

    def last(self) -> Optional[Event]:
        return self._events[-1] if self._events else None

    def to_list(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self._events]

    @classmethod
    def from_list(cls, raw: List[Dict[str, Any]]) -> "EventLog":
        return cls([Event.from_dict(r) for r in (raw or [])])
