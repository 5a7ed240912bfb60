from __future__ import annotations

"""
Outbound value transfers.

The runtime never moves value to a participant directly; it asks a
``ValueSink`` to settle the transfer. A sink may fail (raise) and may run
arbitrary recipient code while settling, which is why every caller holds
the reentrancy guard around ``send``.

``LedgerValueSink`` is the in-process default: it credits an account book
and then runs the recipient's receive hook, if one is registered.
"""

from typing import Callable, Dict, Optional, Protocol

ReceiveHook = Callable[[str, int], None]


class ValueSink(Protocol):
    def send(self, recipient: str, amount: int) -> None:
        ...


class LedgerValueSink:
    def __init__(self, balances: Optional[Dict[str, int]] = None) -> None:
        self.balances: Dict[str, int] = balances if balances is not None else {}
        self._hooks: Dict[str, ReceiveHook] = {}

    def register_hook(self, recipient: str, hook: ReceiveHook) -> None:
        self._hooks[str(recipient)] = hook

    def clear_hook(self, recipient: str) -> None:
        self._hooks.pop(str(recipient), None)

    def balance_of(self, account: str) -> int:
        return int(self.balances.get(str(account), 0))

    def send(self, recipient: str, amount: int) -> None:
        recipient = str(recipient)
        if not recipient:
            raise ValueError("recipient required")
        if amount < 0:
            raise ValueError("negative transfer")
        existed = recipient in self.balances
        prior = self.balances.get(recipient, 0)
        self.balances[recipient] = prior + int(amount)
        hook = self._hooks.get(recipient)
        if hook is None:
            return
        try:
            hook(recipient, int(amount))
        except Exception:
            # A rejecting recipient means the transfer did not happen.
            if existed:
                self.balances[recipient] = prior
            else:
                del self.balances[recipient]
            raise
