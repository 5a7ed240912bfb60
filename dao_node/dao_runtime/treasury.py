from __future__ import annotations

"""
Treasury and stake escrow.

Two balances are tracked side by side and never mixed:

- ``balance``: pooled funds that proposals and the owner may spend.
- ``escrowed_stake``: member stake held for refund on leave.

Proposal funding is checked against ``balance`` only, so spending the
treasury can never make a member's stake unrefundable.

Every outbound movement is "debit, then send": if the sink raises, the
debit is put back before the error leaves this module.
"""

from typing import Any, Dict

from .errors import InsufficientBalance, InvalidAmount, TransferFailed, ZeroDeposit
from .transfers import ValueSink


class Treasury:
    def __init__(self, balance: int = 0, escrowed_stake: int = 0) -> None:
        if balance < 0 or escrowed_stake < 0:
            raise ValueError("treasury balances cannot be negative")
        self.balance: int = int(balance)
        self.escrowed_stake: int = int(escrowed_stake)

    # ----- pooled funds -----

    def deposit(self, amount: int) -> int:
        amount = int(amount)
        if amount <= 0:
            raise ZeroDeposit(amount=amount)
        self.balance += amount
        return self.balance

    def require_available(self, amount: int) -> None:
        if int(amount) > self.balance:
            raise InsufficientBalance(amount=int(amount), balance=self.balance)

    def payout(self, sink: ValueSink, recipient: str, amount: int) -> int:
        amount = int(amount)
        if amount <= 0:
            raise InvalidAmount(amount=amount)
        self.require_available(amount)

        self.balance -= amount
        try:
            sink.send(recipient, amount)
        except Exception as e:
            self.balance += amount
            raise TransferFailed(f"transfer to {recipient} failed: {e}", recipient=recipient, amount=amount) from e
        return amount

    # ----- stake escrow -----

    def escrow(self, amount: int) -> None:
        if int(amount) < 0:
            raise InvalidAmount(amount=int(amount))
        self.escrowed_stake += int(amount)

    def refund_stake(self, sink: ValueSink, recipient: str, amount: int) -> int:
        amount = int(amount)
        if amount > self.escrowed_stake:
            # Escrow out of sync with member records; refuse rather than dip into the treasury.
            raise InsufficientBalance(amount=amount, escrowed=self.escrowed_stake)
        if amount == 0:
            return 0

        self.escrowed_stake -= amount
        try:
            sink.send(recipient, amount)
        except Exception as e:
            self.escrowed_stake += amount
            raise TransferFailed(f"stake refund to {recipient} failed: {e}", recipient=recipient, amount=amount) from e
        return amount

    def to_dict(self) -> Dict[str, Any]:
        return {"balance": self.balance, "escrowed_stake": self.escrowed_stake}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Treasury":
        return cls(
            balance=int(raw.get("balance", 0) or 0),
            escrowed_stake=int(raw.get("escrowed_stake", 0) or 0),
        )
