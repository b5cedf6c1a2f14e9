"""Value-transfer collaborator boundary.

The settlement engine never keeps balances of its own; it moves value through
a token ledger exposing four primitives. Any falsy result from the ledger is
a hard abort of the enclosing operation.

``InMemoryToken`` is a reference ledger for tests and simulations. It is
``Transactional`` so that an aborted engine operation also rolls back the
transfers it already made.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from .exceptions import TransferFailed, ValidationException
from .transactions import Transactional

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenLedger(Protocol):
    """The four value-transfer primitives the engine consumes."""

    def transfer(self, sender: str, recipient: str, amount: int) -> bool: ...

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> bool: ...

    def balance_of(self, account: str) -> int: ...

    def allowance(self, owner: str, spender: str) -> int: ...


def send(token: TokenLedger, sender: str, recipient: str, amount: int) -> None:
    """Transfer ``amount`` out of a custody account, aborting on failure.

    Zero amounts are skipped.
    """
    if amount == 0:
        return
    if not token.transfer(sender, recipient, amount):
        raise TransferFailed(
            f"Transfer of {amount} from {sender} to {recipient} failed",
            sender=sender,
            recipient=recipient,
            amount=amount,
        )
    logger.debug("Transferred %d from %s to %s", amount, sender, recipient)


def pull(token: TokenLedger, spender: str, owner: str, recipient: str, amount: int) -> None:
    """Pull ``amount`` from ``owner`` using ``spender``'s allowance, aborting on failure."""
    if not token.transfer_from(spender, owner, recipient, amount):
        raise TransferFailed(
            f"Transfer of {amount} from {owner} to {recipient} via {spender} failed",
            sender=owner,
            recipient=recipient,
            amount=amount,
        )
    logger.debug("Pulled %d from %s into %s", amount, owner, recipient)


TransferHook = Callable[[str, str, int], None]


class InMemoryToken(Transactional):
    """Dictionary-backed token ledger.

    Failure injection: accounts in ``frozen`` can neither send nor receive, and
    the transfer then returns False. ``on_transfer`` hooks run after a transfer
    has been booked, which lets tests model a recipient that calls back into
    the engine.
    """

    _journal_fields = ("_balances", "_allowances", "frozen")

    def __init__(self) -> None:
        self._balances: dict[str, int] = defaultdict(int)
        self._allowances: dict[tuple[str, str], int] = defaultdict(int)
        self.frozen: set[str] = set()
        self.on_transfer: list[TransferHook] = []

    def mint(self, account: str, amount: int) -> None:
        if amount <= 0:
            raise ValidationException("Mint amount must be positive", field="amount", value=amount)
        self._balances[account] += amount

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise ValidationException("Allowance cannot be negative", field="amount", value=amount)
        self._allowances[(owner, spender)] = amount

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def total_supply(self) -> int:
        return sum(self._balances.values())

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        if not self._can_move(sender, recipient, amount):
            return False
        self._move(sender, recipient, amount)
        return True

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> bool:
        if self.allowance(owner, spender) < amount:
            return False
        if not self._can_move(owner, recipient, amount):
            return False
        self._allowances[(owner, spender)] -= amount
        self._move(owner, recipient, amount)
        return True

    def _can_move(self, sender: str, recipient: str, amount: int) -> bool:
        if amount <= 0:
            return False
        if sender in self.frozen or recipient in self.frozen:
            return False
        return self.balance_of(sender) >= amount

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        self._balances[sender] -= amount
        self._balances[recipient] += amount
        for hook in list(self.on_transfer):
            hook(sender, recipient, amount)
