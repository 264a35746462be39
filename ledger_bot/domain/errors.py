# ledger_bot/domain/errors.py
"""Caller-level validation errors raised by the ledger service, never by the pure transforms."""
from __future__ import annotations


class LedgerError(Exception):
    """Base class; `str(err)` is safe to show to the invoking user."""


class CharacterNotFound(LedgerError):
    def __init__(self, user_id: int, name: str | None = None):
        self.user_id = user_id
        self.name = name
        who = f"<@{user_id}>"
        if name:
            super().__init__(f"{who} has no adventurer named **{name}** in the ledger.")
        else:
            super().__init__(f"{who} has no active adventurer in the ledger.")


class InsufficientFunds(LedgerError):
    def __init__(self, resource: str, balance: str, required: str):
        self.resource = resource
        self.balance = balance
        self.required = required
        super().__init__(f"Not enough {resource}: balance {balance}, required {required}.")


class InvalidAmount(LedgerError):
    pass
