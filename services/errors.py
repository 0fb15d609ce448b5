from __future__ import annotations

from schemas.domain import BudgetImpact, RuleViolation


class DomusLedgerError(Exception):
    """Base class for errors surfaced to the presentation layer."""


class InvalidInputError(DomusLedgerError, ValueError):
    """Input rejected before anything is written."""


class BlockedByRuleError(DomusLedgerError):
    """A strict budget rule refuses the transaction outright."""

    def __init__(self, violations: list[RuleViolation]):
        self.violations = violations
        names = ", ".join(sorted({v.rule.name for v in violations}))
        super().__init__(f"Transaction blocked by strict budget rule(s): {names}")


class ConfirmationRequiredError(DomusLedgerError):
    """Advisory warnings exist; resubmit with ``confirmed=True`` to proceed."""

    def __init__(self, violations: list[RuleViolation], impact: BudgetImpact | None = None):
        self.violations = violations
        self.impact = impact
        super().__init__("Transaction has budget warnings and needs confirmation")


class PersistenceError(DomusLedgerError):
    """The store rejected a write; in-memory state was left unchanged."""
