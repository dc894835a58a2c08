"""Exception types and the structured per-transaction validation error.

Exceptions cross component boundaries in two places only: when the retrying
LLM client exhausts its attempts, and at the orchestrator's outermost catch.
Everything in between reports failures as :class:`TransactionValidationError`
values wrapped in :class:`~budget_toolkit.results.Err`.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal


class BudgetToolkitError(Exception):
    """Base class for errors raised by ``budget_toolkit``."""

    def __init__(self, message: str, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})


class ConfigurationError(BudgetToolkitError):
    """Fatal misconfiguration (missing settings, empty option catalog)."""


class TransientCallError(BudgetToolkitError):
    """A network call to the LLM or ledger service failed; safe to retry."""


class LedgerApiError(TransientCallError):
    """The ledger service returned an error status or an unexpected payload."""


class ProcessingFailedError(BudgetToolkitError):
    """Top-level fetch/catalog failure surfaced by the orchestrator."""


ErrorField = Literal["journalId", "transaction", "category", "budget", "user-interrupt", "update"]


@dataclass(frozen=True, slots=True)
class TransactionValidationError:
    """Why a single transaction could not be validated or updated.

    ``message`` is meant for logs; ``user_message`` is what the operator sees in
    the end-of-run report. ``details`` may carry ``suggested_category`` or
    ``suggested_budget`` plus a short sample of the available names.
    """

    field: ErrorField
    message: str
    user_message: str
    transaction_id: str
    transaction_description: str
    details: Mapping[str, Any] = field(default_factory=dict)

    @property
    def suggested_value(self) -> str | None:
        value = self.details.get("suggested_category") or self.details.get("suggested_budget")
        return str(value) if value else None


__all__ = [
    "BudgetToolkitError",
    "ConfigurationError",
    "ErrorField",
    "LedgerApiError",
    "ProcessingFailedError",
    "TransactionValidationError",
    "TransientCallError",
]
