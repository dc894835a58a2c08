"""Data models for the categorization and update pipeline.

Transactions, categories and budgets are owned by the ledger service; the
types here are read-only views of them. The pipeline never mutates a
``Transaction`` in place, it produces update requests instead.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from .errors import TransactionValidationError

# ---------------------------------------------------------------------------
# Ledger views
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Transaction:
    """One split of a ledger transaction group.

    ``journal_id`` identifies the split; ``transaction_id`` is the id of the
    owning group, which the ledger's update endpoint is keyed on.
    """

    journal_id: str | None
    description: str
    amount: str
    date: str
    type: str = "withdrawal"
    transaction_id: str | None = None
    source_id: str | None = None
    source_name: str | None = None
    destination_id: str | None = None
    destination_name: str | None = None
    currency_id: str | None = None
    currency_code: str | None = None
    currency_symbol: str | None = None
    category_id: str | None = None
    category_name: str | None = None
    budget_id: str | None = None
    budget_name: str | None = None
    tags: tuple[str, ...] = ()
    bill_id: str | None = None
    subscription_id: str | None = None
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class Category:
    """A category catalog entry. Categories are referenced by name on update."""

    name: str
    type: str | None = None
    id: str | None = None


@dataclass(frozen=True, slots=True)
class Budget:
    """A budget catalog entry. Budgets are referenced by id on update.

    An empty ``id`` marks a placeholder built from a typed name that has not
    (yet) been resolved against the catalog.
    """

    id: str
    name: str

    @property
    def is_resolved(self) -> bool:
        return bool(self.id)


# ---------------------------------------------------------------------------
# Assignment types and suggestions
# ---------------------------------------------------------------------------


class AssignmentType(StrEnum):
    CATEGORY = "category"
    BUDGET = "budget"

    @property
    def plural(self) -> str:
        return "categories" if self is AssignmentType.CATEGORY else "budgets"

    @property
    def no_value_label(self) -> str:
        """Label the model uses on the wire for "no assignment"."""
        return f"(no {self.value})"


@dataclass(frozen=True, slots=True)
class Assigned:
    """The model suggested ``name`` (not necessarily a catalog member)."""

    name: str


@dataclass(frozen=True, slots=True)
class NoAssignment:
    """The model explicitly withheld a value, or the assignment call failed."""

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return "NO_ASSIGNMENT"


NO_ASSIGNMENT = NoAssignment()

type Suggestion = Assigned | NoAssignment


def suggestion_text(suggestion: Suggestion | str | None) -> str | None:
    """Return the name carried by ``suggestion``.

    ``NO_ASSIGNMENT`` maps to ``""`` (explicitly no value) while ``None`` means
    no suggestion was requested at all.
    """

    if suggestion is None:
        return None
    if isinstance(suggestion, NoAssignment):
        return ""
    if isinstance(suggestion, Assigned):
        return suggestion.name
    return suggestion


@dataclass(frozen=True, slots=True)
class AIResult:
    """Per-transaction suggestions; ``None`` means the type was not requested."""

    category: Suggestion | None = None
    budget: Suggestion | None = None


type AIResultsById = Mapping[str, AIResult]


@dataclass(frozen=True, slots=True)
class ValidatedAssignment:
    """Catalog entities resolved from a suggestion; ``None`` = no assignment."""

    category: Category | None = None
    budget: Budget | None = None


# ---------------------------------------------------------------------------
# Interactive edit cycle
# ---------------------------------------------------------------------------


class CategorizeMode(StrEnum):
    """Which fields a run asks the model to assign."""

    CATEGORY = "category"
    BUDGET = "budget"
    BOTH = "both"

    @property
    def includes_categories(self) -> bool:
        return self is not CategorizeMode.BUDGET

    @property
    def includes_budgets(self) -> bool:
        return self is not CategorizeMode.CATEGORY


class Decision(StrEnum):
    APPLY_BOTH = "both"
    APPLY_CATEGORY = "category"
    APPLY_BUDGET = "budget"
    EDIT = "edit"
    SKIP = "skip"


class EditField(StrEnum):
    CATEGORY = "category"
    BUDGET = "budget"


@dataclass(frozen=True, slots=True)
class Proposal:
    category: Category | None = None
    budget: Budget | None = None


@dataclass(slots=True)
class EditSession:
    """State for one transaction's confirm/edit loop.

    ``original`` is the AI suggestion as validated in round one and cannot be
    reassigned once set; ``current`` changes with every edit.
    """

    transaction_id: str
    original: Proposal
    current: Proposal
    rounds: int = 1

    def __setattr__(self, name: str, value: object) -> None:
        if name == "original" and hasattr(self, "original"):
            raise AttributeError("the original AI suggestion is frozen for the session")
        object.__setattr__(self, name, value)

    def revise(self, proposal: Proposal) -> None:
        self.current = proposal
        self.rounds += 1


# ---------------------------------------------------------------------------
# Run outcome
# ---------------------------------------------------------------------------


class RunStatus(StrEnum):
    NO_TAG = "no_tag"
    EMPTY_TAG = "empty_tag"
    PROCESSING_FAILED = "processing_failed"
    HAS_RESULTS = "has_results"


@dataclass(frozen=True, slots=True)
class TransactionError:
    transaction: Transaction
    error: TransactionValidationError


@dataclass(frozen=True, slots=True)
class RunOutcome:
    status: RunStatus
    updated_count: int = 0
    error_count: int = 0
    errors: tuple[TransactionError, ...] = field(default_factory=tuple)
    error_message: str | None = None


__all__ = [
    "AIResult",
    "AIResultsById",
    "Assigned",
    "AssignmentType",
    "Budget",
    "CategorizeMode",
    "Category",
    "Decision",
    "EditField",
    "EditSession",
    "NO_ASSIGNMENT",
    "NoAssignment",
    "Proposal",
    "RunOutcome",
    "RunStatus",
    "Suggestion",
    "Transaction",
    "TransactionError",
    "ValidatedAssignment",
    "suggestion_text",
]
