"""Resolve suggested category/budget names against the live catalogs.

Names are matched after trimming and lower-casing only. Punctuation is kept,
so "Bills & Utilities" and "bills & utilities" resolve to the same entry while
"Bills and Utilities" does not.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

from .errors import TransactionValidationError
from .logging_setup import get_logger
from .models import Budget, Category, Suggestion, Transaction, ValidatedAssignment, suggestion_text
from .results import Err, Ok, Result

_logger = get_logger("budget_toolkit.catalog")

_SAMPLE_SIZE = 10


def normalize_name(name: str) -> str:
    return name.strip().lower()


class CatalogProvider(Protocol):
    def get_categories(self) -> list[Category]: ...

    def get_budgets(self) -> list[Budget]: ...


class BudgetEligibility(Protocol):
    def can_carry_budget(self, tx: Transaction) -> bool: ...


class CatalogValidator:
    def __init__(self, catalogs: CatalogProvider, rules: BudgetEligibility) -> None:
        self._catalogs = catalogs
        self._rules = rules
        self._categories: dict[str, Category] = {}
        self._budgets: dict[str, Budget] = {}
        self._categories_loaded = False
        self._budgets_loaded = False

    # ---- catalog loading ---------------------------------------------------

    def initialize(self, *, categories: bool = True, budgets: bool = True) -> None:
        """Fetch the requested catalogs (concurrently) and rebuild the indices.

        Errors from the catalog provider propagate to the caller.
        """

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="catalog") as pool:
            cat_future = pool.submit(self._catalogs.get_categories) if categories else None
            bud_future = pool.submit(self._catalogs.get_budgets) if budgets else None
            fetched_categories = cat_future.result() if cat_future else []
            fetched_budgets = bud_future.result() if bud_future else []

        self._categories = {normalize_name(c.name): c for c in fetched_categories if c.name}
        self._budgets = {normalize_name(b.name): b for b in fetched_budgets if b.name}
        self._categories_loaded = categories
        self._budgets_loaded = budgets
        _logger.debug(
            "catalog:init categories=%d budgets=%d", len(self._categories), len(self._budgets)
        )

    @property
    def categories_loaded(self) -> bool:
        return self._categories_loaded

    @property
    def budgets_loaded(self) -> bool:
        return self._budgets_loaded

    def category_names(self) -> list[str]:
        return sorted(c.name for c in self._categories.values())

    def budget_names(self) -> list[str]:
        return sorted(b.name for b in self._budgets.values())

    def categories(self) -> list[Category]:
        return sorted(self._categories.values(), key=lambda c: c.name.lower())

    def budgets(self) -> list[Budget]:
        return sorted(self._budgets.values(), key=lambda b: b.name.lower())

    def category_by_name(self, name: str) -> Category | None:
        return self._categories.get(normalize_name(name))

    def budget_by_name(self, name: str) -> Budget | None:
        return self._budgets.get(normalize_name(name))

    # ---- validation ----------------------------------------------------------

    def validate(
        self,
        tx: Transaction,
        category: Suggestion | str | None = None,
        budget: Suggestion | str | None = None,
    ) -> Result[ValidatedAssignment, TransactionValidationError]:
        """Resolve both suggestions for ``tx``.

        An empty suggestion means no assignment and always succeeds. Both fields
        are resolved before a failure is reported; the category failure wins
        when both fail.
        """

        category_result = self._validate_category(tx, suggestion_text(category))
        budget_result = self._validate_budget(tx, suggestion_text(budget))

        if isinstance(category_result, Err):
            return category_result
        if isinstance(budget_result, Err):
            return budget_result
        return Ok(ValidatedAssignment(category=category_result.value, budget=budget_result.value))

    def _validate_category(
        self, tx: Transaction, name: str | None
    ) -> Result[Category | None, TransactionValidationError]:
        if not name:
            return Ok(None)
        found = self.category_by_name(name)
        if found is not None:
            return Ok(found)

        error = TransactionValidationError(
            field="category",
            message=f'Invalid or unrecognized category from AI: "{name}"',
            user_message=(
                f'The suggested category "{name}" doesn\'t exist. '
                "Please choose a valid category or create it first."
            ),
            transaction_id=tx.journal_id or "unknown",
            transaction_description=tx.description or "No description",
            details={
                "suggested_category": name,
                "available_categories": [c.name for c in self._categories.values()][:_SAMPLE_SIZE],
            },
        )
        _logger.warning(
            "catalog:unknown_category journal_id=%s suggested=%r available=%d",
            error.transaction_id,
            name,
            len(self._categories),
        )
        return Err(error)

    def _validate_budget(
        self, tx: Transaction, name: str | None
    ) -> Result[Budget | None, TransactionValidationError]:
        if not name:
            return Ok(None)
        if not self._rules.can_carry_budget(tx):
            _logger.debug(
                "catalog:budget_ignored journal_id=%s type=%s suggested=%r",
                tx.journal_id,
                tx.type,
                name,
            )
            return Ok(None)
        found = self.budget_by_name(name)
        if found is not None:
            return Ok(found)

        error = TransactionValidationError(
            field="budget",
            message=f'Invalid or unrecognized budget from AI: "{name}"',
            user_message=(
                f'The suggested budget "{name}" doesn\'t exist. '
                "Please choose a valid budget or create it first."
            ),
            transaction_id=tx.journal_id or "unknown",
            transaction_description=tx.description or "No description",
            details={
                "suggested_budget": name,
                "available_budgets": [b.name for b in self._budgets.values()][:_SAMPLE_SIZE],
            },
        )
        _logger.warning(
            "catalog:unknown_budget journal_id=%s suggested=%r available=%d",
            error.transaction_id,
            name,
            len(self._budgets),
        )
        return Err(error)


__all__ = ["BudgetEligibility", "CatalogProvider", "CatalogValidator", "normalize_name"]
