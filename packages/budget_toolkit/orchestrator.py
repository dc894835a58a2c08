"""Top-level driver: one tag in, one :class:`RunOutcome` out.

Steps:
1. Resolve the tag; a missing tag ends the run with ``NO_TAG``.
2. Fetch the tag's transactions and keep the eligible ones (``EMPTY_TAG`` if
   none remain).
3. Load the catalogs the mode needs, concurrently.
4. One batched assignment call per requested type, covering every eligible
   transaction; the two calls run concurrently.
5. Run the edit cycle for each transaction, one at a time.

Any exception escaping steps 1-4 is raised as ``ProcessingFailedError`` and
ends the run with ``PROCESSING_FAILED``. Per-transaction failures are
collected and reported together at the end.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

from .assignment import BatchAssignmentService
from .catalog import CatalogValidator
from .edit_cycle import EditCycleController
from .errors import ProcessingFailedError
from .logging_setup import get_logger
from .models import (
    NO_ASSIGNMENT,
    AIResult,
    AssignmentType,
    CategorizeMode,
    RunOutcome,
    RunStatus,
    Suggestion,
    Transaction,
    TransactionError,
)
from .results import Err
from .rules import TransactionRules

_logger = get_logger("budget_toolkit.orchestrator")

type ErrorReporter = Callable[[Sequence[TransactionError]], None]


class TransactionSource(Protocol):
    def tag_exists(self, tag: str) -> bool: ...

    def get_transactions_by_tag(self, tag: str) -> list[Transaction]: ...


def _aligned(
    kind: AssignmentType, suggestions: list[Suggestion], expected: int
) -> list[Suggestion]:
    """Return ``suggestions`` when it lines up with the batch, else all NO_ASSIGNMENT."""

    if len(suggestions) == expected:
        return suggestions
    _logger.error(
        "run:assignment_discarded type=%s expected=%d got=%d",
        kind.value,
        expected,
        len(suggestions),
    )
    return [NO_ASSIGNMENT] * expected


class UpdateOrchestrator:
    def __init__(
        self,
        *,
        ledger: TransactionSource,
        rules: TransactionRules,
        validator: CatalogValidator,
        assignment: BatchAssignmentService,
        edit_cycle: EditCycleController,
        report_errors: ErrorReporter | None = None,
    ) -> None:
        self._ledger = ledger
        self._rules = rules
        self._validator = validator
        self._assignment = assignment
        self._edit_cycle = edit_cycle
        self._report_errors = report_errors

    def update_transactions_by_tag(
        self, tag: str, mode: CategorizeMode = CategorizeMode.BOTH, dry_run: bool = False
    ) -> RunOutcome:
        _logger.info("run:start tag=%r mode=%s dry_run=%s", tag, mode.value, dry_run)
        try:
            prepared = self._prepare(tag, mode)
        except ProcessingFailedError as e:
            _logger.error("run:failed tag=%r error=%s", tag, e.message)
            return RunOutcome(status=RunStatus.PROCESSING_FAILED, error_message=e.message)
        if isinstance(prepared, RunStatus):
            return RunOutcome(status=prepared)
        transactions, results = prepared

        updated = 0
        errors: list[TransactionError] = []
        for tx in transactions:
            if not tx.journal_id:
                continue
            outcome = self._edit_cycle.update_transaction(tx, results, dry_run=dry_run)
            if isinstance(outcome, Err):
                errors.append(TransactionError(transaction=tx, error=outcome.error))
            elif outcome.value is not None:
                updated += 1

        if errors and self._report_errors is not None:
            self._report_errors(errors)
        _logger.info(
            "run:done tag=%r transactions=%d updated=%d errors=%d",
            tag,
            len(transactions),
            updated,
            len(errors),
        )
        return RunOutcome(
            status=RunStatus.HAS_RESULTS,
            updated_count=updated,
            error_count=len(errors),
            errors=tuple(errors),
        )

    def _prepare(
        self, tag: str, mode: CategorizeMode
    ) -> RunStatus | tuple[list[Transaction], dict[str, AIResult]]:
        """Steps 1-4: an early ``RunStatus`` or the transactions and their results.

        Any failure is raised as ``ProcessingFailedError`` chained to its cause.
        """

        try:
            if not self._ledger.tag_exists(tag):
                _logger.info("run:no_tag tag=%r", tag)
                return RunStatus.NO_TAG

            fetched = self._ledger.get_transactions_by_tag(tag)
            transactions = [tx for tx in fetched if self._rules.is_eligible(tx)]
            if not transactions:
                _logger.info("run:empty_tag tag=%r", tag)
                return RunStatus.EMPTY_TAG

            self._validator.initialize(
                categories=mode.includes_categories, budgets=mode.includes_budgets
            )
            return transactions, self._assign(transactions, mode)
        except ProcessingFailedError:
            raise
        except Exception as e:  # noqa: BLE001 - surfaced as PROCESSING_FAILED
            raise ProcessingFailedError(
                str(e) or e.__class__.__name__, {"tag": tag, "cause": e.__class__.__name__}
            ) from e

    def _assign(
        self, transactions: list[Transaction], mode: CategorizeMode
    ) -> dict[str, AIResult]:
        n = len(transactions)
        categories: list[Suggestion | None] = [None] * n
        budgets: list[Suggestion | None] = [None] * n

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="assign") as pool:
            cat_future = (
                pool.submit(
                    self._assignment.assign,
                    AssignmentType.CATEGORY,
                    transactions,
                    self._validator.category_names(),
                )
                if mode.includes_categories
                else None
            )
            bud_future = (
                pool.submit(
                    self._assignment.assign,
                    AssignmentType.BUDGET,
                    transactions,
                    self._validator.budget_names(),
                )
                if mode.includes_budgets
                else None
            )
            if cat_future is not None:
                categories = list(_aligned(AssignmentType.CATEGORY, cat_future.result(), n))
            if bud_future is not None:
                budgets = list(_aligned(AssignmentType.BUDGET, bud_future.result(), n))

        return {
            tx.journal_id: AIResult(category=cat, budget=bud)
            for tx, cat, bud in zip(transactions, categories, budgets, strict=True)
            if tx.journal_id
        }


__all__ = ["ErrorReporter", "TransactionSource", "UpdateOrchestrator"]
