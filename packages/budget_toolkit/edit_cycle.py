"""Per-transaction confirm/edit/skip state machine.

INIT -> PROPOSE -> AWAIT_DECISION -> APPLY | EDIT | SKIP | ERROR

``EDIT`` loops back to ``PROPOSE`` with the operator's replacement values.
The AI suggestion validated in round one is kept in
:class:`~budget_toolkit.models.EditSession.original` and shown unchanged on
every round; only ``current`` moves.

Every outcome is a result value. Nothing raised by the prompts or the ledger
update escapes :meth:`EditCycleController.update_transaction`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

from .catalog import CatalogValidator
from .errors import ErrorField, TransactionValidationError
from .logging_setup import get_logger
from .models import (
    AIResult,
    Budget,
    Category,
    Decision,
    EditField,
    EditSession,
    Proposal,
    Transaction,
)
from .results import Err, Ok, Result
from .rules import TransactionRules
from .term_ui import PromptProvider

_logger = get_logger("budget_toolkit.edit_cycle")

type UpdateResult = Result[Transaction | None, TransactionValidationError]


class TransactionUpdater(Protocol):
    def update_transaction(
        self,
        tx: Transaction,
        category_name: str | None = None,
        budget_id: str | None = None,
    ) -> Transaction | None: ...


def _error(
    tx: Transaction, field: ErrorField, message: str, user_message: str
) -> Err[TransactionValidationError]:
    return Err(
        TransactionValidationError(
            field=field,
            message=message,
            user_message=user_message,
            transaction_id=tx.journal_id or "unknown",
            transaction_description=tx.description or "No description",
        )
    )


def update_parameters(
    decision: Decision, proposal: Proposal
) -> tuple[str | None, str | None]:
    """``(category_name, budget_id)`` to send for an apply decision.

    An unresolved budget (empty id) is never sent.
    """

    category_name = proposal.category.name if proposal.category else None
    budget_id = proposal.budget.id if proposal.budget and proposal.budget.id else None
    if decision is Decision.APPLY_CATEGORY:
        return category_name, None
    if decision is Decision.APPLY_BUDGET:
        return None, budget_id
    return category_name, budget_id


class EditCycleController:
    def __init__(
        self,
        *,
        validator: CatalogValidator,
        rules: TransactionRules,
        prompts: PromptProvider,
        ledger: TransactionUpdater,
        dry_run: bool = False,
    ) -> None:
        self._validator = validator
        self._rules = rules
        self._prompts = prompts
        self._ledger = ledger
        self._dry_run = dry_run

    def update_transaction(
        self,
        tx: Transaction,
        results: Mapping[str, AIResult],
        dry_run: bool | None = None,
    ) -> UpdateResult:
        """Run the cycle for ``tx``.

        Returns ``Ok(updated)`` after an update, ``Ok(tx)`` as the preview in
        dry-run mode, ``Ok(None)`` when nothing changed or the operator skipped,
        and ``Err(...)`` otherwise.
        """

        dry = self._dry_run if dry_run is None else dry_run

        if not self._rules.is_well_formed(tx, results):
            return _error(
                tx,
                "transaction",
                "Transaction data is incomplete or has no AI result",
                "This transaction is missing data needed for processing.",
            )
        journal_id = tx.journal_id
        if not journal_id:
            return _error(
                tx,
                "journalId",
                "Transaction is missing a journal id",
                "This transaction has no journal id and cannot be updated.",
            )

        ai = results[journal_id]
        validated = self._validator.validate(tx, ai.category, ai.budget)
        if isinstance(validated, Err):
            return validated

        category = validated.value.category
        budget = validated.value.budget
        if budget is not None and not self._rules.can_carry_budget(tx):
            budget = None

        if not self._rules.has_changed(tx, category, budget):
            _logger.debug("edit:no_change journal_id=%s", journal_id)
            return Ok(None)

        if dry:
            _logger.debug(
                "edit:dry_run journal_id=%s category=%r budget=%r",
                journal_id,
                category.name if category else None,
                budget.name if budget else None,
            )
            return Ok(tx)

        proposal = Proposal(category=category, budget=budget)
        session = EditSession(transaction_id=journal_id, original=proposal, current=proposal)
        try:
            return self._run_session(tx, session)
        except (KeyboardInterrupt, EOFError) as e:
            _logger.warning(
                "edit:interrupted journal_id=%s rounds=%d error=%s",
                journal_id,
                session.rounds,
                e.__class__.__name__,
            )
            return _error(
                tx,
                "user-interrupt",
                f"Interrupted by user ({e.__class__.__name__})",
                "Processing of this transaction was interrupted.",
            )
        except Exception as e:  # noqa: BLE001 - one transaction never halts the run
            _logger.error(
                "edit:failed journal_id=%s rounds=%d error=%s", journal_id, session.rounds, e
            )
            return _error(
                tx,
                "transaction",
                f"Failed to process transaction: {e}",
                "An unexpected error stopped processing of this transaction.",
            )

    def _run_session(self, tx: Transaction, session: EditSession) -> UpdateResult:
        while True:
            decision = self._prompts.ask_decision(tx, session.current, session.original)
            if decision is Decision.SKIP:
                _logger.debug(
                    "edit:skip journal_id=%s rounds=%d", session.transaction_id, session.rounds
                )
                return Ok(None)
            if decision is Decision.EDIT:
                session.revise(self._edit(session.current, session.original))
                continue
            return self._apply(tx, decision, session)

    def _edit(self, current: Proposal, original: Proposal) -> Proposal:
        available = [
            f
            for f, loaded in (
                (EditField.CATEGORY, self._validator.categories_loaded),
                (EditField.BUDGET, self._validator.budgets_loaded),
            )
            if loaded
        ]
        fields = self._prompts.ask_fields_to_edit(available)

        category: Category | None = current.category
        budget: Budget | None = current.budget
        if EditField.CATEGORY in fields:
            category = self._prompts.select_category(
                self._validator.categories(), current=current.category, suggested=original.category
            )
        if EditField.BUDGET in fields:
            budget = self._prompts.select_budget(
                self._validator.budgets(), current=current.budget, suggested=original.budget
            )
            budget = self._resolve_budget(budget)
        return Proposal(category=category, budget=budget)

    def _resolve_budget(self, budget: Budget | None) -> Budget | None:
        """Give an operator-typed budget one chance to resolve by name."""

        if budget is None or budget.id:
            return budget
        found = self._validator.budget_by_name(budget.name)
        if found is not None:
            return found
        _logger.warning("edit:budget_unresolved name=%r", budget.name)
        return budget

    def _apply(self, tx: Transaction, decision: Decision, session: EditSession) -> UpdateResult:
        category_name, budget_id = update_parameters(decision, session.current)
        if category_name is None and budget_id is None:
            _logger.warning(
                "edit:nothing_to_send journal_id=%s decision=%s",
                session.transaction_id,
                decision.value,
            )
            return Ok(None)
        try:
            updated = self._ledger.update_transaction(tx, category_name, budget_id)
        except Exception as e:  # noqa: BLE001 - reported per transaction
            _logger.error(
                "edit:update_failed journal_id=%s error=%s", session.transaction_id, e
            )
            return _error(
                tx,
                "update",
                f"Failed to update transaction: {e}",
                "The ledger rejected or failed the update for this transaction.",
            )
        _logger.debug(
            "edit:applied journal_id=%s decision=%s rounds=%d",
            session.transaction_id,
            decision.value,
            session.rounds,
        )
        return Ok(updated if updated is not None else tx)


__all__ = ["EditCycleController", "TransactionUpdater", "UpdateResult", "update_parameters"]
