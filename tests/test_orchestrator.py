from __future__ import annotations

import json

import pytest

from budget_toolkit.assignment import BatchAssignmentService
from budget_toolkit.catalog import CatalogValidator
from budget_toolkit.edit_cycle import EditCycleController
from budget_toolkit.errors import LedgerApiError, ProcessingFailedError
from budget_toolkit.models import Budget, CategorizeMode, Decision, EditField, RunStatus
from budget_toolkit.orchestrator import UpdateOrchestrator
from budget_toolkit.retrying_client import RetryingCallClient
from tests.helpers.fakes import (
    FakeCompletion,
    FakeLedger,
    SchemaCompletion,
    ScriptedPrompts,
    make_rules,
    make_tx,
)


def _build(ledger, completion, prompts=None, reported=None, **rule_settings):
    rules = make_rules(**rule_settings)
    validator = CatalogValidator(ledger, rules)
    edit_cycle = EditCycleController(
        validator=validator, rules=rules, prompts=prompts or ScriptedPrompts(), ledger=ledger
    )
    client = RetryingCallClient(completion, max_retries=1, sleep=lambda _s: None)
    return UpdateOrchestrator(
        ledger=ledger,
        rules=rules,
        validator=validator,
        assignment=BatchAssignmentService(client),
        edit_cycle=edit_cycle,
        report_errors=reported.append if reported is not None else None,
    )


def test_missing_tag_is_no_tag_and_never_fetches():
    ledger = FakeLedger([make_tx()], tags=())
    completion = FakeCompletion()

    outcome = _build(ledger, completion).update_transactions_by_tag("missing", CategorizeMode.BOTH)

    assert outcome.status is RunStatus.NO_TAG
    assert outcome.updated_count == 0
    assert ledger.fetches == []
    assert completion.calls == []


def test_all_filtered_out_is_empty_tag():
    ledger = FakeLedger([make_tx("1", type="transfer"), make_tx("2", category_name="Groceries")])

    outcome = _build(ledger, FakeCompletion()).update_transactions_by_tag("weekly")

    assert outcome.status is RunStatus.EMPTY_TAG
    assert outcome.updated_count == 0


def test_one_batched_call_per_type_for_all_transactions():
    ledger = FakeLedger([make_tx(str(i)) for i in range(1, 6)])
    completion = SchemaCompletion(
        lambda schema, n: ["Groceries"] * n if schema == "assign_categories" else ["Food"] * n
    )
    prompts = ScriptedPrompts([Decision.APPLY_BOTH] * 5)

    outcome = _build(ledger, completion, prompts).update_transactions_by_tag(
        "weekly", CategorizeMode.BOTH
    )

    assert sorted(completion.calls) == ["assign_budgets", "assign_categories"]
    assert outcome.status is RunStatus.HAS_RESULTS
    assert outcome.updated_count == 5
    assert ledger.updates == [(str(i), "Groceries", "10") for i in range(1, 6)]


def test_mode_limits_calls_and_catalogs():
    ledger = FakeLedger([make_tx("1")])
    completion = SchemaCompletion(lambda schema, n: ["Groceries"] * n)
    prompts = ScriptedPrompts([Decision.APPLY_CATEGORY])

    outcome = _build(ledger, completion, prompts).update_transactions_by_tag(
        "weekly", CategorizeMode.CATEGORY
    )

    assert completion.calls == ["assign_categories"]
    assert ledger.catalog_calls == ["categories"]
    assert ledger.updates == [("1", "Groceries", None)]
    assert outcome.updated_count == 1


def test_one_success_and_one_validation_failure_are_both_counted():
    ok_tx = make_tx("1", description="Supermarket")
    bad_tx = make_tx("2", description="Mystery vendor")
    ledger = FakeLedger([ok_tx, bad_tx])
    completion = FakeCompletion([json.dumps({"categories": ["Groceries", "Pet Supplies"]})])
    prompts = ScriptedPrompts([Decision.APPLY_CATEGORY])
    reported: list = []

    outcome = _build(ledger, completion, prompts, reported).update_transactions_by_tag(
        "weekly", CategorizeMode.CATEGORY
    )

    assert outcome.status is RunStatus.HAS_RESULTS
    assert outcome.updated_count == 1
    assert outcome.error_count == 1
    assert [e.transaction for e in outcome.errors] == [bad_tx]
    assert outcome.errors[0].error.field == "category"
    assert len(reported) == 1 and list(reported[0]) == list(outcome.errors)


def test_fetch_failure_is_processing_failed():
    ledger = FakeLedger([make_tx()], fail_fetch=LedgerApiError("connection refused"))

    outcome = _build(ledger, FakeCompletion()).update_transactions_by_tag("weekly")

    assert outcome.status is RunStatus.PROCESSING_FAILED
    assert outcome.error_message == "connection refused"


def test_empty_catalog_is_processing_failed():
    ledger = FakeLedger([make_tx()], categories=())

    outcome = _build(ledger, FakeCompletion()).update_transactions_by_tag(
        "weekly", CategorizeMode.CATEGORY
    )

    assert outcome.status is RunStatus.PROCESSING_FAILED
    assert outcome.error_message == "No valid category options provided"


def test_interrupt_on_one_transaction_does_not_stop_the_run():
    ledger = FakeLedger([make_tx("1"), make_tx("2")])
    completion = SchemaCompletion(lambda schema, n: ["Groceries"] * n)
    prompts = ScriptedPrompts([KeyboardInterrupt(), Decision.APPLY_CATEGORY])

    outcome = _build(ledger, completion, prompts).update_transactions_by_tag(
        "weekly", CategorizeMode.CATEGORY
    )

    assert outcome.updated_count == 1
    assert outcome.error_count == 1
    assert outcome.errors[0].error.field == "user-interrupt"
    assert ledger.updates == [("2", "Groceries", None)]


def test_transactions_without_journal_id_are_skipped_silently():
    ledger = FakeLedger([make_tx(None), make_tx("2")])
    completion = SchemaCompletion(lambda schema, n: ["Groceries"] * n)
    prompts = ScriptedPrompts([Decision.APPLY_CATEGORY])

    outcome = _build(ledger, completion, prompts).update_transactions_by_tag(
        "weekly", CategorizeMode.CATEGORY
    )

    assert outcome.updated_count == 1
    assert outcome.error_count == 0


def test_mismatched_assignment_length_is_discarded_for_that_type():
    ledger = FakeLedger([make_tx("1"), make_tx("2")])
    completion = FakeCompletion([json.dumps({"categories": ["Groceries"]})])
    prompts = ScriptedPrompts()

    outcome = _build(ledger, completion, prompts).update_transactions_by_tag(
        "weekly", CategorizeMode.CATEGORY
    )

    # Nothing proposed for either transaction, so nothing changes.
    assert outcome.status is RunStatus.HAS_RESULTS
    assert outcome.updated_count == 0
    assert outcome.error_count == 0
    assert prompts.call_count == 0


def test_dry_run_counts_previews_without_updates():
    ledger = FakeLedger([make_tx("1"), make_tx("2")])
    completion = SchemaCompletion(lambda schema, n: ["Groceries"] * n)
    prompts = ScriptedPrompts()

    outcome = _build(ledger, completion, prompts).update_transactions_by_tag(
        "weekly", CategorizeMode.CATEGORY, dry_run=True
    )

    assert outcome.updated_count == 2
    assert ledger.updates == []
    assert prompts.call_count == 0


def test_unexpected_prompt_failure_does_not_stop_the_run():
    ledger = FakeLedger([make_tx("1"), make_tx("2")])
    completion = SchemaCompletion(lambda schema, n: ["Groceries"] * n)
    prompts = ScriptedPrompts([Decision.APPLY_CATEGORY, RuntimeError("terminal gone")])
    reported: list = []

    outcome = _build(ledger, completion, prompts, reported).update_transactions_by_tag(
        "weekly", CategorizeMode.CATEGORY
    )

    assert outcome.status is RunStatus.HAS_RESULTS
    assert outcome.updated_count == 1
    assert outcome.error_count == 1
    assert outcome.errors[0].error.field == "transaction"
    assert "terminal gone" in outcome.errors[0].error.message
    assert ledger.updates == [("1", "Groceries", None)]
    assert len(reported) == 1


def test_budget_only_apply_with_unresolved_budget_is_not_an_update():
    ledger = FakeLedger([make_tx("1")])
    completion = SchemaCompletion(lambda schema, n: ["Food"] * n)
    prompts = ScriptedPrompts(
        [Decision.EDIT, Decision.APPLY_BUDGET],
        fields=[[EditField.BUDGET]],
        budgets=[Budget(id="", name="Mystery")],
    )

    outcome = _build(ledger, completion, prompts).update_transactions_by_tag(
        "weekly", CategorizeMode.BUDGET
    )

    assert outcome.status is RunStatus.HAS_RESULTS
    assert outcome.updated_count == 0
    assert outcome.error_count == 0
    assert ledger.updates == []


def test_setup_failures_are_raised_as_processing_failed_error():
    cause = LedgerApiError("connection refused")
    orchestrator = _build(FakeLedger([make_tx()], fail_fetch=cause), FakeCompletion())

    with pytest.raises(ProcessingFailedError) as excinfo:
        orchestrator._prepare("weekly", CategorizeMode.BOTH)

    assert excinfo.value.message == "connection refused"
    assert excinfo.value.details == {"tag": "weekly", "cause": "LedgerApiError"}
    assert excinfo.value.__cause__ is cause
