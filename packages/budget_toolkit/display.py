"""Operator-facing messages for a categorization run.

All functions take a ``print_fn`` so the CLI can route output through
``typer.echo`` and tests can capture lines in a list.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from .models import CategorizeMode, RunOutcome, RunStatus, TransactionError

type PrintFn = Callable[..., None]

_MODE_LABELS: dict[CategorizeMode, str] = {
    CategorizeMode.CATEGORY: "categories",
    CategorizeMode.BUDGET: "budgets",
    CategorizeMode.BOTH: "categories and budgets",
}


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def processing_header(tag: str, mode: CategorizeMode, dry_run: bool = False) -> str:
    suffix = " (Dry Run)" if dry_run else ""
    return f'Processing transactions with tag "{tag}" for {_MODE_LABELS[mode]}{suffix}:'


def tag_not_found(tag: str) -> str:
    return f'❌ Tag "{tag}" not found'


def empty_tag(tag: str) -> str:
    return f'No processable transactions found with tag "{tag}"'


def update_summary(count: int, dry_run: bool = False) -> str:
    prefix = "[DRYRUN] " if dry_run else ""
    return f"{prefix}Updated {_plural(count, 'Transaction')}!"


def processing_failed(message: str | None) -> str:
    return f"❌ Error processing transactions: {message or 'unknown error'}"


def error_report_lines(errors: Sequence[TransactionError]) -> list[str]:
    """Consolidated per-transaction error report."""

    if not errors:
        return []
    lines = [f"{_plural(len(errors), 'transaction')} failed validation:"]
    for item in errors:
        err = item.error
        lines.append(f"  • {err.transaction_description} [{err.field}]")
        lines.append(f"    {err.user_message}")
        suggested = err.suggested_value
        if suggested:
            lines.append(f'    Suggested: "{suggested}"')
    lines.append("Please check your categories and budgets in Firefly III.")
    return lines


def print_error_report(errors: Sequence[TransactionError], print_fn: PrintFn = print) -> None:
    for line in error_report_lines(errors):
        print_fn(line)


def print_outcome(
    outcome: RunOutcome, *, tag: str, dry_run: bool = False, print_fn: PrintFn = print
) -> None:
    if outcome.status is RunStatus.NO_TAG:
        print_fn(tag_not_found(tag))
    elif outcome.status is RunStatus.EMPTY_TAG:
        print_fn(empty_tag(tag))
    elif outcome.status is RunStatus.PROCESSING_FAILED:
        print_fn(processing_failed(outcome.error_message))
    else:
        print_fn(update_summary(outcome.updated_count, dry_run))


__all__ = [
    "empty_tag",
    "error_report_lines",
    "print_error_report",
    "print_outcome",
    "processing_failed",
    "processing_header",
    "tag_not_found",
    "update_summary",
]
