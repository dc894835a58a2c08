"""CLI for the ``budget_toolkit`` package.

Environment variables (Firefly III URL/token, ``OPENAI_API_KEY`` and the
``BUDGET_TOOLKIT_*`` tunables) are loaded from a local ``.env`` using
``python-dotenv`` before settings are built. Business logic lives in the
orchestrator and the modules it wires together.
"""

from __future__ import annotations

from pathlib import Path

import typer
from dotenv import load_dotenv

from . import display
from .assignment import BatchAssignmentService
from .catalog import CatalogValidator
from .config import Settings, load_settings
from .edit_cycle import EditCycleController
from .errors import ConfigurationError
from .ledger import FireflyClient, LedgerService
from .llm_client import OpenAICompletionService
from .logging_setup import configure_logging, get_logger
from .models import CategorizeMode, RunStatus
from .orchestrator import UpdateOrchestrator
from .retrying_client import RetryingCallClient
from .rules import TransactionRules
from .term_ui import PromptProvider, TerminalPrompts

_logger = get_logger("budget_toolkit.cli")


def build_orchestrator(
    settings: Settings,
    *,
    prompts: PromptProvider | None = None,
    ledger: LedgerService | None = None,
    completion: OpenAICompletionService | None = None,
    dry_run: bool = False,
) -> UpdateOrchestrator:
    """Wire every component from one ``Settings`` value."""

    ledger = ledger or LedgerService(FireflyClient(settings.firefly))
    rules = TransactionRules(settings.transactions)
    validator = CatalogValidator(ledger, rules)
    client = RetryingCallClient.from_settings(
        completion or OpenAICompletionService(settings.llm), settings.llm
    )
    edit_cycle = EditCycleController(
        validator=validator,
        rules=rules,
        prompts=prompts or TerminalPrompts(print_fn=typer.echo),
        ledger=ledger,
        dry_run=dry_run,
    )
    return UpdateOrchestrator(
        ledger=ledger,
        rules=rules,
        validator=validator,
        assignment=BatchAssignmentService(client),
        edit_cycle=edit_cycle,
        report_errors=lambda errors: display.print_error_report(errors, typer.echo),
    )


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Assign Firefly III categories and budgets to tagged transactions using OpenAI "
        "(Responses API). Loads settings from a local .env before running."
    ),
)


@app.callback()
def _root() -> None:
    """Root command.

    Loads ``.env`` from the current working directory without overriding
    variables that are already set.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)


@app.command("categorize")
def categorize_cmd(
    tag: str = typer.Argument(..., help="Firefly III tag selecting the transactions to process."),
    mode: CategorizeMode = typer.Option(
        CategorizeMode.BOTH,
        "--mode",
        "-m",
        case_sensitive=False,
        help="Which fields to assign: category, budget or both.",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show proposed changes without prompting or updating."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Suggest categories/budgets for a tag and confirm each change interactively."""

    configure_logging("DEBUG" if verbose else None)

    try:
        settings = load_settings()
        orchestrator = build_orchestrator(settings, dry_run=dry_run)
    except ConfigurationError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(1) from e

    typer.echo(display.processing_header(tag, mode, dry_run))
    outcome = orchestrator.update_transactions_by_tag(tag, mode, dry_run=dry_run)
    display.print_outcome(outcome, tag=tag, dry_run=dry_run, print_fn=typer.echo)

    if outcome.status is RunStatus.PROCESSING_FAILED:
        raise typer.Exit(1)
    if outcome.error_count:
        _logger.info("cli:done errors=%d", outcome.error_count)


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    app()
