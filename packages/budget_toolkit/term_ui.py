"""Interactive terminal prompts for the confirm/edit cycle (prompt_toolkit-based).

Kept apart from the edit-cycle logic so the controller can be driven by a
scripted prompt provider in tests. Ctrl-C and Ctrl-D surface as
``KeyboardInterrupt`` / ``EOFError`` from prompt_toolkit and are left to the
caller.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.input import Input
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.output import Output
from prompt_toolkit.validation import ValidationError, Validator

from .models import Budget, Category, Decision, EditField, Proposal, Transaction

_MAX_DESCRIPTION = 50


class PromptProvider(Protocol):
    def ask_decision(self, tx: Transaction, proposed: Proposal, original: Proposal) -> Decision: ...

    def ask_fields_to_edit(self, available: Sequence[EditField]) -> list[EditField]: ...

    def select_category(
        self,
        categories: Sequence[Category],
        *,
        current: Category | None,
        suggested: Category | None,
    ) -> Category | None: ...

    def select_budget(
        self,
        budgets: Sequence[Budget],
        *,
        current: Budget | None,
        suggested: Budget | None,
    ) -> Budget | None: ...


def _truncate(text: str) -> str:
    return text if len(text) <= _MAX_DESCRIPTION else text[: _MAX_DESCRIPTION - 3] + "..."


def _change_line(label: str, old: str | None, new: str | None) -> str | None:
    if not new or new == old:
        return None
    return f"  • {label}: {old or 'None'} → {new}"


def decision_choices(proposed: Proposal) -> dict[str, Decision]:
    """Keyed choices for one proposal.

    Single-field options need that field; budget-only also needs a resolved
    budget id.
    """

    choices: dict[str, Decision] = {"a": Decision.APPLY_BOTH}
    if proposed.category is not None:
        choices["c"] = Decision.APPLY_CATEGORY
    if proposed.budget is not None and proposed.budget.is_resolved:
        choices["b"] = Decision.APPLY_BUDGET
    choices["e"] = Decision.EDIT
    choices["s"] = Decision.SKIP
    return choices


_CHOICE_LABELS: dict[Decision, str] = {
    Decision.APPLY_BOTH: "apply all",
    Decision.APPLY_CATEGORY: "category only",
    Decision.APPLY_BUDGET: "budget only",
    Decision.EDIT: "edit",
    Decision.SKIP: "skip",
}


class _ChoiceValidator(Validator):
    def __init__(self, allowed: set[str]) -> None:
        self._allowed = allowed

    def validate(self, document) -> None:
        if document.text.strip().lower() not in self._allowed:
            choices = ", ".join(sorted(self._allowed - {""}))
            raise ValidationError(message=f"Choose one of: {choices}")


class TerminalPrompts:
    """Prompt provider backed by prompt_toolkit sessions.

    ``input``/``output`` default to the real terminal; tests pass a pipe input
    and ``DummyOutput``.
    """

    def __init__(
        self,
        *,
        input: Input | None = None,
        output: Output | None = None,
        print_fn: Callable[..., None] = print,
    ) -> None:
        self._input = input
        self._output = output
        self._print = print_fn

    def _session(self, key_bindings: KeyBindings | None = None) -> PromptSession:
        return PromptSession(input=self._input, output=self._output, key_bindings=key_bindings)

    # ---- decision ----------------------------------------------------------

    def ask_decision(self, tx: Transaction, proposed: Proposal, original: Proposal) -> Decision:
        self._print(f'Transaction: "{_truncate(tx.description)}" ({tx.amount} on {tx.date})')
        changes = [
            line
            for line in (
                _change_line(
                    "Category",
                    tx.category_name,
                    proposed.category.name if proposed.category else None,
                ),
                _change_line(
                    "Budget", tx.budget_name, proposed.budget.name if proposed.budget else None
                ),
            )
            if line
        ]
        self._print("Proposed changes:")
        for line in changes or ["  • (none)"]:
            self._print(line)
        if original != proposed:
            self._print(
                "AI suggestion: "
                f"category={original.category.name if original.category else '-'} "
                f"budget={original.budget.name if original.budget else '-'}"
            )

        choices = decision_choices(proposed)
        legend = ", ".join(f"{k}={_CHOICE_LABELS[v]}" for k, v in choices.items())
        answer = self._session().prompt(
            f"Apply these changes? [{legend}] (a): ",
            validator=_ChoiceValidator(set(choices) | {""}),
            validate_while_typing=False,
        )
        key = answer.strip().lower() or "a"
        return choices[key]

    # ---- field selection ---------------------------------------------------

    def ask_fields_to_edit(self, available: Sequence[EditField]) -> list[EditField]:
        fields = list(dict.fromkeys(available))
        if len(fields) <= 1:
            return fields

        keys = {"c": [EditField.CATEGORY], "b": [EditField.BUDGET], "": fields}
        answer = self._session().prompt(
            "Edit which field? [c=category, b=budget, Enter=both]: ",
            validator=_ChoiceValidator(set(keys)),
            validate_while_typing=False,
        )
        return keys[answer.strip().lower()]

    # ---- value selection ---------------------------------------------------

    def _select_name(
        self, label: str, names: Sequence[str], *, default: str, suggested: str | None
    ) -> str:
        if suggested:
            self._print(f"AI suggested {label}: {suggested}")

        words = list(names)
        completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=True)
        kb = KeyBindings()

        def _best_prefix_match(text: str) -> str | None:
            lower = text.lower()
            if not lower or any(w.lower() == lower for w in words):
                return None
            return next((w for w in words if w.lower().startswith(lower)), None)

        @kb.add("enter", eager=True)
        def _(event) -> None:
            b = event.app.current_buffer
            cs = b.complete_state
            if cs is not None and cs.current_completion is not None:
                b.apply_completion(cs.current_completion)
            else:
                cand = _best_prefix_match(b.document.text)
                if cand:
                    b.insert_text(cand[len(b.document.text) :])
            b.validate_and_handle()

        return self._session(kb).prompt(
            f"{label.capitalize()} (Enter to accept, empty for none): ",
            default=default,
            completer=completer,
        )

    def select_category(
        self,
        categories: Sequence[Category],
        *,
        current: Category | None,
        suggested: Category | None,
    ) -> Category | None:
        value = self._select_name(
            "category",
            [c.name for c in categories],
            default=current.name if current else "",
            suggested=suggested.name if suggested else None,
        ).strip()
        if not value:
            return None
        by_name = {c.name.lower(): c for c in categories}
        return by_name.get(value.lower(), Category(name=value))

    def select_budget(
        self,
        budgets: Sequence[Budget],
        *,
        current: Budget | None,
        suggested: Budget | None,
    ) -> Budget | None:
        value = self._select_name(
            "budget",
            [b.name for b in budgets],
            default=current.name if current else "",
            suggested=suggested.name if suggested else None,
        ).strip()
        if not value:
            return None
        by_name = {b.name.lower(): b for b in budgets}
        return by_name.get(value.lower(), Budget(id="", name=value))


__all__ = ["PromptProvider", "TerminalPrompts", "decision_choices"]
