"""Prompt construction for category and budget assignment.

This module builds:
- The LLM view of a ledger transaction (only the fields the model needs).
- The system and user prompts for one assignment type.
- The strict JSON Schema the model's answer must conform to.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, TypedDict

from .models import AssignmentType, Transaction


class LlmTransactionView(TypedDict):
    description: str
    amount: str
    currency_symbol: str
    date: str
    source_account: str | None
    destination_account: str | None
    type: str
    notes: str | None


def to_llm_view(tx: Transaction) -> LlmTransactionView:
    return {
        "description": tx.description,
        "amount": tx.amount,
        "currency_symbol": tx.currency_symbol or "$",
        "date": tx.date,
        "source_account": tx.source_name,
        "destination_account": tx.destination_name,
        "type": tx.type,
        "notes": tx.notes,
    }


def schema_name(kind: AssignmentType) -> str:
    return f"assign_{kind.plural}"


def build_system_prompt(kind: AssignmentType) -> str:
    return (
        f"You are a financial transaction {kind.value} assignment assistant. Analyze "
        f"transactions and assign the most appropriate {kind.value} from the provided list. "
        "Be consistent and precise. Output JSON only that conforms to the specified schema."
    )


def build_user_prompt(
    kind: AssignmentType,
    transactions: Sequence[LlmTransactionView],
    options: Sequence[str],
) -> str:
    """Return the user message for one batch.

    Transactions are numbered from 1 in input order; the model must answer with
    one entry per line, in the same order.
    """

    tx_lines = [
        f"{i}. {tx['description']} - {tx['currency_symbol']}{tx['amount']} - {tx['date']} "
        f"({tx['source_account'] or 'unknown'} → {tx['destination_account'] or 'unknown'})"
        for i, tx in enumerate(transactions, start=1)
    ]
    option_lines = [f"- {opt}" for opt in options]
    verb = "categorize" if kind is AssignmentType.CATEGORY else "budget"

    return (
        f"Assign the most appropriate {kind.value} to each transaction below.\n\n"
        f"Available {kind.plural}:\n"
        + "\n".join(option_lines)
        + f"\n\nTransactions to {verb}:\n"
        + "\n".join(tx_lines)
        + f"\n\nReturn the {kind.plural} in the exact same order as the transactions listed "
        f'above. If no {kind.value} is appropriate, use "{kind.no_value_label}".'
    )


def build_output_schema(kind: AssignmentType, options: Sequence[str]) -> dict[str, Any]:
    """Return the strict JSON Schema for one assignment type.

    Shape::

        {
          "type": "object",
          "properties": {
            "<plural>": {"type": "array", "items": {"type": "string", "enum": [...]}}
          },
          "required": ["<plural>"],
          "additionalProperties": false
        }

    The enum holds the de-duplicated options followed by the "no value" label.
    """

    names = [n for n in dict.fromkeys(str(o).strip() for o in options) if n]
    if not names:
        raise ValueError(f"at least one non-blank {kind.value} option is required")
    enum = names + [kind.no_value_label] if kind.no_value_label not in names else names

    return {
        "type": "object",
        "properties": {
            kind.plural: {
                "type": "array",
                "description": f"Array of {kind.plural} corresponding to each transaction in order",
                "items": {"type": "string", "enum": enum},
            }
        },
        "required": [kind.plural],
        "additionalProperties": False,
    }


__all__ = [
    "LlmTransactionView",
    "build_output_schema",
    "build_system_prompt",
    "build_user_prompt",
    "schema_name",
    "to_llm_view",
]
