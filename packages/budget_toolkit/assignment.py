"""One-call batch assignment of categories or budgets.

Public API:
    - :class:`BatchAssignmentService`

A whole batch of transactions goes to the model in a single request. The
answer is a list of names in input order. Any failure after the retrying
client gives up is absorbed here: every transaction in the batch then gets
``NO_ASSIGNMENT`` and the run continues.
"""

from __future__ import annotations

import time
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict, ValidationError

from . import prompting
from .errors import ConfigurationError
from .logging_setup import get_logger
from .models import NO_ASSIGNMENT, Assigned, AssignmentType, Suggestion, Transaction
from .retrying_client import CompletionService

_logger = get_logger("budget_toolkit.assignment")


def _normalize(name: str) -> str:
    return name.strip().lower()


class _AssignmentPayload(BaseModel):
    """Typed view of the model's answer; only the requested key is read."""

    model_config = ConfigDict(extra="ignore")

    categories: list[str] | None = None
    budgets: list[str] | None = None


def parse_assignment_response(
    kind: AssignmentType, text: str, options: Sequence[str]
) -> list[Suggestion]:
    """Decode the model output into suggestions, in response order.

    - The "no value" label (any case) and blank entries become ``NO_ASSIGNMENT``.
    - Names matching an option case-insensitively take the catalog spelling.
    - Other names are kept verbatim so that validation can report them.

    The list length is not checked against the batch size. Raises
    ``ValueError`` when the text is not JSON of the expected shape.
    """

    try:
        payload = _AssignmentPayload.model_validate_json(text)
    except ValidationError as e:
        raise ValueError(f"Failed to parse {kind.value} assignment response: {e}") from e

    raw = payload.categories if kind is AssignmentType.CATEGORY else payload.budgets
    if raw is None:
        raise ValueError(f"Response does not contain a {kind.plural} array")

    canonical = {_normalize(o): o for o in options}
    no_value = _normalize(kind.no_value_label)

    out: list[Suggestion] = []
    for item in raw:
        key = _normalize(item)
        if not key or key == no_value:
            out.append(NO_ASSIGNMENT)
        else:
            out.append(Assigned(canonical.get(key, item.strip())))
    return out


def success_rate(suggestions: Sequence[Suggestion]) -> str:
    """Share of entries that carry a name, as ``"NN.N%"``."""

    if not suggestions:
        return "0.0%"
    assigned = sum(1 for s in suggestions if isinstance(s, Assigned))
    return f"{assigned / len(suggestions) * 100:.1f}%"


class BatchAssignmentService:
    def __init__(self, client: CompletionService) -> None:
        self._client = client

    def assign(
        self,
        kind: AssignmentType,
        transactions: Sequence[Transaction] | None,
        options: Sequence[str] | None,
    ) -> list[Suggestion]:
        """Return one suggestion per transaction, in input order.

        Raises ``ConfigurationError`` when ``options`` is empty. Never raises
        for call or parse failures.
        """

        if not transactions:
            _logger.warning("assign:skip type=%s reason=no_transactions", kind.value)
            return []
        if not options:
            raise ConfigurationError(
                f"No valid {kind.value} options provided", {"type": kind.value}
            )

        n = len(transactions)
        _logger.info("assign:start type=%s count=%d options=%d", kind.value, n, len(options))
        t0 = time.perf_counter()
        try:
            views = [prompting.to_llm_view(tx) for tx in transactions]
            text = self._client.complete(
                [{"role": "user", "content": prompting.build_user_prompt(kind, views, options)}],
                system_prompt=prompting.build_system_prompt(kind),
                output_schema=prompting.build_output_schema(kind, options),
                schema_name=prompting.schema_name(kind),
            )
            suggestions = parse_assignment_response(kind, text, options)
        except Exception as e:  # noqa: BLE001 - every failure falls back to NO_ASSIGNMENT
            _logger.error(
                "assign:failed type=%s count=%d error=%s",
                kind.value,
                n,
                str(e) or e.__class__.__name__,
            )
            return [NO_ASSIGNMENT] * n

        dt_ms = (time.perf_counter() - t0) * 1000.0
        if len(suggestions) != n:
            _logger.warning(
                "assign:length_mismatch type=%s expected=%d got=%d", kind.value, n, len(suggestions)
            )
        _logger.info(
            "assign:done type=%s count=%d success_rate=%s latency_ms=%.2f",
            kind.value,
            len(suggestions),
            success_rate(suggestions),
            dt_ms,
        )
        return suggestions

    def assign_categories(
        self, transactions: Sequence[Transaction], categories: Sequence[str]
    ) -> list[Suggestion]:
        return self.assign(AssignmentType.CATEGORY, transactions, categories)

    def assign_budgets(
        self, transactions: Sequence[Transaction], budgets: Sequence[str]
    ) -> list[Suggestion]:
        return self.assign(AssignmentType.BUDGET, transactions, budgets)


__all__ = ["BatchAssignmentService", "parse_assignment_response", "success_rate"]
