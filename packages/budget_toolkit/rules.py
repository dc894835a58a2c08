"""Business rules deciding which transactions are processed and what may change.

:class:`TransactionRules` is the single place that answers:
- is a transaction eligible for AI assignment at all,
- can it carry a budget,
- would a proposed category/budget actually change it,
- is it complete enough to run through the edit cycle.

Excluded transactions are read once from a two-column CSV file
(``description,amount``). A missing file means nothing is excluded.
"""

from __future__ import annotations

import csv
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from pathlib import Path

from .config import TransactionSettings
from .errors import ConfigurationError
from .logging_setup import get_logger
from .models import Budget, Category, Transaction

_logger = get_logger("budget_toolkit.rules")

_AMOUNT_RE = re.compile(r"^-?\d*\.?\d+$")
_CURRENCY_CHARS = re.compile(r"[$€£¥,]")

TRANSFER = "transfer"
DEPOSIT = "deposit"


def parse_amount(value: str) -> Decimal:
    """Parse a currency string such as ``"$1,234.50"`` or ``"(12.00)"``.

    Parenthesised values are negative. The result is rounded to cents.
    Raises ``ValueError`` for anything that is not a plain decimal number once
    symbols and thousands separators are removed.
    """

    if not value or not value.strip():
        raise ValueError("Amount cannot be empty")
    negative = "(" in value and ")" in value
    clean = _CURRENCY_CHARS.sub("", value.replace("(", "").replace(")", "")).strip()
    if not _AMOUNT_RE.match(clean):
        raise ValueError(f"Invalid amount format: {value}")
    try:
        amount = Decimal(clean)
    except InvalidOperation as e:  # pragma: no cover - regex guards this
        raise ValueError(f"Invalid amount format: {value}") from e
    if negative:
        amount = -abs(amount)
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class ExcludedRow:
    description: str | None
    amount: Decimal | None

    def matches(self, description: str, amount: Decimal | None) -> bool:
        if self.description is None and self.amount is None:
            return False
        if self.description is not None and self.description != description:
            return False
        if self.amount is not None:
            if amount is None or abs(self.amount) != abs(amount):
                return False
        return True


class ExcludedTransactions:
    """Rows of the excluded-transactions file; a transaction matching any row
    never gets a budget."""

    def __init__(self, rows: Iterable[ExcludedRow] = ()) -> None:
        self._rows = tuple(rows)

    def __len__(self) -> int:
        return len(self._rows)

    @classmethod
    def from_csv(cls, path: Path) -> ExcludedTransactions:
        if not path.exists():
            _logger.debug("excluded:load path=%s status=missing", path)
            return cls()

        rows: list[ExcludedRow] = []
        try:
            with path.open(newline="", encoding="utf-8") as fh:
                for line_no, record in enumerate(csv.reader(fh), start=1):
                    row = cls._parse_record(record, line_no)
                    if row is not None:
                        rows.append(row)
        except (OSError, csv.Error) as e:
            raise ConfigurationError(
                f"Failed to parse excluded transactions file: {path}", {"path": str(path)}
            ) from e

        _logger.debug("excluded:load path=%s rows=%d", path, len(rows))
        return cls(rows)

    @staticmethod
    def _parse_record(record: list[str], line_no: int) -> ExcludedRow | None:
        cells = [c.strip() for c in record] + ["", ""]
        description, amount_raw = cells[0], cells[1]
        if not description and not amount_raw:
            return None
        amount: Decimal | None = None
        if amount_raw:
            try:
                amount = parse_amount(amount_raw)
            except ValueError:
                _logger.warning("excluded:invalid_row line=%d amount=%r", line_no, amount_raw)
                return None
        return ExcludedRow(description=description or None, amount=amount)

    def is_excluded(self, description: str, amount: str) -> bool:
        try:
            parsed: Decimal | None = parse_amount(amount)
        except ValueError:
            parsed = None
        return any(row.matches(description, parsed) for row in self._rows)


class TransactionRules:
    def __init__(
        self,
        settings: TransactionSettings,
        excluded: ExcludedTransactions | None = None,
    ) -> None:
        self._disposable_income_tag = settings.disposable_income_tag
        self._process_categorized = settings.process_categorized
        self._excluded = (
            excluded
            if excluded is not None
            else ExcludedTransactions.from_csv(settings.excluded_transactions_path)
        )

    @staticmethod
    def is_transfer(tx: Transaction) -> bool:
        return tx.type == TRANSFER

    @staticmethod
    def is_deposit(tx: Transaction) -> bool:
        return tx.type == DEPOSIT

    @staticmethod
    def is_bill(tx: Transaction) -> bool:
        return bool(tx.bill_id or tx.subscription_id)

    @staticmethod
    def has_category(tx: Transaction) -> bool:
        return bool(tx.category_id or tx.category_name)

    def is_disposable_income(self, tx: Transaction) -> bool:
        return self._disposable_income_tag in tx.tags

    def is_eligible(self, tx: Transaction, skip_transfers: bool = True) -> bool:
        if skip_transfers and self.is_transfer(tx):
            return False
        return self._process_categorized or not self.has_category(tx)

    def can_carry_budget(self, tx: Transaction) -> bool:
        return not (
            self.is_bill(tx)
            or self.is_disposable_income(tx)
            or self.is_deposit(tx)
            or self._excluded.is_excluded(tx.description, tx.amount)
        )

    @staticmethod
    def has_changed(
        tx: Transaction, category: Category | None = None, budget: Budget | None = None
    ) -> bool:
        """True when a proposed value differs from what the transaction holds.

        Only proposed values count: a ``None`` category or budget never makes a
        change.
        """

        category_changed = bool(category and category.name and tx.category_name != category.name)
        budget_changed = bool(budget and budget.id and tx.budget_id != budget.id)
        return category_changed or budget_changed

    @staticmethod
    def is_well_formed(tx: Transaction, results: Mapping[str, object]) -> bool:
        """Description and amount present, and an AI result for the journal id.

        A missing journal id is left to the caller to report on its own.
        """

        if not tx.description or not tx.amount:
            _logger.warning("rules:malformed reason=incomplete journal_id=%s", tx.journal_id)
            return False
        if tx.journal_id and tx.journal_id not in results:
            _logger.warning("rules:malformed reason=no_ai_result journal_id=%s", tx.journal_id)
            return False
        return True


__all__ = [
    "ExcludedRow",
    "ExcludedTransactions",
    "TransactionRules",
    "parse_amount",
]
