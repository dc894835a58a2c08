"""Firefly III ledger adapter.

Two layers:
- :class:`FireflyClient`: JSON over HTTP with bearer-token auth using the
  standard library (``urllib``). ``get`` returns ``None`` on 404.
- :class:`LedgerService`: the operations the pipeline needs (tag lookup,
  transactions by tag, category and budget catalogs, transaction update),
  with payloads validated by pydantic models that ignore unknown keys.

Transaction groups are flattened into one :class:`Transaction` per split,
each carrying the id of its group for the update endpoint.
"""

from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Iterator, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import FireflySettings
from .errors import LedgerApiError
from .logging_setup import get_logger
from .models import Budget, Category, Transaction

_logger = get_logger("budget_toolkit.ledger")

_API_PREFIX = "/api/v1"
_UPDATABLE_TYPES = frozenset({"withdrawal", "deposit"})
_MAX_PAGES = 1000


# ---------------------------------------------------------------------------
# HTTP transport
# ---------------------------------------------------------------------------


class FireflyClient:
    def __init__(self, settings: FireflySettings) -> None:
        base = settings.url.rstrip("/")
        if not base.endswith(_API_PREFIX):
            base = base + _API_PREFIX
        self._base_url = base
        self._token = settings.token
        self._timeout = settings.timeout

    @property
    def base_url(self) -> str:
        return self._base_url

    def _url(self, path: str, params: Mapping[str, Any] | None = None) -> str:
        url = self._base_url + "/" + path.lstrip("/")
        if params:
            url += "?" + urllib.parse.urlencode({k: v for k, v in params.items() if v is not None})
        return url

    def _request(
        self, method: str, url: str, payload: Mapping[str, Any] | None = None
    ) -> dict[str, Any] | None:
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        req = urllib.request.Request(url, data=data, method=method)
        req.add_header("Authorization", f"Bearer {self._token}")
        req.add_header("Accept", "application/json")
        if data is not None:
            req.add_header("Content-Type", "application/json")

        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:
                body = resp.read()
        except urllib.error.HTTPError as e:
            if e.code == 404 and method == "GET":
                return None
            try:
                err_body = e.read().decode("utf-8", errors="replace")
            except OSError:
                err_body = ""
            raise LedgerApiError(
                f"Firefly API error: {e.code} {e.reason}: {err_body}".rstrip(": "),
                {"method": method, "url": url, "status_code": e.code},
            ) from e
        except (urllib.error.URLError, TimeoutError) as e:
            raise LedgerApiError(
                f"Firefly API request failed: {e}", {"method": method, "url": url}
            ) from e

        if not body:
            return {}
        try:
            decoded = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise LedgerApiError(
                "Failed to parse JSON from Firefly API", {"method": method, "url": url}
            ) from e
        if not isinstance(decoded, dict):
            raise LedgerApiError("Unexpected Firefly API payload", {"method": method, "url": url})
        return decoded

    def get(self, path: str, params: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
        return self._request("GET", self._url(path, params))

    def put(self, path: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        return self._request("PUT", self._url(path), payload) or {}


# ---------------------------------------------------------------------------
# Payload models
# ---------------------------------------------------------------------------


class _Base(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class _Split(_Base):
    transaction_journal_id: str | None = None
    description: str = ""
    amount: str = "0"
    date: str = ""
    type: str = "withdrawal"
    source_id: str | None = None
    source_name: str | None = None
    destination_id: str | None = None
    destination_name: str | None = None
    currency_id: str | None = None
    currency_code: str | None = None
    currency_symbol: str | None = None
    category_id: str | None = None
    category_name: str | None = None
    budget_id: str | None = None
    budget_name: str | None = None
    tags: list[str] | None = None
    bill_id: str | None = None
    subscription_id: str | None = None
    notes: str | None = None

    def to_transaction(self, group_id: str | None) -> Transaction:
        return Transaction(
            journal_id=self.transaction_journal_id,
            description=self.description,
            amount=self.amount,
            date=self.date,
            type=self.type,
            transaction_id=group_id,
            source_id=self.source_id,
            source_name=self.source_name,
            destination_id=self.destination_id,
            destination_name=self.destination_name,
            currency_id=self.currency_id,
            currency_code=self.currency_code,
            currency_symbol=self.currency_symbol,
            category_id=self.category_id,
            category_name=self.category_name,
            budget_id=self.budget_id,
            budget_name=self.budget_name,
            tags=tuple(self.tags or ()),
            bill_id=self.bill_id,
            subscription_id=self.subscription_id,
            notes=self.notes,
        )


class _GroupAttributes(_Base):
    transactions: list[_Split] = Field(default_factory=list)


class _Group(_Base):
    id: str | None = None
    attributes: _GroupAttributes = Field(default_factory=_GroupAttributes)

    def splits(self) -> list[Transaction]:
        return [s.to_transaction(self.id) for s in self.attributes.transactions]


class _CategoryAttributes(_Base):
    name: str = ""


class _CategoryRead(_Base):
    id: str | None = None
    attributes: _CategoryAttributes = Field(default_factory=_CategoryAttributes)


class _BudgetAttributes(_Base):
    name: str = ""
    active: bool = True


class _BudgetRead(_Base):
    id: str
    attributes: _BudgetAttributes = Field(default_factory=_BudgetAttributes)


class _Pagination(_Base):
    current_page: int = 1
    total_pages: int = 1


class _Meta(_Base):
    pagination: _Pagination = Field(default_factory=_Pagination)


class _Page(_Base):
    data: list[dict[str, Any]] = Field(default_factory=list)
    meta: _Meta = Field(default_factory=_Meta)


class _GroupSingle(_Base):
    data: _Group | None = None


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class LedgerService:
    def __init__(self, client: FireflyClient) -> None:
        self._client = client

    def _pages(self, path: str) -> Iterator[dict[str, Any]]:
        """Yield every ``data`` item of a paginated list endpoint."""

        page = 1
        while page <= _MAX_PAGES:
            body = self._client.get(path, {"page": page})
            if body is None:
                raise LedgerApiError(f"Firefly API resource not found: {path}", {"path": path})
            try:
                parsed = _Page.model_validate(body)
            except ValidationError as e:
                raise LedgerApiError(f"Unexpected Firefly API payload for {path}") from e
            yield from parsed.data
            if parsed.meta.pagination.current_page >= parsed.meta.pagination.total_pages:
                return
            page += 1

    def tag_exists(self, tag: str) -> bool:
        body = self._client.get(f"/tags/{urllib.parse.quote(tag, safe='')}")
        return bool(body and body.get("data") is not None)

    def get_transactions_by_tag(self, tag: str) -> list[Transaction]:
        if not tag:
            raise ValueError("tag is required")
        out: list[Transaction] = []
        try:
            for item in self._pages(f"/tags/{urllib.parse.quote(tag, safe='')}/transactions"):
                out.extend(_Group.model_validate(item).splits())
        except ValidationError as e:
            raise LedgerApiError(f"Failed to fetch transactions by tag {tag}") from e
        _logger.debug("ledger:transactions_by_tag tag=%r count=%d", tag, len(out))
        return out

    def get_categories(self) -> list[Category]:
        try:
            reads = [_CategoryRead.model_validate(item) for item in self._pages("/categories")]
        except ValidationError as e:
            raise LedgerApiError("Failed to fetch categories") from e
        return [Category(name=r.attributes.name, id=r.id) for r in reads if r.attributes.name]

    def get_budgets(self) -> list[Budget]:
        """Return active budgets only."""

        try:
            reads = [_BudgetRead.model_validate(item) for item in self._pages("/budgets")]
        except ValidationError as e:
            raise LedgerApiError("Failed to fetch budgets") from e
        return [
            Budget(id=r.id, name=r.attributes.name)
            for r in reads
            if r.attributes.active and r.attributes.name
        ]

    def update_transaction(
        self,
        tx: Transaction,
        category_name: str | None = None,
        budget_id: str | None = None,
    ) -> Transaction | None:
        """Set category (by name) and/or budget (by id) on one split.

        Only supplied values are sent. Returns the updated split as reported by
        the ledger, or ``None`` when the response carries no matching split.
        """

        if not tx.journal_id:
            raise LedgerApiError(
                f"Invalid transaction: missing transaction_journal_id for {tx.description}"
            )
        if tx.type not in _UPDATABLE_TYPES:
            raise LedgerApiError(
                f"Unsupported transaction type {tx.type} for transaction_journal_id {tx.journal_id}"
            )
        if not tx.transaction_id:
            raise LedgerApiError(
                f"Unable to find transaction group for split {tx.journal_id}",
                {"journal_id": tx.journal_id},
            )

        split: dict[str, Any] = {"transaction_journal_id": tx.journal_id}
        if category_name:
            split["category_name"] = category_name
        if budget_id:
            split["budget_id"] = budget_id
        payload = {"apply_rules": True, "fire_webhooks": True, "transactions": [split]}

        _logger.debug(
            "ledger:update journal_id=%s category=%r budget_id=%s",
            tx.journal_id,
            category_name,
            budget_id,
        )
        body = self._client.put(f"/transactions/{tx.transaction_id}", payload)
        try:
            group = _GroupSingle.model_validate(body).data
        except ValidationError as e:
            raise LedgerApiError("Unexpected Firefly API payload for transaction update") from e
        if group is None:
            return None
        for updated in group.splits():
            if updated.journal_id == tx.journal_id:
                return updated
        return None


__all__ = ["FireflyClient", "LedgerService"]
