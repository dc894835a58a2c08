from __future__ import annotations

import io
import json
import urllib.error
import urllib.request
from typing import Any

import pytest

from budget_toolkit.config import FireflySettings
from budget_toolkit.errors import LedgerApiError
from budget_toolkit.ledger import FireflyClient, LedgerService
from budget_toolkit.models import Budget, Category
from tests.helpers.fakes import make_tx


class _Resp:
    def __init__(self, body: bytes) -> None:
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc: Any) -> None:
        return None


def _install(monkeypatch: pytest.MonkeyPatch, routes: dict[str, Any]) -> list[urllib.request.Request]:
    """Route ``urlopen`` by path+query; values are payloads or HTTP status codes."""

    seen: list[urllib.request.Request] = []

    def fake_urlopen(req: urllib.request.Request, timeout: float | None = None):
        seen.append(req)
        key = req.full_url.split("/api/v1", 1)[1]
        payload = routes[key]
        if isinstance(payload, int):
            raise urllib.error.HTTPError(req.full_url, payload, "error", {}, io.BytesIO(b"nope"))
        return _Resp(json.dumps(payload).encode("utf-8"))

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    return seen


def _service() -> LedgerService:
    return LedgerService(FireflyClient(FireflySettings(url="https://ff.example/", token="tok")))


def _page(data: list[dict[str, Any]], current: int = 1, total: int = 1) -> dict[str, Any]:
    return {"data": data, "meta": {"pagination": {"current_page": current, "total_pages": total}}}


def test_tag_exists_true_and_false_on_404(monkeypatch):
    seen = _install(monkeypatch, {"/tags/weekly": {"data": {"id": "1"}}, "/tags/nope": 404})
    service = _service()

    assert service.tag_exists("weekly") is True
    assert service.tag_exists("nope") is False
    assert seen[0].get_header("Authorization") == "Bearer tok"


def test_transactions_by_tag_flattens_splits_across_pages(monkeypatch):
    split = {
        "transaction_journal_id": 101,
        "description": "Coffee",
        "amount": "4.50",
        "date": "2025-01-02T00:00:00+00:00",
        "type": "withdrawal",
        "source_name": "Checking",
        "destination_name": "Cafe",
        "tags": ["weekly"],
        "unknown_field": "ignored",
    }
    _install(
        monkeypatch,
        {
            "/tags/weekly/transactions?page=1": _page(
                [{"id": "7", "attributes": {"transactions": [split, {**split, "transaction_journal_id": "102"}]}}],
                1,
                2,
            ),
            "/tags/weekly/transactions?page=2": _page(
                [{"id": "8", "attributes": {"transactions": [{**split, "transaction_journal_id": "103"}]}}],
                2,
                2,
            ),
        },
    )

    txs = _service().get_transactions_by_tag("weekly")

    assert [(t.journal_id, t.transaction_id) for t in txs] == [("101", "7"), ("102", "7"), ("103", "8")]
    assert txs[0].tags == ("weekly",)
    assert txs[0].destination_name == "Cafe"


def test_catalogs(monkeypatch):
    _install(
        monkeypatch,
        {
            "/categories?page=1": _page([{"id": "1", "attributes": {"name": "Groceries"}}]),
            "/budgets?page=1": _page(
                [
                    {"id": "10", "attributes": {"name": "Food", "active": True}},
                    {"id": "11", "attributes": {"name": "Old", "active": False}},
                ]
            ),
        },
    )
    service = _service()

    assert service.get_categories() == [Category(name="Groceries", id="1")]
    assert service.get_budgets() == [Budget(id="10", name="Food")]


def test_update_sends_only_supplied_fields(monkeypatch):
    updated = {
        "data": {
            "id": "g1",
            "attributes": {
                "transactions": [
                    {"transaction_journal_id": "1", "description": "Purchase 1", "budget_id": "10"}
                ]
            },
        }
    }
    seen = _install(monkeypatch, {"/transactions/g1": updated})

    result = _service().update_transaction(make_tx("1"), None, "10")

    req = seen[0]
    assert req.get_method() == "PUT"
    assert json.loads(req.data) == {
        "apply_rules": True,
        "fire_webhooks": True,
        "transactions": [{"transaction_journal_id": "1", "budget_id": "10"}],
    }
    assert result is not None and result.budget_id == "10"


def test_update_rejects_unsupported_types_and_missing_ids(monkeypatch):
    _install(monkeypatch, {})
    service = _service()
    with pytest.raises(LedgerApiError, match="Unsupported transaction type transfer"):
        service.update_transaction(make_tx("1", type="transfer"), "Groceries")
    with pytest.raises(LedgerApiError, match="missing transaction_journal_id"):
        service.update_transaction(make_tx(None), "Groceries")


def test_http_errors_raise_ledger_api_error(monkeypatch):
    _install(monkeypatch, {"/categories?page=1": 500})
    with pytest.raises(LedgerApiError) as excinfo:
        _service().get_categories()
    assert excinfo.value.details["status_code"] == 500
