from __future__ import annotations

from pathlib import Path

import pytest

from budget_toolkit.config import load_settings
from budget_toolkit.errors import ConfigurationError

BASE = {"FIREFLY_URL": "https://ff.example/", "FIREFLY_TOKEN": "tok"}


def test_defaults():
    settings = load_settings(BASE)

    assert settings.firefly.url == "https://ff.example"
    assert settings.firefly.token == "tok"
    assert settings.llm.max_concurrent == 3
    assert settings.llm.max_retries == 3
    assert settings.llm.retry_delay_ms == 1500
    assert settings.llm.max_retry_delay_ms == 32000
    assert settings.transactions.disposable_income_tag == "Disposable Income"
    assert settings.transactions.excluded_transactions_path == Path("excluded_transactions.csv")
    assert settings.transactions.process_categorized is False


def test_overrides():
    settings = load_settings(
        {
            **BASE,
            "BUDGET_TOOLKIT_LLM_MODEL": "gpt-test",
            "BUDGET_TOOLKIT_LLM_MAX_CONCURRENT": "5",
            "BUDGET_TOOLKIT_LLM_MAX_RETRIES": "2",
            "BUDGET_TOOLKIT_DISPOSABLE_INCOME_TAG": "Fun",
            "BUDGET_TOOLKIT_EXCLUDED_TRANSACTIONS": "/tmp/x.csv",
            "BUDGET_TOOLKIT_PROCESS_CATEGORIZED": "yes",
        }
    )
    assert settings.llm.model == "gpt-test"
    assert settings.llm.max_concurrent == 5
    assert settings.llm.max_retries == 2
    assert settings.transactions.disposable_income_tag == "Fun"
    assert settings.transactions.excluded_transactions_path == Path("/tmp/x.csv")
    assert settings.transactions.process_categorized is True


def test_reads_process_environment(monkeypatch):
    monkeypatch.setenv("FIREFLY_URL", "https://env.example")
    monkeypatch.setenv("FIREFLY_TOKEN", "secret")
    assert load_settings().firefly.url == "https://env.example"


@pytest.mark.parametrize("missing", ["FIREFLY_URL", "FIREFLY_TOKEN"])
def test_missing_required_value(missing):
    env = {k: v for k, v in BASE.items() if k != missing}
    with pytest.raises(ConfigurationError, match=missing):
        load_settings(env)


@pytest.mark.parametrize(
    "key, value",
    [
        ("BUDGET_TOOLKIT_LLM_MAX_CONCURRENT", "three"),
        ("BUDGET_TOOLKIT_LLM_MAX_RETRIES", "0"),
        ("BUDGET_TOOLKIT_LLM_TIMEOUT", "-1"),
        ("BUDGET_TOOLKIT_PROCESS_CATEGORIZED", "maybe"),
    ],
)
def test_invalid_values_name_the_variable(key, value):
    with pytest.raises(ConfigurationError) as excinfo:
        load_settings({**BASE, key: value})
    assert excinfo.value.details["key"] == key


def test_max_delay_must_cover_base_delay():
    with pytest.raises(ConfigurationError):
        load_settings(
            {
                **BASE,
                "BUDGET_TOOLKIT_LLM_RETRY_DELAY_MS": "5000",
                "BUDGET_TOOLKIT_LLM_MAX_RETRY_DELAY_MS": "1000",
            }
        )
