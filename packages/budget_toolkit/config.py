"""Runtime settings, built once at startup and passed to every component.

Values come from the process environment (the CLI loads a local ``.env`` with
``python-dotenv`` first). There is no module-level settings instance: callers
hold the :class:`Settings` value returned by :func:`load_settings`.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigurationError

_DEFAULT_MODEL = "gpt-5"
_DEFAULT_DISPOSABLE_INCOME_TAG = "Disposable Income"
_DEFAULT_EXCLUDED_PATH = Path("excluded_transactions.csv")


@dataclass(frozen=True, slots=True)
class FireflySettings:
    url: str
    token: str
    timeout: float = 30.0


@dataclass(frozen=True, slots=True)
class LlmSettings:
    model: str = _DEFAULT_MODEL
    max_concurrent: int = 3
    # Total attempts per call, including the first one.
    max_retries: int = 3
    retry_delay_ms: int = 1500
    max_retry_delay_ms: int = 32000
    timeout: float = 30.0


@dataclass(frozen=True, slots=True)
class TransactionSettings:
    disposable_income_tag: str = _DEFAULT_DISPOSABLE_INCOME_TAG
    excluded_transactions_path: Path = _DEFAULT_EXCLUDED_PATH
    process_categorized: bool = False


@dataclass(frozen=True, slots=True)
class Settings:
    firefly: FireflySettings
    llm: LlmSettings = field(default_factory=LlmSettings)
    transactions: TransactionSettings = field(default_factory=TransactionSettings)


_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def _required(env: Mapping[str, str], key: str) -> str:
    value = (env.get(key) or "").strip()
    if not value:
        raise ConfigurationError(f"{key} environment variable is required", {"key": key})
    return value


def _positive_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}", {"key": key}) from e
    if value <= 0:
        raise ConfigurationError(f"{key} must be a positive integer, got {value}", {"key": key})
    return value


def _positive_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}", {"key": key}) from e
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive, got {value}", {"key": key})
    return value


def _flag(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ConfigurationError(f"{key} must be a boolean flag, got {raw!r}", {"key": key})


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from ``environ`` (defaults to ``os.environ``).

    Raises ``ConfigurationError`` naming the offending variable when a required
    value is missing or a numeric value is malformed.
    """

    env = os.environ if environ is None else environ

    firefly = FireflySettings(
        url=_required(env, "FIREFLY_URL").rstrip("/"),
        token=_required(env, "FIREFLY_TOKEN"),
        timeout=_positive_float(env, "FIREFLY_TIMEOUT", 30.0),
    )

    llm = LlmSettings(
        model=(env.get("BUDGET_TOOLKIT_LLM_MODEL") or "").strip() or _DEFAULT_MODEL,
        max_concurrent=_positive_int(env, "BUDGET_TOOLKIT_LLM_MAX_CONCURRENT", 3),
        max_retries=_positive_int(env, "BUDGET_TOOLKIT_LLM_MAX_RETRIES", 3),
        retry_delay_ms=_positive_int(env, "BUDGET_TOOLKIT_LLM_RETRY_DELAY_MS", 1500),
        max_retry_delay_ms=_positive_int(env, "BUDGET_TOOLKIT_LLM_MAX_RETRY_DELAY_MS", 32000),
        timeout=_positive_float(env, "BUDGET_TOOLKIT_LLM_TIMEOUT", 30.0),
    )
    if llm.max_retry_delay_ms < llm.retry_delay_ms:
        raise ConfigurationError(
            "BUDGET_TOOLKIT_LLM_MAX_RETRY_DELAY_MS must not be smaller than "
            "BUDGET_TOOLKIT_LLM_RETRY_DELAY_MS",
            {"key": "BUDGET_TOOLKIT_LLM_MAX_RETRY_DELAY_MS"},
        )

    excluded_path = (env.get("BUDGET_TOOLKIT_EXCLUDED_TRANSACTIONS") or "").strip()
    transactions = TransactionSettings(
        disposable_income_tag=(env.get("BUDGET_TOOLKIT_DISPOSABLE_INCOME_TAG") or "").strip()
        or _DEFAULT_DISPOSABLE_INCOME_TAG,
        excluded_transactions_path=Path(excluded_path)
        if excluded_path
        else _DEFAULT_EXCLUDED_PATH,
        process_categorized=_flag(env, "BUDGET_TOOLKIT_PROCESS_CATEGORIZED", False),
    )

    return Settings(firefly=firefly, llm=llm, transactions=transactions)


__all__ = [
    "FireflySettings",
    "LlmSettings",
    "Settings",
    "TransactionSettings",
    "load_settings",
]
