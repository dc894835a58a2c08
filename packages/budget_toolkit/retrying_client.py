"""Bounded-concurrency, retrying wrapper around one LLM completion call.

Behavior
--------
- At most ``max_concurrent`` calls are in flight across every thread sharing
  the client. A caller arriving at capacity blocks until any in-flight call
  settles; waiters are not served in FIFO or priority order.
- A slot is held only while an attempt runs, never while backing off.
- A failed attempt is retried until ``max_retries`` total attempts have been
  made. The delay before attempt ``n + 1`` is
  ``min(base * 2 ** (n - 1) + jitter, max_delay)`` with ``jitter`` drawn
  uniformly from ``[0, 0.1 * base]``.
- On exhaustion the last exception propagates unchanged.
- Identical concurrent calls are not de-duplicated.
"""

from __future__ import annotations

import random
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol

from .config import LlmSettings
from .llm_client import ChatMessage
from .logging_setup import get_logger

_logger = get_logger("budget_toolkit.retrying_client")

_JITTER_PCT: float = 0.10


class CompletionService(Protocol):
    def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        system_prompt: str,
        output_schema: Mapping[str, Any],
        schema_name: str,
    ) -> str: ...


class RetryingCallClient:
    def __init__(
        self,
        service: CompletionService,
        *,
        max_concurrent: int = 3,
        max_retries: int = 3,
        retry_delay_ms: int = 1500,
        max_retry_delay_ms: int = 32000,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        if not isinstance(max_concurrent, int) or max_concurrent < 1:
            raise ValueError("max_concurrent must be a positive integer")
        if not isinstance(max_retries, int) or max_retries < 1:
            raise ValueError("max_retries must be a positive integer")
        self._service = service
        self._slots = threading.BoundedSemaphore(max_concurrent)
        self._max_retries = max_retries
        self._base_delay = retry_delay_ms / 1000.0
        self._max_delay = max_retry_delay_ms / 1000.0
        self._sleep = sleep
        self._rng = rng or random.Random()

    @classmethod
    def from_settings(
        cls, service: CompletionService, settings: LlmSettings, **kwargs: Any
    ) -> RetryingCallClient:
        return cls(
            service,
            max_concurrent=settings.max_concurrent,
            max_retries=settings.max_retries,
            retry_delay_ms=settings.retry_delay_ms,
            max_retry_delay_ms=settings.max_retry_delay_ms,
            **kwargs,
        )

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""

        delay = self._base_delay * (2 ** (attempt - 1))
        jitter = self._rng.uniform(0.0, self._base_delay * _JITTER_PCT)
        return min(delay + jitter, self._max_delay)

    def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        system_prompt: str,
        output_schema: Mapping[str, Any],
        schema_name: str,
    ) -> str:
        attempt = 0
        while True:
            t0 = time.perf_counter()
            try:
                with self._slots:
                    return self._service.complete(
                        messages,
                        system_prompt=system_prompt,
                        output_schema=output_schema,
                        schema_name=schema_name,
                    )
            except Exception as e:
                attempt += 1
                dt_ms = (time.perf_counter() - t0) * 1000.0
                if attempt >= self._max_retries:
                    _logger.error(
                        "llm_call:failed_terminal schema=%s attempts=%d latency_ms=%.2f error=%s",
                        schema_name,
                        attempt,
                        dt_ms,
                        e.__class__.__name__,
                    )
                    raise
                delay = self.backoff_delay(attempt)
                _logger.warning(
                    "llm_call:retry schema=%s attempt=%d latency_ms=%.2f delay_s=%.2f error=%s",
                    schema_name,
                    attempt,
                    dt_ms,
                    delay,
                    e.__class__.__name__,
                )
                self._sleep(delay)


__all__ = ["CompletionService", "RetryingCallClient"]
