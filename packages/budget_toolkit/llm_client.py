"""Thin completion client for the OpenAI Responses API.

One call, one request: retries, concurrency limits and fallbacks live in
:mod:`budget_toolkit.retrying_client` and the assignment service. Any SDK or
transport failure is re-raised as :class:`TransientCallError`.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from openai import OpenAI, OpenAIError

from .config import LlmSettings
from .errors import ConfigurationError, TransientCallError
from .logging_setup import get_logger

_logger = get_logger("budget_toolkit.llm_client")

type ChatMessage = Mapping[str, str]


def _extract_output_text(resp: Any) -> str:
    """Return the text output of a Responses API result.

    Prefers ``resp.output_text`` and falls back to the first content block of
    the first output item. Raises ``TransientCallError`` when neither exists.
    """

    text: str | None = getattr(resp, "output_text", None)
    if not text:
        try:
            first = resp.output[0] if getattr(resp, "output", None) else None
            content = getattr(first, "content", None)
            if content:
                txt_obj = getattr(content[0], "text", None)
                if isinstance(txt_obj, str):
                    text = txt_obj
                else:
                    maybe_val = getattr(txt_obj, "value", None)
                    if isinstance(maybe_val, str):
                        text = maybe_val
        except (AttributeError, IndexError, TypeError):
            text = None
    if not text or not isinstance(text, str):
        raise TransientCallError("No text content found in model response")
    return text


def _create_client(timeout: float) -> OpenAI:
    return OpenAI(timeout=timeout)


class OpenAICompletionService:
    """``complete(messages, ...) -> str`` over the Responses API.

    The output schema is sent as a strict ``json_schema`` text format named
    ``schema_name`` so the model is forced to answer in that shape.
    """

    def __init__(self, settings: LlmSettings, client: OpenAI | None = None) -> None:
        self._model = settings.model
        if client is None:
            try:
                client = _create_client(settings.timeout)
            except OpenAIError as e:
                # Raised by the SDK when OPENAI_API_KEY is missing
                raise ConfigurationError(
                    "OPENAI_API_KEY is required to categorize transactions",
                    {"required_key": "OPENAI_API_KEY"},
                ) from e
        self._client = client
        _logger.debug("llm_client:init model=%s", self._model)

    @property
    def model(self) -> str:
        return self._model

    def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        system_prompt: str,
        output_schema: Mapping[str, Any],
        schema_name: str,
    ) -> str:
        try:
            resp = self._client.responses.create(
                model=self._model,
                instructions=system_prompt,
                input=[{"role": m["role"], "content": m["content"]} for m in messages],
                text={
                    "format": {
                        "type": "json_schema",
                        "name": schema_name,
                        "schema": dict(output_schema),
                        "strict": True,
                    }
                },
            )
        except OpenAIError as e:
            raise TransientCallError(
                f"LLM request failed: {e}",
                {"model": self._model, "status_code": getattr(e, "status_code", None)},
            ) from e
        return _extract_output_text(resp)


__all__ = ["ChatMessage", "OpenAICompletionService"]
