"""Text generation backends for the host.

The host runs every model call on the peer's behalf; the peer never talks
to a model directly.  ``LiteLLMGenerator`` wraps LiteLLM so that any
provider it supports can serve sampling requests and interactive queries.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import litellm

from tandem.config import ModelConfig
from tandem.utils.telemetry import (
    ATTR_FINISH_REASON,
    ATTR_MAX_TOKENS,
    ATTR_MODEL,
    ATTR_TOKENS_COMPLETION,
    ATTR_TOKENS_PROMPT,
    ATTR_TOKENS_TOTAL,
    get_tracer,
)

_tracer = get_tracer(__name__)


@runtime_checkable
class Generator(Protocol):
    """Produces text for a single prompt."""

    @property
    def model(self) -> str: ...

    async def generate(self, prompt: str, *, max_tokens: int | None = None) -> str: ...


class LiteLLMGenerator:
    """Async generator backed by ``litellm.acompletion``.

    Usage::

        generator = LiteLLMGenerator(ModelConfig(model="gemini/gemini-2.0-flash"))
        text = await generator.generate("Say hi")
    """

    def __init__(self, config: ModelConfig) -> None:
        self.config = config

    @property
    def model(self) -> str:
        return self.config.model

    async def generate(self, prompt: str, *, max_tokens: int | None = None) -> str:
        """Generate a reply to a single user *prompt*."""
        kwargs: dict[str, Any] = {}
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        response = await self.complete([{"role": "user", "content": prompt}], **kwargs)
        return response.choices[0].message.content or ""

    async def complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Run one chat completion and return LiteLLM's (OpenAI-shaped) response."""
        with _tracer.start_as_current_span("model.generate") as span:
            span.set_attribute(ATTR_MODEL, self.config.model)
            if "max_tokens" in kwargs:
                span.set_attribute(ATTR_MAX_TOKENS, int(kwargs["max_tokens"]))

            call_kwargs: dict[str, Any] = {
                "model": self.config.model,
                "messages": messages,
                **self.config.extra,
                **kwargs,
            }
            if self.config.api_key:
                call_kwargs["api_key"] = self.config.api_key
            if self.config.api_base:
                call_kwargs["api_base"] = self.config.api_base
            if tools:
                call_kwargs["tools"] = tools

            # LiteLLM type stubs are incomplete
            response = await litellm.acompletion(**call_kwargs)  # pyright: ignore[reportUnknownMemberType]

            usage = getattr(response, "usage", None)
            if usage:
                span.set_attribute(ATTR_TOKENS_PROMPT, int(usage.prompt_tokens or 0))
                span.set_attribute(ATTR_TOKENS_COMPLETION, int(usage.completion_tokens or 0))
                span.set_attribute(ATTR_TOKENS_TOTAL, int(usage.total_tokens or 0))
            finish_reason = response.choices[0].finish_reason
            if finish_reason is not None:
                span.set_attribute(ATTR_FINISH_REASON, str(finish_reason))
            return response
