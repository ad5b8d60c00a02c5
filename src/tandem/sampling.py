"""Normalisation of generated text before it is treated as data.

Chat models like to wrap JSON in Markdown fences and surrounding whitespace.
:func:`strip_code_fence` removes exactly that wrapping; :func:`parse_generated`
then validates the remainder and raises :class:`GeneratedContentError` when it
is not what the caller asked for.  Callers decide what the failure result is.
"""

from __future__ import annotations

import json
import re
from typing import TypeVar

from pydantic import BaseModel, ValidationError

_OPENING_FENCE = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?")
_CLOSING_FENCE = re.compile(r"\n?```$")

ModelT = TypeVar("ModelT", bound=BaseModel)


class GeneratedContentError(ValueError):
    """Generated text did not parse into the expected structure."""

    def __init__(self, detail: str, text: str) -> None:
        self.detail = detail
        self.text = text
        super().__init__(f"Unusable generated content: {detail}")


def strip_code_fence(text: str) -> str:
    """Trim whitespace and one surrounding Markdown code fence.

    >>> strip_code_fence('```json\\n{"a": 1}\\n```')
    '{"a": 1}'
    """
    stripped = text.strip()
    stripped = _OPENING_FENCE.sub("", stripped, count=1)
    stripped = _CLOSING_FENCE.sub("", stripped, count=1)
    return stripped.strip()


def parse_generated(text: str, model: type[ModelT]) -> ModelT:
    """Strip wrapping from *text* and validate it as JSON for *model*.

    Raises:
        GeneratedContentError: The text is not JSON, or the JSON does not
            match *model*.
    """
    payload = strip_code_fence(text)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise GeneratedContentError(f"not JSON ({exc.msg})", text) from exc
    try:
        return model.model_validate(data, strict=True)
    except ValidationError as exc:
        raise GeneratedContentError(
            f"{exc.error_count()} validation error(s) for {model.__name__}", text
        ) from exc
