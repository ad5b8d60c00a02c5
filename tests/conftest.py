"""Shared fixtures."""

from __future__ import annotations

import json
import os
from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import pytest

# Keep LiteLLM from fetching its model cost map over the network in a
# background thread at import time (deadlocks under --import-mode=importlib).
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")


def make_mock_litellm_response(
    content: str = "",
    tool_calls: list[Any] | None = None,
    finish_reason: str = "stop",
    model: str = "gemini/gemini-2.0-flash",
) -> MagicMock:
    """Create a ``MagicMock`` matching LiteLLM's response structure.

    The mock mirrors ``choices[0].message`` with content, tool_calls,
    plus top-level ``usage`` and ``model`` attributes.
    """
    message = MagicMock()
    message.content = content or None
    message.tool_calls = tool_calls

    choice = MagicMock()
    choice.message = message
    choice.finish_reason = finish_reason

    usage = MagicMock()
    usage.prompt_tokens = 10
    usage.completion_tokens = 20
    usage.total_tokens = 30

    response = MagicMock()
    response.choices = [choice]
    response.usage = usage
    response.model = model

    return response


def make_mock_tool_call(call_id: str, name: str, arguments: dict[str, Any]) -> MagicMock:
    """Create a ``MagicMock`` shaped like one OpenAI-style tool call."""
    call = MagicMock()
    call.id = call_id
    call.function.name = name
    call.function.arguments = json.dumps(arguments)
    return call


@pytest.fixture
def litellm_response() -> Callable[..., MagicMock]:
    return make_mock_litellm_response


@pytest.fixture
def tool_call() -> Callable[..., MagicMock]:
    return make_mock_tool_call
