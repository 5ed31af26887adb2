"""Shared fixtures for LLM client tests."""

from unittest.mock import MagicMock, AsyncMock

import pytest

from llm.src.models import LLMResponse


@pytest.fixture(autouse=True)
def no_provider_keys(monkeypatch):
    """Keep real API keys from leaking into client construction."""
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)


@pytest.fixture
def mock_sdk_message():
    """A messages.create() result with one text block."""
    block = MagicMock()
    block.text = "Generated text"
    message = MagicMock()
    message.content = [block]
    return message


@pytest.fixture
def success_response():
    return LLMResponse(success=True, text="Generated text", provider="anthropic")


@pytest.fixture
def rate_limited_response():
    return LLMResponse(
        success=False,
        error="rate_limited",
        message="429 Too Many Requests",
        provider="anthropic",
        retry_after_seconds=60,
    )


def make_http_response(status: int, payload: dict) -> MagicMock:
    """An aiohttp response usable as ``async with session.post(...) as resp``."""
    resp = MagicMock()
    resp.status = status
    resp.json = AsyncMock(return_value=payload)
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=resp)
    context.__aexit__ = AsyncMock(return_value=False)
    return context


@pytest.fixture
def http_response_factory():
    return make_http_response
