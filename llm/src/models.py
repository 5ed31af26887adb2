"""Data models for the LLM library."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Provider(str, Enum):
    """Available generative-text providers."""
    ANTHROPIC = "anthropic"
    BEDROCK = "bedrock"
    OPENROUTER = "openrouter"


DEFAULT_MODELS = {
    Provider.ANTHROPIC: "claude-sonnet-4-20250514",
    Provider.BEDROCK: "us.anthropic.claude-sonnet-4-20250514-v1:0",
    Provider.OPENROUTER: "anthropic/claude-sonnet-4",
}


@dataclass
class LLMResponse:
    """Response from an LLM request."""
    success: bool
    text: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None

    # Metadata
    provider: Optional[str] = None
    model: Optional[str] = None
    response_time_seconds: float = 0.0

    # Rate limiting
    retry_after_seconds: Optional[int] = None

    @property
    def rate_limited(self) -> bool:
        return self.error == "rate_limited"

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "text": self.text,
            "error": self.error,
            "message": self.message,
            "provider": self.provider,
            "model": self.model,
            "response_time_seconds": self.response_time_seconds,
            "retry_after_seconds": self.retry_after_seconds,
        }
