"""
LLM Client - generative-text access for annotation and revision.

Routes requests to the configured provider:
- anthropic: Anthropic API via the anthropic SDK
- bedrock: Amazon Bedrock via the anthropic SDK's Bedrock client
- openrouter: OpenRouter chat completions over aiohttp
"""

import asyncio
import os
import time
from typing import Optional

import aiohttp
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from shared.logging import get_logger

from .models import DEFAULT_MODELS, LLMResponse, Provider

log = get_logger("llm", "client")

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"


class GenerationError(Exception):
    """Raised when the provider could not produce text."""
    pass


class RateLimitedError(GenerationError):
    """Raised when the provider is rate limiting; retried with backoff."""
    pass


class LLMClient:
    """
    Client for the generative-text collaborator.

    Usage:
        client = LLMClient(provider="anthropic")
        text = await client.generate(system_prompt, user_prompt)
    """

    def __init__(
        self,
        provider: str = "anthropic",
        model: Optional[str] = None,
        max_tokens: int = 1024,
        region: str = "us-east-1",
        timeout_seconds: int = 120,
        anthropic_api_key: Optional[str] = None,
        openrouter_api_key: Optional[str] = None,
        max_attempts: int = 3,
        retry_multiplier: float = 2.0,
    ):
        """
        Initialize the client.

        Args:
            provider: "anthropic", "bedrock" or "openrouter"
            model: Model id (defaults per provider)
            max_tokens: Maximum tokens per response
            region: AWS region (bedrock only)
            timeout_seconds: Per-request timeout
            anthropic_api_key: API key (or uses ANTHROPIC_API_KEY env var)
            openrouter_api_key: API key (or uses OPENROUTER_API_KEY env var)
            max_attempts: Attempts for rate-limited requests in generate()
            retry_multiplier: Exponential backoff multiplier in seconds
        """
        self.provider = provider.lower()
        known = Provider(self.provider) if self.provider in Provider._value2member_map_ else None
        self.model = model or (DEFAULT_MODELS[known] if known else None)
        self.max_tokens = max_tokens
        self.region = region
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.retry_multiplier = retry_multiplier

        self._anthropic_key = anthropic_api_key or os.environ.get("ANTHROPIC_API_KEY")
        self._openrouter_key = openrouter_api_key or os.environ.get("OPENROUTER_API_KEY")

        # Lazy-loaded clients
        self._anthropic_client = None
        self._http_session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_config(cls, config: dict) -> "LLMClient":
        """Build from the ``llm`` block of the annotator config."""
        return cls(
            provider=config.get("provider", "anthropic"),
            model=config.get("model"),
            max_tokens=config.get("max_tokens", 1024),
            region=config.get("region", "us-east-1"),
            timeout_seconds=config.get("timeout_seconds", 120),
        )

    def info(self) -> dict:
        """Provider summary for health reporting."""
        data = {"provider": self.provider, "model": self.model}
        if self.provider == Provider.BEDROCK:
            data["region"] = self.region
        elif self.provider == Provider.ANTHROPIC:
            data["has_api_key"] = bool(self._anthropic_key)
        elif self.provider == Provider.OPENROUTER:
            data["has_api_key"] = bool(self._openrouter_key)
        return data

    async def _get_http_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session for API calls."""
        if self._http_session is None or self._http_session.closed:
            self._http_session = aiohttp.ClientSession()
        return self._http_session

    def _get_anthropic_client(self):
        """Get or create the Anthropic (or Bedrock) SDK client."""
        if self._anthropic_client is None:
            import anthropic
            if self.provider == Provider.BEDROCK:
                self._anthropic_client = anthropic.AnthropicBedrock(aws_region=self.region)
            elif self._anthropic_key:
                self._anthropic_client = anthropic.Anthropic(api_key=self._anthropic_key)
        return self._anthropic_client

    async def close(self):
        """Close HTTP session."""
        if self._http_session and not self._http_session.closed:
            await self._http_session.close()
            self._http_session = None

    # --- Provider calls ---

    async def _send_to_anthropic(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        """Send request through the anthropic SDK (direct API or Bedrock)."""
        client = self._get_anthropic_client()
        if not client:
            return LLMResponse(
                success=False,
                error="auth_required",
                message="ANTHROPIC_API_KEY not configured",
                provider=self.provider,
            )

        start_time = time.time()

        try:
            # Run sync SDK call in thread pool
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    client.messages.create,
                    model=self.model,
                    max_tokens=self.max_tokens,
                    system=system_prompt,
                    messages=[{"role": "user", "content": user_prompt}],
                ),
                timeout=self.timeout_seconds,
            )

            if not response.content:
                return LLMResponse(
                    success=False,
                    error="api_error",
                    message="Unexpected response format",
                    provider=self.provider,
                )

            return LLMResponse(
                success=True,
                text=response.content[0].text,
                provider=self.provider,
                model=self.model,
                response_time_seconds=time.time() - start_time,
            )

        except asyncio.TimeoutError:
            return LLMResponse(
                success=False,
                error="timeout",
                message=f"Request timed out after {self.timeout_seconds} seconds",
                provider=self.provider,
            )
        except Exception as e:
            error_str = str(e)
            if "rate" in error_str.lower() or "429" in error_str:
                return LLMResponse(
                    success=False,
                    error="rate_limited",
                    message=error_str,
                    provider=self.provider,
                    retry_after_seconds=60,
                )
            return LLMResponse(
                success=False,
                error="api_error",
                message=error_str,
                provider=self.provider,
            )

    async def _send_to_openrouter(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        """Send request directly to OpenRouter API."""
        if not self._openrouter_key:
            return LLMResponse(
                success=False,
                error="auth_required",
                message="OPENROUTER_API_KEY not configured",
                provider=self.provider,
            )

        start_time = time.time()

        try:
            session = await self._get_http_session()
            async with session.post(
                OPENROUTER_URL,
                headers={
                    "Authorization": f"Bearer {self._openrouter_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.model,
                    "max_tokens": self.max_tokens,
                    "messages": [
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                },
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as resp:
                data = await resp.json()

                if resp.status == 429:
                    return LLMResponse(
                        success=False,
                        error="rate_limited",
                        message=str(data)[:200],
                        provider=self.provider,
                        retry_after_seconds=60,
                    )
                if resp.status != 200:
                    return LLMResponse(
                        success=False,
                        error="api_error",
                        message=data.get("error", {}).get("message", str(data)),
                        provider=self.provider,
                    )

                return LLMResponse(
                    success=True,
                    text=data["choices"][0]["message"]["content"],
                    provider=self.provider,
                    model=self.model,
                    response_time_seconds=time.time() - start_time,
                )

        except asyncio.TimeoutError:
            return LLMResponse(
                success=False,
                error="timeout",
                message=f"Request timed out after {self.timeout_seconds} seconds",
                provider=self.provider,
            )
        except Exception as e:
            return LLMResponse(
                success=False,
                error="api_error",
                message=str(e),
                provider=self.provider,
            )

    # --- Unified methods ---

    async def send(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        """
        Send a prompt pair to the configured provider.

        Never raises for provider failures; check ``response.success``.
        """
        if self.provider in (Provider.ANTHROPIC, Provider.BEDROCK):
            response = await self._send_to_anthropic(system_prompt, user_prompt)
        elif self.provider == Provider.OPENROUTER:
            response = await self._send_to_openrouter(system_prompt, user_prompt)
        else:
            response = LLMResponse(
                success=False,
                error="unknown_provider",
                message=f"Unknown provider: {self.provider}",
            )

        if response.success:
            log.debug(
                "llm.client.response",
                provider=self.provider,
                chars=len(response.text or ""),
                seconds=round(response.response_time_seconds, 2),
            )
        else:
            log.warning(
                "llm.client.request_failed",
                provider=self.provider,
                error=response.error,
                message=(response.message or "")[:200],
            )
        return response

    async def _generate_once(self, system_prompt: str, user_prompt: str) -> str:
        response = await self.send(system_prompt, user_prompt)
        if response.success and response.text:
            return response.text
        if response.rate_limited:
            raise RateLimitedError(response.message or "rate limited")
        raise GenerationError(response.message or response.error or "empty response")

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        """
        Generate text, retrying rate-limited requests with exponential backoff.

        Raises:
            GenerationError: If the provider fails or stays rate limited
        """
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(RateLimitedError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_multiplier, max=30),
            reraise=True,
        ):
            with attempt:
                return await self._generate_once(system_prompt, user_prompt)
