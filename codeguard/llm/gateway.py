"""
LLM Gateway — Wraps the Groq client with retry, timeout, and token tracking.

Callers depend on the CompletionClient protocol, so tests and alternative
providers can stand in for the gateway.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from groq import Groq

from codeguard.config import settings
from codeguard.errors import LLMGatewayError
from codeguard.models.llm_models import CompletionOptions

logger = logging.getLogger("codeguard.llm")


class CompletionClient(Protocol):
    async def generate_completion(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> str: ...


class LLMGateway:
    """
    Groq LLM client wrapper with:
    - Configurable timeout
    - Retry with exponential backoff
    - Token and call accounting
    """

    def __init__(self, api_key: str | None = None) -> None:
        self.client = Groq(
            api_key=api_key or settings.groq_api_key,
            timeout=settings.llm_timeout,
        )
        self.model = settings.codeguard_model
        self.max_retries = max(1, settings.llm_max_retries)
        self.temperature = settings.llm_temperature
        self.max_tokens = settings.llm_max_tokens
        self.total_tokens_used = 0
        self.call_count = 0

    async def generate_completion(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> str:
        """
        Send a prompt to the LLM and return the raw completion text.

        Runs the synchronous Groq SDK in a thread pool to avoid blocking
        the async event loop.

        Raises:
            LLMGatewayError: every attempt failed.
        """
        opts = options or CompletionOptions()
        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                self.call_count += 1
                response = await asyncio.to_thread(self._sync_complete, prompt, opts)

                content = response.choices[0].message.content or ""
                tokens = getattr(response.usage, "total_tokens", 0) if response.usage else 0
                self.total_tokens_used += tokens
                return content

            except Exception as e:
                last_error = e
                logger.warning(
                    f"LLM attempt {attempt + 1}/{self.max_retries} failed: {e}"
                )
                if attempt < self.max_retries - 1:
                    # Exponential backoff: 1s, 2s, 4s
                    await asyncio.sleep(2**attempt)

        logger.error(f"LLM gateway exhausted retries. Last error: {last_error}")
        raise LLMGatewayError(f"LLM completion failed: {last_error}") from last_error

    def _sync_complete(self, prompt: str, opts: CompletionOptions):
        """Synchronous Groq completion call."""
        return self.client.chat.completions.create(
            model=opts.model or self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature if opts.temperature is None else opts.temperature,
            max_tokens=opts.max_tokens or self.max_tokens,
        )

    def get_tokens_used(self) -> int:
        """Get total tokens consumed across all calls."""
        return self.total_tokens_used

    def reset_token_counter(self) -> None:
        self.total_tokens_used = 0
