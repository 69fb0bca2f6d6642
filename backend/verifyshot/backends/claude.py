"""
Claude model backend using the Anthropic async client.
"""

from typing import Any, Dict, Optional

import anthropic
from anthropic import AsyncAnthropic

from verifyshot.backends.base import BackendError, ProviderBackend


class ClaudeBackend(ProviderBackend):
    """Backend that sends prompts to an Anthropic Claude model."""

    def __init__(
        self,
        api_key: str,
        model: str,
        client: Optional[AsyncAnthropic] = None,
        max_tokens: int = 1500,
        temperature: float = 0.1,
        **kwargs,
    ) -> None:
        super().__init__("anthropic", model, **kwargs)
        self.client = client or AsyncAnthropic(api_key=api_key)
        self.max_tokens = max_tokens
        self.temperature = temperature

    def _is_rate_limit(self, error: Exception) -> bool:
        return isinstance(error, anthropic.RateLimitError)

    async def _send(self, prompt: str, system_prompt: Optional[str]) -> str:
        message_params: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            message_params["system"] = system_prompt

        response = await self.client.messages.create(**message_params)

        if not response.content:
            raise BackendError(f"Empty response from {self.name}")
        return "".join(getattr(block, "text", "") for block in response.content)
