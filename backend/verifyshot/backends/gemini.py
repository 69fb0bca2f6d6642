"""
Gemini model backend using google-generativeai.
"""

from typing import Any, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from verifyshot.backends.base import ProviderBackend


def is_gemini_rate_limit(error: Exception) -> bool:
    """True for Gemini quota errors (HTTP 429)."""
    if isinstance(error, google_exceptions.ResourceExhausted):
        return True
    return getattr(error, "code", None) == 429


class GeminiBackend(ProviderBackend):
    """Backend that sends prompts to a Google Gemini model."""

    def __init__(
        self,
        api_key: str,
        model: str,
        client: Optional[Any] = None,
        temperature: float = 0.1,
        **kwargs,
    ) -> None:
        super().__init__("gemini", model, **kwargs)
        if client is None:
            genai.configure(api_key=api_key)
            client = genai.GenerativeModel(model)
        self.client = client
        self.generation_config = genai.types.GenerationConfig(temperature=temperature)

    def _is_rate_limit(self, error: Exception) -> bool:
        return is_gemini_rate_limit(error)

    async def _send(self, prompt: str, system_prompt: Optional[str]) -> str:
        # System instructions are folded into the prompt
        contents = f"{system_prompt}\n\n{prompt}" if system_prompt else prompt
        response = await self.client.generate_content_async(
            contents,
            generation_config=self.generation_config,
        )
        return response.text
