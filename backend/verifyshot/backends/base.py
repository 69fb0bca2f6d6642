"""
Abstract base for language model backends.

A backend answers one prompt with raw text. Calls are bounded by a timeout
and retried with exponential backoff only when the provider signals a
rate limit; every other failure surfaces immediately as BackendError.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, TypeVar

from verifyshot.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class BackendError(Exception):
    """Raised when a model backend call fails."""
    pass


class BackendRateLimitError(BackendError):
    """Raised when a backend is still rate limited after all retries."""
    pass


async def retry_on_rate_limit(
    factory: Callable[[], Awaitable[T]],
    is_rate_limit: Callable[[Exception], bool],
    max_retries: int,
    base_delay: float,
    label: str,
) -> T:
    """
    Await factory(), retrying rate-limit failures with exponential backoff.

    The n-th retry waits base_delay * 2 ** (n - 1) seconds. Non rate-limit
    exceptions propagate unchanged on the first occurrence.

    Raises:
        BackendRateLimitError: If the rate limit persists after max_retries
    """
    retry_count = 0
    while True:
        try:
            return await factory()
        except Exception as e:
            if not is_rate_limit(e):
                raise
            retry_count += 1
            if retry_count > max_retries:
                logger.error(f"[{label}] Rate limit exceeded after {max_retries} retries", error=str(e))
                raise BackendRateLimitError(f"Rate limit exceeded: {str(e)}") from e

            wait_time = base_delay * (2 ** (retry_count - 1))
            logger.warning(f"[{label}] Rate limit hit, waiting {wait_time}s (attempt {retry_count}/{max_retries})")
            await asyncio.sleep(wait_time)


class ModelBackend(ABC):
    """A named language model that turns a prompt into text."""

    def __init__(self, provider: str, model: str) -> None:
        self.provider = provider
        self.model = model

    @property
    def name(self) -> str:
        return self.model

    @abstractmethod
    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Generate a response for a prompt.

        Raises:
            BackendError: If the call fails or returns nothing
        """
        pass


class ProviderBackend(ModelBackend):
    """
    Backend for a hosted provider API.

    Subclasses implement _send for a single request and _is_rate_limit to
    classify provider exceptions; timeouts and backoff live here.
    """

    def __init__(
        self,
        provider: str,
        model: str,
        timeout_seconds: float = 20.0,
        max_retries: int = 3,
        base_delay: float = 2.0,
    ) -> None:
        super().__init__(provider, model)
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.base_delay = base_delay

    @abstractmethod
    async def _send(self, prompt: str, system_prompt: Optional[str]) -> str:
        pass

    @abstractmethod
    def _is_rate_limit(self, error: Exception) -> bool:
        pass

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        start_time = time.time()
        logger.info(f"[{self.name}] Sending prompt", provider=self.provider, prompt_length=len(prompt))

        try:
            text = await retry_on_rate_limit(
                lambda: asyncio.wait_for(self._send(prompt, system_prompt), timeout=self.timeout_seconds),
                self._is_rate_limit,
                self.max_retries,
                self.base_delay,
                self.name,
            )
        except BackendError:
            raise
        except asyncio.TimeoutError:
            logger.error(f"[{self.name}] Backend call timed out", timeout_seconds=self.timeout_seconds)
            raise BackendError(f"{self.name} timed out after {self.timeout_seconds}s")
        except Exception as e:
            logger.error(f"[{self.name}] Backend call failed",
                         error=str(e),
                         duration_seconds=round(time.time() - start_time, 2))
            raise BackendError(f"{self.name} error: {str(e)}") from e

        if not text or not text.strip():
            raise BackendError(f"Empty response from {self.name}")

        logger.info(f"[{self.name}] Response received",
                    duration_seconds=round(time.time() - start_time, 2),
                    response_length=len(text))
        return text
