"""
Abstract base class for the AI agents of the VerifyShot pipeline.
Provides common model interaction patterns and error handling.
"""

import time
from abc import ABC

from verifyshot.backends.base import BackendError, ModelBackend
from verifyshot.utils.logger import get_logger

logger = get_logger(__name__)


class AgentProcessingError(Exception):
    """Raised when an agent fails to process content."""
    pass


class BaseAgent(ABC):
    """
    Abstract base class for agents that turn text into structured results.

    Each agent talks to the single model backend it is constructed with.
    Backends come from the application's BackendCache.
    """

    def __init__(self, backend: ModelBackend) -> None:
        self.backend: ModelBackend = backend
        self.agent_name: str = self.__class__.__name__

    async def _call_model(self, prompt: str, system_prompt: str = None) -> str:
        """
        Send a prompt to the agent's backend.

        Raises:
            AgentProcessingError: If the backend call fails
        """
        start_time = time.time()
        logger.info(f"[{self.agent_name}] Sending prompt to {self.backend.name}",
                    prompt_length=len(prompt),
                    has_system=bool(system_prompt))
        try:
            response_text = await self.backend.generate(prompt, system_prompt=system_prompt)
        except BackendError as e:
            logger.error(f"[{self.agent_name}] Model call failed",
                         error=str(e),
                         duration_seconds=round(time.time() - start_time, 2))
            raise AgentProcessingError(f"Model call failed: {str(e)}")

        logger.info(f"[{self.agent_name}] Model response received",
                    duration_seconds=round(time.time() - start_time, 2),
                    response_length=len(response_text))
        return response_text

    def _truncate_for_log(self, text: str, max_length: int = 200) -> str:
        """Truncate text for logging, adding an ellipsis if needed."""
        if len(text) <= max_length:
            return text
        return text[:max_length] + "..."
