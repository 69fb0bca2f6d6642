"""
Backend construction and the shared backend cache.
"""

from typing import Callable, Dict, List

from verifyshot.backends.base import ModelBackend
from verifyshot.backends.claude import ClaudeBackend
from verifyshot.backends.gemini import GeminiBackend
from verifyshot.backends.persona import persona_roster
from verifyshot.config import ConfigurationError, Settings
from verifyshot.utils.logger import get_logger

logger = get_logger(__name__)


class BackendCache:
    """
    Get-or-create memo of backends keyed by "provider:model".

    Creation is idempotent, so two jobs racing to create the same entry is
    harmless: the last writer wins and both callers get a working backend.
    """

    def __init__(self) -> None:
        self._backends: Dict[str, ModelBackend] = {}

    def get_or_create(self, key: str, factory: Callable[[], ModelBackend]) -> ModelBackend:
        backend = self._backends.get(key)
        if backend is None:
            backend = factory()
            self._backends[key] = backend
            logger.info("Backend created", backend_key=key)
        return backend

    def __contains__(self, key: str) -> bool:
        return key in self._backends

    def __len__(self) -> int:
        return len(self._backends)

    def clear(self) -> None:
        self._backends.clear()


def create_backend(provider: str, model: str, settings: Settings) -> ModelBackend:
    """
    Instantiate a backend for one roster entry.

    Raises:
        ConfigurationError: If the provider is unknown
    """
    policy = {
        "timeout_seconds": settings.backend_timeout_seconds,
        "max_retries": settings.rate_limit_max_retries,
        "base_delay": settings.rate_limit_base_delay,
    }
    if provider == "anthropic":
        return ClaudeBackend(api_key=settings.anthropic_api_key, model=model, **policy)
    if provider == "gemini":
        return GeminiBackend(api_key=settings.gemini_api_key, model=model, **policy)
    raise ConfigurationError(["VERIFIER_MODELS"], f"Unknown model provider '{provider}'")


def get_backend(provider: str, model: str, settings: Settings, cache: BackendCache) -> ModelBackend:
    return cache.get_or_create(f"{provider}:{model}", lambda: create_backend(provider, model, settings))


def build_roster(settings: Settings, cache: BackendCache) -> List[ModelBackend]:
    """
    Build the fixed verification roster, in configured order.

    In persona mode only the first roster entry is used, asked under each
    persona in turn.
    """
    entries = settings.verifier_models
    if settings.consensus_mode == "persona":
        provider, model = entries[0]
        logger.warning("Persona consensus mode enabled, verdicts come from a single model", model=model)
        return persona_roster(get_backend(provider, model, settings, cache))

    return [get_backend(provider, model, settings, cache) for provider, model in entries]
