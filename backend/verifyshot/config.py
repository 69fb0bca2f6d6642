"""
Configuration management for the VerifyShot fact-checking service.
Handles environment variables, the model backend roster and API keys.
"""

import os
from functools import lru_cache
from typing import List, Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_VERIFIER_MODELS = (
    "anthropic:claude-sonnet-4-20250514,"
    "anthropic:claude-3-5-haiku-20241022,"
    "gemini:gemini-2.0-flash"
)

# Environment variable holding the API key for each backend provider
PROVIDER_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
}

CONSENSUS_MODES = ("multi_backend", "persona")


class ConfigurationError(Exception):
    """Raised when mandatory configuration is missing or invalid."""

    def __init__(self, missing: List[str], message: str = None) -> None:
        self.missing = list(missing)
        super().__init__(message or f"Missing required environment variables: {', '.join(self.missing)}")

    @property
    def hint(self) -> str:
        """Remediation hint for the caller."""
        if not self.missing:
            return "Check the service configuration"
        return "Set " + ", ".join(self.missing) + " in the service environment or .env file"


class Settings(BaseSettings):
    """Application configuration settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Model provider credentials
    anthropic_api_key: str = os.getenv("ANTHROPIC_API_KEY", "")
    gemini_api_key: str = os.getenv("GEMINI_API_KEY", "")

    # Serper API configuration for web search
    serper_api_key: str = os.getenv("SERPER_API_KEY", "")
    search_result_limit: int = 10

    # Verification roster, comma separated "provider:model" entries
    verifier_models_str: str = os.getenv("VERIFIER_MODELS", DEFAULT_VERIFIER_MODELS)
    consensus_mode: str = os.getenv("CONSENSUS_MODE", "multi_backend")

    # Models used outside the verification roster
    claude_model: str = os.getenv("CLAUDE_MODEL", "claude-sonnet-4-20250514")
    gemini_ocr_model: str = os.getenv("GEMINI_OCR_MODEL", "gemini-2.0-flash")

    # Pipeline limits
    max_claims: int = 3
    claim_source_limit: int = 5

    # Deadlines and retry policy
    analysis_timeout_seconds: float = float(os.getenv("ANALYSIS_TIMEOUT_SECONDS", "55"))
    backend_timeout_seconds: float = 20.0
    rate_limit_max_retries: int = 3
    rate_limit_base_delay: float = 2.0

    # Upload configuration
    max_image_size: int = 10 * 1024 * 1024  # 10MB

    # Logging configuration
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # CORS configuration
    cors_origins_str: str = os.getenv("CORS_ORIGINS", "*")

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from environment variable."""
        return [origin.strip() for origin in self.cors_origins_str.split(",")]

    @property
    def verifier_models(self) -> List[Tuple[str, str]]:
        """Parse the verification roster into (provider, model) pairs, preserving order."""
        roster = []
        for entry in self.verifier_models_str.split(","):
            entry = entry.strip()
            if not entry:
                continue
            provider, _, model = entry.partition(":")
            if not model:
                raise ConfigurationError(
                    ["VERIFIER_MODELS"],
                    f"Invalid roster entry '{entry}', expected 'provider:model'",
                )
            roster.append((provider.strip().lower(), model.strip()))
        return roster

    def missing_required_keys(self) -> List[str]:
        """List the environment variables a full analysis needs but does not have."""
        required = {"GEMINI_API_KEY"}  # OCR is always Gemini vision

        roster = self.verifier_models
        if self.consensus_mode == "persona":
            roster = roster[:1]
        for provider, _ in roster:
            env_name = PROVIDER_KEY_ENV.get(provider)
            if env_name:
                required.add(env_name)

        # Claim extraction always runs on Claude
        required.add("ANTHROPIC_API_KEY")

        values = {
            "ANTHROPIC_API_KEY": self.anthropic_api_key,
            "GEMINI_API_KEY": self.gemini_api_key,
        }
        return sorted(name for name in required if not values.get(name))

    def require_analysis_keys(self) -> None:
        """
        Validate configuration needed to run an analysis job.

        Raises:
            ConfigurationError: If a mandatory key is missing or the roster is invalid
        """
        if self.consensus_mode not in CONSENSUS_MODES:
            raise ConfigurationError(
                ["CONSENSUS_MODE"],
                f"Unknown consensus mode '{self.consensus_mode}', expected one of {', '.join(CONSENSUS_MODES)}",
            )

        unknown = [provider for provider, _ in self.verifier_models if provider not in PROVIDER_KEY_ENV]
        if unknown:
            raise ConfigurationError(
                ["VERIFIER_MODELS"],
                f"Unknown model provider(s) in roster: {', '.join(unknown)}",
            )
        if not self.verifier_models:
            raise ConfigurationError(["VERIFIER_MODELS"], "Verification roster is empty")

        missing = self.missing_required_keys()
        if missing:
            raise ConfigurationError(missing)


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
