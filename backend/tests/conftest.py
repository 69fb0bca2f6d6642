"""
Pytest configuration and fixtures for testing.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generator, List, Optional, Union

import pytest
from fastapi.testclient import TestClient

from verifyshot.backends.base import ModelBackend
from verifyshot.config import Settings
from verifyshot.main import app
from verifyshot.schemas.analysis import Source

Reply = Union[str, Exception, Callable[[str, Optional[str]], str]]


class ConcurrencyGate:
    """
    Holds every caller until `expected` calls are in flight at once.

    Callers that run one after another never fill the gate and time out,
    so `peak` records how many calls actually overlapped.
    """

    def __init__(self, expected: int, timeout: float = 2.0) -> None:
        self.expected = expected
        self.timeout = timeout
        self.in_flight = 0
        self.peak = 0
        self._all_in = asyncio.Event()

    async def wait(self) -> None:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        if self.in_flight >= self.expected:
            self._all_in.set()
        try:
            await asyncio.wait_for(self._all_in.wait(), self.timeout)
        finally:
            self.in_flight -= 1


class FakeBackend(ModelBackend):
    """Model backend returning a scripted reply, or raising a scripted error."""

    def __init__(self, name: str, reply: Reply = "", gate: Optional[ConcurrencyGate] = None) -> None:
        super().__init__("fake", name)
        self.reply = reply
        self.gate = gate
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        self.calls.append({"prompt": prompt, "system_prompt": system_prompt})
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(self.reply, Exception):
            raise self.reply
        if callable(self.reply):
            return self.reply(prompt, system_prompt)
        return self.reply


def verdict_json(verdict: str, confidence: float, reasoning: str = "Sources are consistent.") -> str:
    return json.dumps({"verdict": verdict, "confidence": confidence, "reasoning": reasoning})


@pytest.fixture
def verdict_reply() -> Callable[..., str]:
    """Builds a verification response as a model would send it."""
    return verdict_json


@pytest.fixture
def fake_backend() -> type:
    """The FakeBackend class, for building rosters in tests."""
    return FakeBackend


@pytest.fixture
def concurrency_gate() -> type:
    """The ConcurrencyGate class, for asserting that calls overlap."""
    return ConcurrencyGate


@pytest.fixture
def test_settings() -> Settings:
    """Settings with test keys and no retry delays."""
    return Settings(
        _env_file=None,
        anthropic_api_key="test-anthropic-key",
        gemini_api_key="test-gemini-key",
        serper_api_key="test-serper-key",
        verifier_models_str="anthropic:claude-sonnet-4-20250514,anthropic:claude-3-5-haiku-20241022,gemini:gemini-2.0-flash",
        consensus_mode="multi_backend",
        rate_limit_base_delay=0.0,
        analysis_timeout_seconds=5.0,
    )


@pytest.fixture
def today_iso() -> str:
    return datetime.now(timezone.utc).date().isoformat()


@pytest.fixture
def make_source(today_iso: str) -> Callable[..., Source]:
    """Factory for Source records."""
    def _make(domain: str = "reuters.com", credibility: float = 0.95, date: Optional[str] = None, **kwargs) -> Source:
        path = kwargs.pop("path", "article")
        return Source(
            title=kwargs.pop("title", f"Report from {domain}"),
            url=kwargs.pop("url", f"https://{domain}/{path}"),
            domain=domain,
            date=date or today_iso,
            credibility_score=credibility,
            snippet=kwargs.pop("snippet", "Independent coverage of the claim."),
        )
    return _make


@pytest.fixture
def sample_sources(make_source: Callable[..., Source]) -> List[Source]:
    """Five sources, three of them high quality."""
    return [
        make_source("reuters.com", 0.95),
        make_source("cdc.gov", 0.92),
        make_source("nytimes.com", 0.88),
        make_source("blog.example.com", 0.3),
        make_source("forum.example.net", 0.3),
    ]


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Create test client; dependency overrides are cleared afterwards."""
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
