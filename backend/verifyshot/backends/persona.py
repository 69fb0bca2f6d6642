"""
Persona backends: one real model asked under several framings.

This is the degraded consensus mode, used only when a single provider is
available. Names carry a "(persona)" suffix so results disclose it.
"""

from typing import List, Optional

from verifyshot.backends.base import ModelBackend

PERSONAS = (
    ("Analyst", "You are a rigorous fact-checking analyst who weighs primary evidence above commentary."),
    ("Context Reviewer", "You are a context reviewer who checks whether a claim is missing caveats, dates or scope."),
    ("Source Auditor", "You are a source auditor who judges claims by the reliability and independence of their sources."),
)


class PersonaBackend(ModelBackend):
    """Wraps a real backend and prefixes every system prompt with a persona."""

    def __init__(self, backend: ModelBackend, persona: str, framing: str) -> None:
        super().__init__(backend.provider, backend.model)
        self.backend = backend
        self.persona = persona
        self.framing = framing

    @property
    def name(self) -> str:
        return f"{self.backend.name} {self.persona} (persona)"

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        system = f"{self.framing}\n\n{system_prompt}" if system_prompt else self.framing
        return await self.backend.generate(prompt, system_prompt=system)


def persona_roster(backend: ModelBackend) -> List[ModelBackend]:
    return [PersonaBackend(backend, persona, framing) for persona, framing in PERSONAS]
