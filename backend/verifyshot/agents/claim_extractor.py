"""
AI agent that extracts verifiable factual claims from screenshot text.
"""

import re
from typing import List

from verifyshot.agents.base_agent import AgentProcessingError, BaseAgent
from verifyshot.backends.base import ModelBackend
from verifyshot.utils.logger import get_logger
from verifyshot.utils.model_output import ModelOutputParseError, extract_json_array

logger = get_logger(__name__)

MIN_CLAIM_LENGTH = 10
FALLBACK_CLAIM_LENGTH = 200
MAX_TEXT_LENGTH = 8000

_SENTENCE_SPLIT = re.compile(r"[.!?\n]")
_LIST_MARKERS = [
    r'^\d+\.\s*',     # 1.
    r'^\d+\)\s*',     # 1)
    r'^-\s*',         # -
    r'^•\s*',         # •
    r'^\*\s*',        # *
]

SYSTEM_PROMPT = """You are a fact-extraction assistant specialized in identifying factual claims from text.

Your task:
- Extract 1-3 concrete, verifiable factual claims (not opinions, questions, or statements of intent)
- Each claim should be a standalone statement that can be fact-checked
- Return ONLY a JSON array of strings, no other text

Example output: ["Claim one here","Claim two here"]"""


def first_sentence(text: str) -> str:
    """Return the first sentence of text, or "" when it is too short to use."""
    for part in _SENTENCE_SPLIT.split(text):
        part = part.strip()
        if part:
            return part if len(part) > MIN_CLAIM_LENGTH else ""
    return ""


def fallback_claim(text: str) -> str:
    """Synthetic claim used when extraction yields nothing: the first sentence or first 200 characters."""
    return first_sentence(text) or text.strip()[:FALLBACK_CLAIM_LENGTH]


class ClaimExtractorAgent(BaseAgent):
    """Agent that asks a model for a JSON array of claims found in OCR text."""

    def __init__(self, backend: ModelBackend, max_claims: int = 3) -> None:
        super().__init__(backend)
        self.max_claims = max_claims

    async def extract(self, text: str) -> List[str]:
        """
        Extract up to max_claims factual claims.

        Returns:
            Claim strings in the order the model listed them

        Raises:
            AgentProcessingError: If the text is empty or no claim can be parsed
        """
        if not text.strip():
            raise AgentProcessingError("Cannot extract claims from empty text")

        if len(text) > MAX_TEXT_LENGTH:
            text = text[:MAX_TEXT_LENGTH] + "\n[...text truncated...]"

        prompt = f'OCR TEXT:\n"""\n{text}\n"""\n\nExtract 1-{self.max_claims} factual claims that can be verified. Return JSON array only, no markdown, no explanation.'

        response = await self._call_model(prompt, SYSTEM_PROMPT)
        claims = self._parse_claims(response)
        if not claims:
            raise AgentProcessingError(f"No claims found in model response: {self._truncate_for_log(response, 100)}")

        logger.info(f"[{self.agent_name}] Extracted {len(claims)} claim(s)")
        return claims

    def _parse_claims(self, raw_response: str) -> List[str]:
        try:
            items = extract_json_array(raw_response)
            candidates = [item.strip() for item in items if isinstance(item, str)]
        except ModelOutputParseError:
            logger.warning(f"[{self.agent_name}] Response is not a JSON array, parsing as a list")
            candidates = self._parse_list_lines(raw_response)

        claims = [claim for claim in candidates if len(claim) >= MIN_CLAIM_LENGTH]
        return claims[:self.max_claims]

    @staticmethod
    def _parse_list_lines(raw_response: str) -> List[str]:
        lines = []
        for line in raw_response.strip().split('\n'):
            cleaned_line = line.strip()
            for pattern in _LIST_MARKERS:
                cleaned_line = re.sub(pattern, '', cleaned_line)
            cleaned_line = cleaned_line.strip().strip('"')
            if cleaned_line:
                lines.append(cleaned_line)
        return lines
