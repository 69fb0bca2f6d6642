"""
AI agent answering follow-up questions about an analysis.
Stateless: the caller passes the analysis it wants to discuss as context.
"""

import json
from typing import Any, Dict, Optional, Union

from verifyshot.agents.base_agent import AgentProcessingError, BaseAgent
from verifyshot.utils.logger import get_logger

logger = get_logger(__name__)

MIN_CONTEXT_LENGTH = 10

_STANDARD_GUIDELINES = """Guidelines:
- Answer questions about the screenshot's claims and sources
- Reference specific sources when available
- If uncertain, say "unverified" and suggest how to confirm
- Be concise and helpful"""

_DEEP_RESEARCH_SECTIONS = """Provide a thorough, structured analysis with these sections:
1. **Key Findings** - What the evidence shows
2. **Source Analysis** - Quality and reliability of available sources
3. **Multiple Perspectives** - Different viewpoints on this topic
4. **Bias Assessment** - Any detected bias in the original content
5. **Confidence Level** - How confident are we in the conclusions
6. **Recommendations** - What the user should know or do

Reference specific sources. Use markdown formatting."""


def render_context(context: Optional[Union[Dict[str, Any], str]]) -> str:
    if context is None:
        return ""
    if isinstance(context, str):
        return context.strip()
    return json.dumps(context, indent=2, default=str)


def build_system_prompt(context_text: str, mode: str) -> str:
    has_context = len(context_text) > MIN_CONTEXT_LENGTH

    if mode == "deep_research":
        if has_context:
            return (
                "You are an expert research analyst conducting deep research on a screenshot's claims.\n\n"
                f"Context from screenshot analysis:\n{context_text}\n\n{_DEEP_RESEARCH_SECTIONS}"
            )
        return (
            "You are an expert research analyst. Users want thorough investigations of topics or claims.\n\n"
            f"{_DEEP_RESEARCH_SECTIONS}"
        )

    if has_context:
        return (
            "You are a focused research assistant helping users verify information from screenshots.\n\n"
            f"Context from screenshot analysis:\n{context_text}\n\n{_STANDARD_GUIDELINES}"
        )
    return (
        "You are a helpful fact-checking assistant. Users ask you to verify claims or answer questions.\n\n"
        "Guidelines:\n"
        "- Provide clear, factual answers\n"
        "- If uncertain, say \"unverified\" and suggest how to confirm\n"
        "- Be concise"
    )


class ChatAssistantAgent(BaseAgent):
    """Agent that replies to a user message about an analysis result."""

    async def reply(
        self,
        message: str,
        context: Optional[Union[Dict[str, Any], str]] = None,
        mode: str = "standard",
        job_id: Optional[str] = None,
    ) -> str:
        """
        Answer a chat message.

        Raises:
            AgentProcessingError: If the message is empty or the model call fails
        """
        if not message.strip():
            raise AgentProcessingError("Cannot reply to an empty message")

        context_text = render_context(context)
        logger.info(f"[{self.agent_name}] Chat request",
                    job_id=job_id,
                    mode=mode,
                    has_context=bool(context_text))

        response = await self._call_model(message, build_system_prompt(context_text, mode))
        return response.strip()
