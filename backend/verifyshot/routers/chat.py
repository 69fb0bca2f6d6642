"""
API route for follow-up chat about an analysis.
"""

from fastapi import APIRouter, Depends

from verifyshot.agents.chat_assistant import ChatAssistantAgent
from verifyshot.backends.registry import BackendCache, get_backend
from verifyshot.config import ConfigurationError, get_settings
from verifyshot.routers.analysis import get_backend_cache
from verifyshot.schemas.chat import ChatRequest, ChatResponse
from verifyshot.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["chat"])


def get_chat_assistant(cache: BackendCache = Depends(get_backend_cache)) -> ChatAssistantAgent:
    settings = get_settings()
    if not settings.anthropic_api_key:
        raise ConfigurationError(["ANTHROPIC_API_KEY"])
    return ChatAssistantAgent(get_backend("anthropic", settings.claude_model, settings, cache))


@router.post("/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    assistant: ChatAssistantAgent = Depends(get_chat_assistant),
) -> ChatResponse:
    """Answer a question, optionally about a serialized analysis passed as context."""
    reply = await assistant.reply(body.message, context=body.context, mode=body.mode, job_id=body.job_id)
    return ChatResponse(reply=reply)
