"""
Pydantic schemas for the chat endpoint.
"""

from typing import Any, Dict, Literal, Optional, Union

from pydantic import Field

from verifyshot.schemas.analysis import CamelModel


class ChatRequest(CamelModel):
    """Schema for a chat question about an analysis."""
    job_id: Optional[str] = None
    message: str = Field(..., min_length=1)
    context: Optional[Union[Dict[str, Any], str]] = None  # serialized AnalysisResult accepted verbatim
    mode: Literal["standard", "deep_research"] = "standard"


class ChatResponse(CamelModel):
    """Schema for the chat reply."""
    reply: str
