"""
Pydantic schemas for the analysis wire contract.

Field names are snake_case in Python and camelCase on the wire; the
mobile client decodes these exact keys, so aliases must stay stable.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

Verdict = Literal["likely_true", "mixed", "likely_misleading"]
ClaimVerdict = Literal["likely_true", "mixed", "likely_misleading", "unable_to_verify"]
BiasLabel = Literal["left", "slight_left", "center", "slight_right", "right"]
AgreementLevel = Literal["high", "medium", "low"]

UNABLE_TO_VERIFY = "unable_to_verify"


class CamelModel(BaseModel):
    """Base schema serialised with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Source(CamelModel):
    """A piece of corroborating evidence returned by web search."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    title: str
    url: str
    domain: str
    date: str  # ISO date (YYYY-MM-DD) of publication
    credibility_score: float = Field(..., ge=0.0, le=1.0)
    snippet: str = ""


class ModelVerdict(CamelModel):
    """One model backend's opinion on one claim."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    model_name: str
    agrees: bool = False  # matches the claim's final verdict
    confidence: float = Field(..., ge=0.0, le=1.0)
    verdict: Verdict
    reasoning: str = ""


class PerspectiveScore(CamelModel):
    """Aggregate of one perspective's assessments across the model roster."""

    bias: float = Field(..., ge=-1.0, le=1.0)
    sensationalism: float = Field(..., ge=0.0, le=1.0)
    consensus: float = Field(..., ge=0.0, le=1.0)


class BiasPerspectives(CamelModel):
    us_left: PerspectiveScore
    us_right: PerspectiveScore
    international: PerspectiveScore


class BiasSignals(CamelModel):
    """Bias and sensationalism assessment shared by the claims of a job."""

    political_bias: float = Field(..., ge=-1.0, le=1.0)
    sensationalism: float = Field(..., ge=0.0, le=1.0)
    overall_bias: BiasLabel
    explanation: str
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    agreement: Optional[AgreementLevel] = None
    perspectives: Optional[BiasPerspectives] = None
    key_signals: Optional[List[str]] = None

    @model_validator(mode="after")
    def check_confidence_and_agreement(self) -> "BiasSignals":
        if (self.confidence is None) != (self.agreement is None):
            raise ValueError("confidence and agreement must be provided together")
        return self


class Claim(CamelModel):
    """One extracted factual assertion with its verdict and trust score."""

    id: str
    text: str
    verdict: ClaimVerdict
    trust_score: int = Field(..., ge=0, le=100)
    explanation: str
    sources: List[Source] = []
    bias_signals: BiasSignals
    model_verdicts: List[ModelVerdict] = []

    @model_validator(mode="after")
    def check_unverified_invariant(self) -> "Claim":
        unverified = self.verdict == UNABLE_TO_VERIFY
        if unverified != (self.trust_score == 0):
            raise ValueError("unable_to_verify claims, and only those, carry a trust score of 0")
        if unverified and self.model_verdicts:
            raise ValueError("unable_to_verify claims are never sent to model backends")
        return self


class AnalysisResult(CamelModel):
    """Job-level output returned by POST /api/analyze."""

    job_id: str
    image_url: str
    ocr_text: str
    claims: List[Claim]
    aggregate_trust_score: int = Field(..., ge=0, le=100)
    trust_label: str
    summary: str
    generated_at: datetime


class AnalyzeRequest(CamelModel):
    """Request body for POST /api/analyze: an image URL or a base64 image."""

    image_url: Optional[str] = None
    image: Optional[str] = None
    filename: Optional[str] = None


class BiasAnalyzeRequest(CamelModel):
    """Request body for POST /api/bias/analyze."""

    claims: List[str] = Field(..., min_length=1)
    text: str = ""
