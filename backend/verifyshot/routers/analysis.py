"""
API routes for screenshot analysis and standalone bias assessment.
"""

import uuid

from fastapi import APIRouter, Depends, Request

from verifyshot.backends.registry import BackendCache
from verifyshot.config import get_settings
from verifyshot.schemas.analysis import AnalysisResult, AnalyzeRequest, BiasAnalyzeRequest, BiasSignals
from verifyshot.services.analysis_service import AnalysisContext, AnalysisService
from verifyshot.utils.image_handler import ImageParser, ImageValidationError
from verifyshot.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["analysis"])

DEFAULT_UPLOAD_NAME = "screenshot"


def get_backend_cache(request: Request) -> BackendCache:
    """Backend cache owned by the running application."""
    cache = getattr(request.app.state, "backend_cache", None)
    if cache is None:
        cache = BackendCache()
        request.app.state.backend_cache = cache
    return cache


def get_analysis_service(cache: BackendCache = Depends(get_backend_cache)) -> AnalysisService:
    """Build the analysis service; raises ConfigurationError when keys are missing."""
    return AnalysisService(AnalysisContext.from_settings(get_settings(), cache))


@router.post("/analyze", response_model=AnalysisResult)
async def analyze_screenshot(
    body: AnalyzeRequest,
    service: AnalysisService = Depends(get_analysis_service),
) -> AnalysisResult:
    """
    Analyze a screenshot given as a URL or a base64 image.

    Runs the full pipeline synchronously and returns the result; a failed
    quality gate still returns 200 with every claim unable_to_verify.
    """
    job_id = str(uuid.uuid4())

    if body.image:
        image_bytes = ImageParser.parse_upload(body.image, get_settings().max_image_size)
        reference = f"upload://{body.filename or DEFAULT_UPLOAD_NAME}"
        logger.info("Analyze request", job_id=job_id, source="upload", filename=body.filename)
        return await service.analyze(job_id, image_bytes=image_bytes, image_reference=reference)

    if not body.image_url:
        raise ImageValidationError("Provide either imageUrl or a base64 image")

    logger.info("Analyze request", job_id=job_id, source="url", image_url=body.image_url)
    return await service.analyze(job_id, image_url=body.image_url)


@router.post("/bias/analyze", response_model=BiasSignals)
async def analyze_bias(
    body: BiasAnalyzeRequest,
    service: AnalysisService = Depends(get_analysis_service),
) -> BiasSignals:
    """Run the multi-perspective bias assessment on a list of claims."""
    logger.info("Bias analysis request", claims=len(body.claims))
    return await service.analyze_bias(body.claims, body.text)
