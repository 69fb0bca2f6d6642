"""
OCR of screenshots through Gemini vision.
"""

from typing import Any, Optional

import google.generativeai as genai
import httpx

from verifyshot.backends.base import BackendRateLimitError, retry_on_rate_limit
from verifyshot.backends.gemini import is_gemini_rate_limit
from verifyshot.config import ConfigurationError, Settings
from verifyshot.utils.image_handler import ImageParser
from verifyshot.utils.logger import get_logger

logger = get_logger(__name__)

MIN_TEXT_LENGTH = 3
DOWNLOAD_TIMEOUT_SECONDS = 15.0

OCR_PROMPT = """Extract ALL visible text from this screenshot image exactly as it appears.
Include: usernames, handles, dates, numbers, hashtags, captions, replies, quotes, headlines, body text, watermarks, and any overlaid text.
Preserve the original structure and line breaks.
Return ONLY the extracted text, nothing else. No commentary, no formatting instructions."""


class OCRError(Exception):
    """Raised when text cannot be extracted from an image."""
    pass


class NoTextFoundError(OCRError):
    """Raised when the image contains no readable text."""
    pass


class OCRRateLimitError(OCRError):
    """Raised when the OCR provider is still rate limited after retries."""
    pass


class OCRService:
    """Service that turns a screenshot into plain text."""

    def __init__(
        self,
        settings: Settings,
        model: Optional[Any] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if model is None:
            if not settings.gemini_api_key:
                raise ConfigurationError(["GEMINI_API_KEY"], "GEMINI_API_KEY not set, required for screenshot OCR")
            genai.configure(api_key=settings.gemini_api_key)
            model = genai.GenerativeModel(settings.gemini_ocr_model)

        self.model = model
        self.http_client = http_client
        self.max_retries = settings.rate_limit_max_retries
        self.base_delay = settings.rate_limit_base_delay
        self.generation_config = genai.types.GenerationConfig(temperature=0.1, max_output_tokens=2048)

    async def download_image(self, image_url: str) -> bytes:
        """
        Download an image from a URL.

        Raises:
            OCRError: If the download fails
        """
        logger.info("Downloading image", image_url=image_url)
        try:
            if self.http_client is not None:
                response = await self.http_client.get(image_url, timeout=DOWNLOAD_TIMEOUT_SECONDS)
            else:
                async with httpx.AsyncClient(follow_redirects=True) as client:
                    response = await client.get(image_url, timeout=DOWNLOAD_TIMEOUT_SECONDS)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Image download failed", image_url=image_url, error=str(e))
            raise OCRError(f"Failed to download image: {str(e)}")

        return response.content

    async def extract_text(self, image_url: Optional[str] = None, image_bytes: Optional[bytes] = None) -> str:
        """
        Extract the visible text from an image given by URL or bytes.

        Raises:
            NoTextFoundError: If fewer than three characters are recognised
            OCRRateLimitError: If the provider stays rate limited
            OCRError: For any other failure
        """
        if image_bytes is None:
            if not image_url:
                raise OCRError("An image URL or image bytes are required")
            image_bytes = await self.download_image(image_url)

        mime_type = ImageParser.detect_mime_type(image_bytes)
        logger.info("Calling Gemini vision", mime_type=mime_type, size_bytes=len(image_bytes))

        contents = [OCR_PROMPT, {"mime_type": mime_type, "data": image_bytes}]
        try:
            response = await retry_on_rate_limit(
                lambda: self.model.generate_content_async(contents, generation_config=self.generation_config),
                is_gemini_rate_limit,
                self.max_retries,
                self.base_delay,
                "OCR",
            )
            text = (response.text or "").strip()
        except BackendRateLimitError as e:
            raise OCRRateLimitError("Gemini API rate limit exceeded. Please wait a few minutes and try again.") from e
        except Exception as e:
            logger.error("Gemini vision call failed", error=str(e))
            raise OCRError(f"Gemini vision error: {str(e)}") from e

        if len(text) < MIN_TEXT_LENGTH:
            raise NoTextFoundError("OCR returned no text. The image may not contain readable text.")

        logger.info("OCR complete", characters=len(text))
        return text
