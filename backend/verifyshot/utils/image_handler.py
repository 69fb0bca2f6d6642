"""
Image upload utilities for screenshots sent to the analysis endpoint.
Handles base64 decoding, size limits and image type detection.
"""

import base64
import binascii
import hashlib
from typing import Optional

from verifyshot.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


class ImageValidationError(Exception):
    """Raised when an uploaded image fails validation."""
    pass


class ImageParser:
    """Parser for uploaded screenshot images."""

    @staticmethod
    def decode_base64(data: str) -> bytes:
        """
        Decode a base64 image, accepting an optional data URL prefix.

        Args:
            data: Base64 string, e.g. "data:image/png;base64,iVBOR..."

        Returns:
            Raw image bytes

        Raises:
            ImageValidationError: If the payload is empty or not valid base64
        """
        if not data or not data.strip():
            raise ImageValidationError("Image payload is empty")

        payload = data.strip()
        if payload.startswith("data:") and "," in payload:
            payload = payload.split(",", 1)[1]

        try:
            decoded = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            logger.warning("Invalid base64 image payload", error=str(e))
            raise ImageValidationError(f"Image is not valid base64: {str(e)}")

        if not decoded:
            raise ImageValidationError("Image payload is empty")
        return decoded

    @staticmethod
    def validate_image_size(image_size: int, max_size: int) -> None:
        """
        Validate that image size is within limits.

        Raises:
            ImageValidationError: If image is too large
        """
        if image_size > max_size:
            max_mb = max_size / (1024 * 1024)
            current_mb = image_size / (1024 * 1024)
            logger.warning("Image too large", image_size_mb=current_mb, max_size_mb=max_mb)
            raise ImageValidationError(
                f"Image size ({current_mb:.2f} MB) exceeds maximum allowed size ({max_mb:.2f} MB)"
            )

    @staticmethod
    def sniff_mime_type(image_bytes: bytes) -> Optional[str]:
        """Return the MIME type recognised from magic bytes, or None."""
        if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
            return "image/png"
        if image_bytes.startswith(b"\xff\xd8\xff"):
            return "image/jpeg"
        if image_bytes[:6] in (b"GIF87a", b"GIF89a"):
            return "image/gif"
        if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
            return "image/webp"
        return None

    @staticmethod
    def detect_mime_type(image_bytes: bytes) -> str:
        """Detect the MIME type of image bytes, defaulting to JPEG."""
        return ImageParser.sniff_mime_type(image_bytes) or DEFAULT_MIME_TYPE

    @staticmethod
    def calculate_content_hash(image_bytes: bytes) -> str:
        """Calculate SHA-256 hash of image bytes."""
        return hashlib.sha256(image_bytes).hexdigest()

    @staticmethod
    def parse_upload(data: str, max_size: int) -> bytes:
        """
        Decode and validate a base64 screenshot upload.

        Args:
            data: Base64 image, optionally as a data URL
            max_size: Maximum allowed decoded size in bytes

        Returns:
            Validated image bytes

        Raises:
            ImageValidationError: If the upload is not a usable image
        """
        image_bytes = ImageParser.decode_base64(data)
        ImageParser.validate_image_size(len(image_bytes), max_size)

        if ImageParser.sniff_mime_type(image_bytes) is None:
            raise ImageValidationError("Unsupported image format. Supported formats: PNG, JPEG, GIF, WEBP")

        logger.info("Parsed image upload",
                    size_bytes=len(image_bytes),
                    mime_type=ImageParser.detect_mime_type(image_bytes),
                    content_hash=ImageParser.calculate_content_hash(image_bytes)[:12])
        return image_bytes
