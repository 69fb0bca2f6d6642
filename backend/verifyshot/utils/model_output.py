"""
Tolerant parsing of language model output.

Every model response is untrusted text: it may be wrapped in markdown
fences, surrounded by prose, or carry trailing commas. The helpers here
recover a JSON payload where one exists and coerce loose values into the
typed ranges the scoring code expects.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from verifyshot.utils.logger import get_logger

logger = get_logger(__name__)

_CODE_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_TRAILING_COMMA = re.compile(r",\s*([}\]])")

_TRUE_WORDS = ("likely_true", "true", "supported", "accurate", "correct", "verified", "confirmed")
_MISLEADING_WORDS = ("likely_misleading", "misleading", "false", "refuted", "inaccurate", "incorrect", "debunked")


class ModelOutputParseError(Exception):
    """Raised when a model response contains no usable JSON payload."""
    pass


@dataclass
class ParseResult:
    """Outcome of parsing one model response."""

    ok: bool
    payload: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


def _strip_code_fences(raw: str) -> str:
    match = _CODE_FENCE.search(raw)
    if match:
        return match.group(1).strip()
    return raw.strip()


def _load_between(raw: str, opening: str, closing: str) -> Any:
    text = _strip_code_fences(raw or "")
    start = text.find(opening)
    end = text.rfind(closing)
    if start == -1 or end <= start:
        raise ModelOutputParseError(f"No JSON {opening}{closing} found in model output")

    candidate = _TRAILING_COMMA.sub(r"\1", text[start:end + 1])
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ModelOutputParseError(f"Invalid JSON in model output: {e}")


def extract_json_object(raw: str) -> Dict[str, Any]:
    """
    Locate and decode the outermost JSON object in a model response.

    Raises:
        ModelOutputParseError: If no object can be decoded
    """
    data = _load_between(raw, "{", "}")
    if not isinstance(data, dict):
        raise ModelOutputParseError("Model output JSON is not an object")
    return data


def extract_json_array(raw: str) -> List[Any]:
    """
    Locate and decode the outermost JSON array in a model response.

    Raises:
        ModelOutputParseError: If no array can be decoded
    """
    data = _load_between(raw, "[", "]")
    if not isinstance(data, list):
        raise ModelOutputParseError("Model output JSON is not an array")
    return data


def parse_model_output(raw: str) -> ParseResult:
    """Parse a model response into a ParseResult without raising."""
    try:
        return ParseResult(ok=True, payload=extract_json_object(raw))
    except ModelOutputParseError as e:
        logger.debug("Model output not parseable", error=str(e), preview=(raw or "")[:120])
        return ParseResult(ok=False, error=str(e))


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def coerce_float(value: Any, default: float) -> float:
    """Convert a loose model value to float, returning the default on failure."""
    if isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if result != result:  # NaN
        return default
    return result


def coerce_confidence(value: Any, default: float = 0.0) -> float:
    """Coerce a confidence into [0, 1]; values on a 0-100 scale are rescaled."""
    result = coerce_float(value, default)
    if 1.0 < result <= 100.0:
        result = result / 100.0
    return clamp(result, 0.0, 1.0)


def coerce_bias(value: Any, default: float = 0.0) -> float:
    return clamp(coerce_float(value, default), -1.0, 1.0)


def normalize_verdict(value: Any) -> str:
    """
    Map a free-form verdict onto likely_true, likely_misleading or mixed.

    Anything unrecognised becomes "mixed".
    """
    if not isinstance(value, str):
        return "mixed"
    text = value.strip().lower().replace("-", "_").replace(" ", "_")
    if text in ("mixed", "partially_true", "unverified", "uncertain"):
        return "mixed"
    if text.startswith("likely_misleading") or text in _MISLEADING_WORDS:
        return "likely_misleading"
    if text.startswith("likely_true") or text in _TRUE_WORDS:
        return "likely_true"
    return "mixed"
