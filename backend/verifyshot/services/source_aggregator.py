"""
Turns raw search results into credibility-scored, deduplicated sources.
"""

import re
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from verifyshot.schemas.analysis import Source
from verifyshot.scoring.credibility import credibility_for_domain, domain_from_url, normalize_domain
from verifyshot.scoring.quality_gate import count_high_quality
from verifyshot.scoring.trust_score import recency_score
from verifyshot.services.search_service import SearchService
from verifyshot.utils.logger import get_logger

logger = get_logger(__name__)

_TRACKING_PARAMS = ("fbclid", "gclid")
_RELATIVE_DATE = re.compile(r"(\d+)\s+(minute|hour|day|week|month|year)s?\s+ago", re.IGNORECASE)
_UNIT_DAYS = {"minute": 0, "hour": 0, "day": 1, "week": 7, "month": 30, "year": 365}
_DATE_FORMATS = ("%b %d, %Y", "%B %d, %Y", "%d %b %Y", "%Y-%m-%d")


def canonical_url(url: str) -> Optional[str]:
    """
    Canonical form of a URL used as the source dedup key.

    Returns None for anything that is not an http(s) URL with a host.
    """
    try:
        parts = urlsplit(url.strip())
    except (AttributeError, ValueError):
        return None
    scheme = parts.scheme.lower()
    if scheme not in ("http", "https") or not parts.hostname:
        return None

    host = normalize_domain(parts.hostname)
    query = urlencode([
        (key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if not key.lower().startswith("utm_") and key.lower() not in _TRACKING_PARAMS
    ])
    path = parts.path.rstrip("/")
    return urlunsplit((scheme, host, path, query, ""))


def normalize_published_date(value: Any, today: Optional[date] = None) -> str:
    """
    Normalize a search result date to ISO format (YYYY-MM-DD).

    Accepts ISO strings, "Mar 5, 2024" style dates and "3 days ago"; anything
    else is treated as published today.
    """
    today = today or date.today()
    if not isinstance(value, str) or not value.strip():
        return today.isoformat()
    text = value.strip()

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        pass

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue

    match = _RELATIVE_DATE.search(text)
    if match:
        days = int(match.group(1)) * _UNIT_DAYS[match.group(2).lower()]
        return (today - timedelta(days=days)).isoformat()

    return today.isoformat()


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def build_sources(raw_results: Sequence[Mapping[str, Any]], today: Optional[date] = None) -> List[Source]:
    """
    Build scored sources from raw search results.

    Results without an http(s) URL are dropped, duplicates by canonical URL
    keep their first occurrence, and the output is stably sorted by
    credibility, highest first. Non-string title, domain and snippet
    values are coerced to text.
    """
    seen = set()
    sources = []
    for raw in raw_results:
        if not isinstance(raw, Mapping):
            continue
        url = raw.get("url") or raw.get("link") or ""
        key = canonical_url(url) if isinstance(url, str) else None
        if key is None or key in seen:
            continue
        seen.add(key)

        domain = normalize_domain(_text(raw.get("domain"))) or domain_from_url(url)
        title = _text(raw.get("title")).strip() or f"Article from {domain}"
        sources.append(Source(
            title=title,
            url=url.strip(),
            domain=domain,
            date=normalize_published_date(raw.get("publishedDate") or raw.get("date"), today),
            credibility_score=credibility_for_domain(domain),
            snippet=_text(raw.get("snippet")).strip(),
        ))

    return sorted(sources, key=lambda source: source.credibility_score, reverse=True)


def source_metrics(sources: Sequence[Source]) -> Dict[str, Any]:
    """Summary numbers about a source list, for logging and summaries."""
    count = len(sources)
    return {
        "count": count,
        "high_quality_count": count_high_quality(sources),
        "mean_credibility": round(sum(s.credibility_score for s in sources) / count, 3) if count else 0.0,
        "recency": round(recency_score(sources), 3),
    }


class SourceAggregator:
    """Searches for a query and returns scored sources; never fails the caller."""

    def __init__(self, search_service: SearchService) -> None:
        self.search_service = search_service

    async def gather_sources(self, query: str, limit: int = 10) -> List[Source]:
        try:
            raw_results = await self.search_service.search(query, limit)
            sources = build_sources(raw_results)
        except Exception as e:
            logger.error("Source aggregation failed, continuing without sources", error=str(e))
            return []

        logger.info("Sources gathered", query=query, **source_metrics(sources))
        return sources
