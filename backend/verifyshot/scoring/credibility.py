"""
Static domain reputation table used to score source credibility.

The table is built once at import and exposed read-only; lookups try an
exact hostname match before falling back to TLD heuristics.
"""

from types import MappingProxyType
from typing import Mapping
from urllib.parse import urlparse

_DOMAIN_SCORES = {
    # Wire services
    "reuters.com": 0.95, "apnews.com": 0.95, "ap.org": 0.95,
    # International broadsheets
    "bbc.com": 0.92, "bbc.co.uk": 0.92,
    "nytimes.com": 0.90, "washingtonpost.com": 0.88,
    "theguardian.com": 0.88, "wsj.com": 0.88,
    "economist.com": 0.90, "ft.com": 0.90,
    # Business and finance
    "cnbc.com": 0.85, "bloomberg.com": 0.88, "forbes.com": 0.78,
    "businessinsider.com": 0.72, "marketwatch.com": 0.78,
    "finance.yahoo.com": 0.72, "barrons.com": 0.82,
    # Science and academic
    "nature.com": 0.95, "science.org": 0.95, "sciencedirect.com": 0.92,
    "pubmed.ncbi.nlm.nih.gov": 0.95, "arxiv.org": 0.85,
    "scholar.google.com": 0.85, "nih.gov": 0.92,
    # US TV networks
    "cnn.com": 0.75, "nbcnews.com": 0.75, "abcnews.go.com": 0.75,
    "cbsnews.com": 0.75, "foxnews.com": 0.70, "msnbc.com": 0.72,
    # US newspapers
    "usatoday.com": 0.75, "latimes.com": 0.80, "chicagotribune.com": 0.78,
    "nypost.com": 0.65, "politico.com": 0.78, "thehill.com": 0.76,
    "axios.com": 0.78, "theatlantic.com": 0.82, "vox.com": 0.72,
    "npr.org": 0.88, "pbs.org": 0.88,
    # International
    "aljazeera.com": 0.78, "dw.com": 0.80, "france24.com": 0.80,
    "scmp.com": 0.75, "japantimes.co.jp": 0.78,
    # Fact-checkers
    "snopes.com": 0.88, "factcheck.org": 0.90, "politifact.com": 0.88,
    # Tech
    "techcrunch.com": 0.75, "theverge.com": 0.72, "arstechnica.com": 0.78,
    "wired.com": 0.75,
    # Reference
    "wikipedia.org": 0.70,
}

DOMAIN_SCORES: Mapping[str, float] = MappingProxyType(_DOMAIN_SCORES)

GOV_SCORE = 0.92
EDU_SCORE = 0.85
ORG_SCORE = 0.65
DEFAULT_SCORE = 0.50


def normalize_domain(hostname: str) -> str:
    """Lower-case a hostname and strip a leading www. and any port."""
    host = (hostname or "").strip().lower()
    host = host.split(":", 1)[0]
    if host.startswith("www."):
        host = host[4:]
    return host.rstrip(".")


def domain_from_url(url: str) -> str:
    """Extract the normalized domain from a URL, or "" if it has none."""
    try:
        return normalize_domain(urlparse(url).hostname or "")
    except ValueError:
        return ""


def credibility_for_domain(hostname: str) -> float:
    """
    Look up the credibility of a domain.

    Exact table matches win; otherwise .gov/.gov.uk score 0.92, .edu 0.85,
    .org 0.65 and everything else 0.50.
    """
    host = normalize_domain(hostname)
    if host in DOMAIN_SCORES:
        return DOMAIN_SCORES[host]
    if host.endswith(".gov") or host.endswith(".gov.uk"):
        return GOV_SCORE
    if host.endswith(".edu"):
        return EDU_SCORE
    if host.endswith(".org"):
        return ORG_SCORE
    return DEFAULT_SCORE
