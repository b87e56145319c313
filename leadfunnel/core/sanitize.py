"""
Input sanitization and request attribution helpers for the public funnel
"""

import re
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, urlparse

_ANGLE_BRACKETS = re.compile(r"[<>]")
_DANGEROUS_PROTOCOLS = re.compile(r"(javascript|vbscript|data)\s*:", re.IGNORECASE)
_EVENT_HANDLERS = re.compile(r"\bon\w+\s*=", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")
_MOBILE_AGENT = re.compile(r"Mobile|Android|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini", re.IGNORECASE)

UTM_PARAMS = ("utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content")

# Referrer host fragment -> source name
REFERRER_SOURCES = (
    ("linkedin.", "linkedin"),
    ("facebook.", "facebook"),
    ("fb.com", "facebook"),
    ("twitter.", "twitter"),
    ("x.com", "twitter"),
    ("t.co", "twitter"),
    ("instagram.", "instagram"),
    ("youtube.", "youtube"),
)


def sanitize_text(value: str) -> str:
    """Strip markup-significant characters and script patterns, collapse whitespace"""
    cleaned = _ANGLE_BRACKETS.sub("", value)
    cleaned = _DANGEROUS_PROTOCOLS.sub("", cleaned)
    cleaned = _EVENT_HANDLERS.sub("", cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned)
    return cleaned.strip()


def sanitize_value(value: Any) -> Any:
    """Sanitize every string inside a JSON-like value"""
    if isinstance(value, str):
        return sanitize_text(value)
    if isinstance(value, list):
        return [sanitize_value(item) for item in value]
    if isinstance(value, dict):
        return {key: sanitize_value(item) for key, item in value.items()}
    return value


def _host_matches(host: str, fragment: str) -> bool:
    if fragment.endswith("."):
        return host.startswith(fragment) or f".{fragment}" in host
    return host == fragment or host.endswith(f".{fragment}")


def detect_source(referrer: Optional[str], user_agent: Optional[str]) -> str:
    """Acquisition channel from the referrer, then the user agent"""
    if referrer:
        host = (urlparse(referrer).hostname or "").lower()
        for fragment, source in REFERRER_SOURCES:
            if host and _host_matches(host, fragment):
                return source
    if user_agent and _MOBILE_AGENT.search(user_agent):
        return "mobile"
    return "website"


def extract_utm_params(referrer: Optional[str]) -> Dict[str, str]:
    if not referrer:
        return {}
    query = parse_qs(urlparse(referrer).query)
    return {name: sanitize_text(query[name][0]) for name in UTM_PARAMS if query.get(name)}
