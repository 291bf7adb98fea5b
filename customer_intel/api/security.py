"""Allow-list validation of request input at the HTTP boundary."""

import re
from typing import Any

from fastapi import Request

from customer_intel.utils.logging import get_logger

logger = get_logger(__name__)

MAX_ID_LENGTH = 50
MIN_SEARCH_TERM_LENGTH = 2
MAX_SEARCH_TERM_LENGTH = 100
MAX_FILTER_TEXT_LENGTH = 100

ID_PATTERN = re.compile(rf"^[A-Za-z0-9_-]{{1,{MAX_ID_LENGTH}}}$")
SEARCH_TERM_PATTERN = re.compile(r"^[\w\s@.-]+$")
FILTER_TEXT_PATTERN = re.compile(r"^[\w\s@.,&'-]+$")

SUSPICIOUS_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"[<>]"),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"data:", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"on\w+=", re.IGNORECASE),
    re.compile(r"{{\s*\w+\s*}}"),
    re.compile(r"\$\{.*\}"),
    re.compile(r"\[\[.*\]\]"),
    re.compile(r"<%.*%>"),
    re.compile(r"\x00"),
]

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}

NO_STORE = "no-cache, no-store, must-revalidate"


class InvalidRequestError(Exception):
    """Request rejected before it reaches the repository."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        field: str | None = None,
        status_code: int = 400,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.field = field
        self.status_code = status_code


def get_client_ip(request: Request) -> str:
    """Best-effort client address, honouring proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client:
        return request.client.host
    return "unknown"


def log_security_event(event: str, client_ip: str, **details: Any) -> None:
    """Record a rejected or unusual request for later review."""
    logger.warning("security_event", event=event, client_ip=client_ip, **details)


def is_suspicious(text: str) -> bool:
    return any(pattern.search(text) for pattern in SUSPICIOUS_PATTERNS)


def clean_id(raw: str) -> str:
    """Customer ids are 1-50 characters of letters, digits, '-' or '_'."""
    candidate = raw.strip()
    if not ID_PATTERN.match(candidate):
        raise InvalidRequestError(
            "Invalid customer ID format", code="INVALID_ID", field="id"
        )
    return candidate


def clean_search_term(raw: str | None, client_ip: str = "unknown") -> str:
    """
    Validate the free-text search term.

    Terms are trimmed and must then be 2-100 characters drawn from letters,
    digits, whitespace, '@', '.', '_' and '-'. Markup or script-like input is
    rejected separately and logged as a security event.
    """
    if raw is None or not raw.strip():
        raise InvalidRequestError(
            'Search term is required. Use the "q" query parameter.',
            code="MISSING_SEARCH_TERM",
            field="q",
        )

    if is_suspicious(raw):
        log_security_event("suspicious_search_term", client_ip, term_length=len(raw))
        raise InvalidRequestError(
            "Invalid search term format.", code="SUSPICIOUS_PATTERN", field="q"
        )

    term = raw.strip()
    if not SEARCH_TERM_PATTERN.match(term):
        raise InvalidRequestError(
            "Search term may only contain letters, digits, spaces, '@', '.', '_' and '-'.",
            code="INVALID_SEARCH_TERM",
            field="q",
        )
    if len(term) < MIN_SEARCH_TERM_LENGTH:
        raise InvalidRequestError(
            f"Search term must be at least {MIN_SEARCH_TERM_LENGTH} characters long.",
            code="SEARCH_TERM_TOO_SHORT",
            field="q",
        )
    if len(term) > MAX_SEARCH_TERM_LENGTH:
        raise InvalidRequestError(
            f"Search term must be at most {MAX_SEARCH_TERM_LENGTH} characters long.",
            code="SEARCH_TERM_TOO_LONG",
            field="q",
        )
    return term


def clean_filter_text(raw: str | None, field: str) -> str | None:
    """Optional listing filter text; blank means no filter."""
    if raw is None or not raw.strip():
        return None

    text = raw.strip()
    if len(text) > MAX_FILTER_TEXT_LENGTH or not FILTER_TEXT_PATTERN.match(text):
        raise InvalidRequestError(
            f"Invalid {field} filter", code="INVALID_FILTER", field=field
        )
    return text
