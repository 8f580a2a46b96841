"""Invitation code extraction.

Turns typed text, pasted links and decoded QR payloads into a canonical code
candidate. Everything here is pure: identical input always yields identical
output and nothing touches the store.

Examples:
    "  uk5crh "                                  -> "UK5CRH"
    "https://app.example/dashboard?code=XYZ987"  -> "XYZ987"
    "www.app.example/join/abc123"                -> "ABC123"
    "Scan to join: UK5CRH"                       -> "UK5CRH"
    "uk5 crh"                                    -> "UK5CRH"
"""

import re
from typing import Optional
from urllib.parse import parse_qs, urlsplit

from config import CLASS_CODE_PREFIX
from core.exceptions import InvalidCodeFormatError

MIN_CODE_LENGTH = 4
MAX_CODE_LENGTH = 12

# Query parameters that may carry a code, in priority order
CODE_QUERY_PARAMS = ("code", "join", "invite", "c")

_PLAIN_CODE = re.compile(rf"[A-Za-z0-9]{{{MIN_CODE_LENGTH},{MAX_CODE_LENGTH}}}")
_EMBEDDED_CODE = re.compile(
    rf"(?<![A-Za-z0-9])[A-Za-z0-9]{{{MIN_CODE_LENGTH},{MAX_CODE_LENGTH}}}(?![A-Za-z0-9])"
)
_FAMILY_CODE = re.compile(
    rf"(?<![A-Za-z0-9]){re.escape(CLASS_CODE_PREFIX)}[A-Za-z0-9]{{4,6}}(?![A-Za-z0-9])",
    re.IGNORECASE,
)
_WHITESPACE = re.compile(r"\s+")
_URL_IN_TEXT = re.compile(r"(?:https?://|www\.)\S+", re.IGNORECASE)


def canonicalize(code: str) -> str:
    """Uppercase and drop all whitespace."""
    return _WHITESPACE.sub("", code or "").upper()


def is_family_code(code: str) -> bool:
    """Whether ``code`` follows the class-code family convention (e.g. UK5CRH)."""
    return _FAMILY_CODE.fullmatch(code or "") is not None


def _code_from_url(text: str) -> Optional[str]:
    parts = urlsplit(text)
    query = parse_qs(parts.query)
    for name in CODE_QUERY_PARAMS:
        for value in query.get(name, []):
            if value.strip():
                return value
    segments = [s for s in parts.path.split("/") if s]
    for index, segment in enumerate(segments[:-1]):
        if segment.lower() == "join":
            return segments[index + 1]
    return None


def _looks_like_url(text: str) -> bool:
    if text.lower().startswith("www."):
        return True
    parts = urlsplit(text)
    return bool(parts.scheme and parts.netloc)


def _canonical_url_code(text: str) -> Optional[str]:
    url = f"https://{text}" if text.lower().startswith("www.") else text
    code = _code_from_url(url)
    if code is None:
        return None
    return canonicalize(code) or None


def normalize_code(raw_input: str) -> Optional[str]:
    """Extract a canonical invitation code candidate from raw input.

    Args:
        raw_input: Typed code, pasted URL, clipboard text or QR payload.

    Returns:
        The uppercased candidate code, or None if nothing plausible was found.
    """
    if not raw_input or not isinstance(raw_input, str):
        return None
    text = raw_input.strip()
    if not text:
        return None

    if _looks_like_url(text):
        return _canonical_url_code(text)

    # Codes copied from a board often carry stray spaces ("uk5 crh")
    compact = canonicalize(text)
    if _PLAIN_CODE.fullmatch(compact) or _FAMILY_CODE.fullmatch(compact):
        return compact

    # QR payloads may wrap a join link in prose
    for match in _URL_IN_TEXT.finditer(text):
        code = _canonical_url_code(match.group(0).rstrip(".,;:!?)\"'"))
        if code:
            return code

    family = _FAMILY_CODE.search(text)
    if family:
        return family.group(0).upper()

    embedded = _EMBEDDED_CODE.search(text)
    if embedded:
        return embedded.group(0).upper()
    return None


def require_code(raw_input: str) -> str:
    """Like :func:`normalize_code` but raises when nothing can be extracted.

    Raises:
        InvalidCodeFormatError: If the input carries no plausible code.
    """
    code = normalize_code(raw_input)
    if code is None:
        raise InvalidCodeFormatError(raw_input)
    return code
