"""
Invite Codes

An invite code is the human-typeable name of a household: lowercase
letters and digits in hyphen-separated groups, 3 to 32 characters
(e.g. "smith-family"). Users type codes loosely ("  Smith Family! "), so
every code is normalized before it is validated, stored or looked up.
"""

import re
import secrets
import string
from typing import Optional
from urllib.parse import parse_qs, quote, urlparse


MIN_LENGTH = 3
MAX_LENGTH = 32
PROPOSAL_BASE_LENGTH = 20
SUFFIX_ALPHABET = string.ascii_lowercase + string.digits

_VALID_CODE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^a-z0-9-]")
_HYPHEN_RUNS = re.compile(r"-+")


def normalize_invite_code(text: Optional[str]) -> str:
    """
    Canonical form of a typed invite code.

    Trim, lowercase, whitespace runs to a hyphen, drop anything outside
    [a-z0-9-], collapse hyphen runs, trim hyphens at both ends.
    Applying it twice gives the same result as applying it once.
    """
    code = (text or "").strip().lower()
    code = _WHITESPACE.sub("-", code)
    code = _DISALLOWED.sub("", code)
    code = _HYPHEN_RUNS.sub("-", code)
    return code.strip("-")


def is_valid_invite_code(code: Optional[str]) -> bool:
    """Check an already-normalized code against the format rule."""
    if not code:
        return False
    if not MIN_LENGTH <= len(code) <= MAX_LENGTH:
        return False
    return bool(_VALID_CODE.match(code))


def random_suffix(length: int = 4) -> str:
    return "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(length))


def propose_invite_code(name_like: Optional[str] = "home") -> str:
    """
    Suggest a code derived from a display name.

    "Maria Papadopoulou" -> "maria-papadopoulou-k3x9"
    """
    base = normalize_invite_code(name_like) or "home"
    # truncation can leave a trailing hyphen
    base = base[:PROPOSAL_BASE_LENGTH].rstrip("-") or "home"
    return f"{base}-{random_suffix(4)}"[:MAX_LENGTH]


def fallback_invite_code() -> str:
    """Code used when every proposal collided."""
    return f"home-{random_suffix(6)}"


def build_invite_link(origin: str, code: str) -> str:
    """Shareable link that pre-fills the invite code on the sign-up form."""
    return f"{origin.rstrip('/')}/?invite={quote(code, safe='')}"


def invite_code_from_url(url: str) -> str:
    """
    Read the invite query parameter from a link, normalized.

    Returns "" when the link carries no invite parameter.
    """
    query = parse_qs(urlparse(url or "").query)
    values = query.get("invite") or [""]
    return normalize_invite_code(values[0])


def invite_code_from_input(text: Optional[str]) -> str:
    """
    Normalized code from what a user typed or pasted.

    A pasted invite link yields its invite parameter; anything else is
    treated as the code itself.
    """
    text = (text or "").strip()
    if "?" in text:
        from_link = invite_code_from_url(text)
        if from_link:
            return from_link
    return normalize_invite_code(text)
