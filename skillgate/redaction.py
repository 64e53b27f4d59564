"""
SkillGate Redactor

Hashes and strips sensitive text before anything is persisted.

Evidence never stores a matched snippet: ``redact_snippet`` keeps only its
SHA-256 and length. ``contains_sensitive`` is a coarse pre-filter and
``partial_redact`` masks sensitive substrings inside free text.
"""

import re
from dataclasses import dataclass
from typing import List, Pattern, Tuple

from skillgate.utils import sha256


@dataclass(frozen=True)
class RedactedContent:
    """One-way stand-in for a snippet of text."""
    hash: str
    original_length: int
    redacted: bool = True


# Ordered battery of sensitive patterns. partial_redact applies them in this
# order, so where two patterns overlap the earlier one wins.
SENSITIVE_PATTERNS: List[Tuple[str, Pattern]] = [
    # API keys and tokens
    ("api_key", re.compile(r"api[_-]?key\s*[:=]\s*['\"][^'\"]+['\"]", re.IGNORECASE)),
    ("secret", re.compile(r"secret\s*[:=]\s*['\"][^'\"]+['\"]", re.IGNORECASE)),
    ("token", re.compile(r"token\s*[:=]\s*['\"][^'\"]+['\"]", re.IGNORECASE)),
    ("password", re.compile(r"password\s*[:=]\s*['\"][^'\"]+['\"]", re.IGNORECASE)),
    ("bearer", re.compile(r"bearer\s+[A-Za-z0-9._-]+", re.IGNORECASE)),

    # AWS credentials
    ("aws_access_key", re.compile(r"AKIA[A-Z0-9]{16}")),
    ("aws_secret", re.compile(
        r"aws[_-]?secret[_-]?access[_-]?key\s*[:=]\s*['\"][^'\"]+['\"]", re.IGNORECASE
    )),

    # Private keys
    ("rsa_private_key", re.compile(r"-----BEGIN\s+(?:RSA\s+)?PRIVATE\s+KEY-----")),
    ("openssh_private_key", re.compile(r"-----BEGIN\s+OPENSSH\s+PRIVATE\s+KEY-----")),

    # Connection strings
    ("mongodb", re.compile(r"mongodb(?:\+srv)?://\S+", re.IGNORECASE)),
    ("postgres", re.compile(r"postgres(?:ql)?://\S+", re.IGNORECASE)),
    ("mysql", re.compile(r"mysql://\S+", re.IGNORECASE)),
    ("redis", re.compile(r"redis://\S+", re.IGNORECASE)),

    # Email addresses
    ("email", re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")),

    # Bare IPv4 addresses
    ("ipv4", re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")),

    # URLs with embedded credentials
    ("credentialed_url", re.compile(r"https?://[^:\s]+:[^@\s]+@\S+", re.IGNORECASE)),
]


def hash_content(content: str) -> str:
    """Prefixed SHA-256 of content, e.g. ``sha256:ab12...``."""
    return f"sha256:{sha256(content)}"


def redact_snippet(snippet: str) -> RedactedContent:
    """Replace a snippet with its hash and length. The text is not retained."""
    return RedactedContent(
        hash=hash_content(snippet),
        original_length=len(snippet),
    )


def contains_sensitive(content: str) -> bool:
    """Check whether any sensitive pattern occurs in content."""
    return any(pattern.search(content) for _, pattern in SENSITIVE_PATTERNS)


def partial_redact(content: str) -> Tuple[str, int]:
    """
    Mask sensitive substrings while keeping the surrounding text.

    Each match becomes ``[REDACTED:<first 8 hex of its sha256>]``.

    Returns:
        (redacted_text, redaction_count)
    """
    count = 0

    def _replace(match: "re.Match") -> str:
        nonlocal count
        count += 1
        return f"[REDACTED:{sha256(match.group(0))[:8]}]"

    result = content
    for _, pattern in SENSITIVE_PATTERNS:
        result = pattern.sub(_replace, result)

    return result, count
