from __future__ import annotations

import re

_REPLACEMENT = "***REDACTED***"

# Keep the key name visible, hide the value.
_ASSIGNMENT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?i)\b(x[_-]?api[_-]?key|api[_-]?key)\s*[:=]\s*([^\s,;]+)"),
    re.compile(r"(?i)\b(id[_-]?token|access[_-]?token|refresh[_-]?token)\s*[:=]\s*([^\s,;]+)"),
    re.compile(r"(?i)\b(client[_-]?secret|secret(?:[_-]?key)?)\s*[:=]\s*([^\s,;]+)"),
    re.compile(r"(?i)\b(password)\s*[:=]\s*([^\s,;]+)"),
)

_BEARER_PATTERN = re.compile(r"(?i)\b(bearer)\s+([A-Za-z0-9\-_\.=]+)")

# Bare JWTs (header.payload.signature) such as Google ID tokens.
_JWT_PATTERN = re.compile(r"\beyJ[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+")


def redact_sensitive_text(value: str) -> str:
    redacted = value
    for pattern in _ASSIGNMENT_PATTERNS:
        redacted = pattern.sub(lambda match: f"{match.group(1)}={_REPLACEMENT}", redacted)
    redacted = _BEARER_PATTERN.sub(lambda match: f"{match.group(1)} {_REPLACEMENT}", redacted)
    return _JWT_PATTERN.sub(_REPLACEMENT, redacted)
