"""
Error Message Sanitization for result files.

Error messages captured from failed Graph calls end up in the exported
result file, which operators pass around by email and ticket. This module
strips credentials and tokens from those messages before they are stored
on a DeviceRecord, while the original error is still logged locally.

What Gets Sanitized
-------------------
- Bearer tokens and Authorization headers: Bearer eyJ0... → Bearer [REDACTED]
- JWTs anywhere in the text → [JWT_REDACTED]
- client_secret / access_token / password assignments → key=[REDACTED]
- Credential environment variable names → [ENV_VAR]
- Long base64 blobs (40+ chars with a digit, likely secrets) → [BASE64_REDACTED]

Device ids (GUIDs), serial numbers and Graph request ids are left intact:
they are what an operator needs to follow up on a failed removal.

Usage:
    from intune_remover.api.error_sanitizer import sanitize_error_message

    record_error = sanitize_error_message(str(exc))
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional


@dataclass
class SanitizationResult:
    """Result of error message sanitization.

    Attributes:
        sanitized_message: Message that is safe to store in a result file
        redaction_count: Number of redactions made
    """

    sanitized_message: str
    redaction_count: int

    @property
    def was_sanitized(self) -> bool:
        """Check if any redactions were made."""
        return self.redaction_count > 0


class ErrorSanitizer:
    """Removes tokens and secrets from error messages.

    Attributes:
        patterns: List of (regex_pattern, replacement) tuples
        max_message_length: Maximum length of sanitized messages
    """

    # Order matters - env var names before key=value rules, JWTs before base64.
    # Credential rules need a ':' or '=' so plain prose is left alone.
    DEFAULT_PATTERNS: list[tuple[str, str]] = [
        (r'bearer\s+[A-Za-z0-9_\-\.~+/]+=*', 'Bearer [REDACTED]'),
        (r'authorization\s*:\s*(?!Bearer \[REDACTED\])(?:[A-Za-z]+\s+)?[^\s]+', 'Authorization: [REDACTED]'),
        (r'\beyJ[A-Za-z0-9_-]*\.eyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]+', '[JWT_REDACTED]'),
        (r'\b(AZURE_CLIENT_SECRET|AZURE_CLIENT_ID|AZURE_TENANT_ID)\b', '[ENV_VAR]'),
        (r'client[-_]?secret\s*[=:]\s*[^\s,;&]+', 'client_secret=[REDACTED]'),
        (r'access[-_]?token\s*[=:]\s*[^\s,;&]+', 'access_token=[REDACTED]'),
        (r'password\s*[=:]\s*[^\s,;&]+', 'password=[REDACTED]'),
        # Needs a digit so long Graph paths and property names survive
        (r'(?<![A-Za-z0-9+])(?=[A-Za-z+]*[0-9])[A-Za-z0-9+]{40,}={0,2}', '[BASE64_REDACTED]'),
    ]

    def __init__(
        self,
        patterns: Optional[list[tuple[str, str]]] = None,
        max_message_length: int = 500,
    ):
        self.patterns = list(patterns or self.DEFAULT_PATTERNS)
        self.max_message_length = max_message_length
        self._compiled_patterns = [
            (re.compile(pattern, re.IGNORECASE), replacement)
            for pattern, replacement in self.patterns
        ]

    def sanitize(self, message: str) -> SanitizationResult:
        """Sanitize an error message.

        Args:
            message: Raw error message

        Returns:
            SanitizationResult with the sanitized message
        """
        if not message:
            return SanitizationResult(sanitized_message="An error occurred", redaction_count=0)

        sanitized = message
        redaction_count = 0

        for pattern, replacement in self._compiled_patterns:
            sanitized, count = pattern.subn(replacement, sanitized)
            redaction_count += count

        if len(sanitized) > self.max_message_length:
            sanitized = sanitized[: self.max_message_length] + "... [TRUNCATED]"

        if not sanitized.strip():
            sanitized = "An error occurred"

        return SanitizationResult(sanitized_message=sanitized, redaction_count=redaction_count)

    def is_safe(self, message: str) -> bool:
        """Check whether a message would pass through unchanged."""
        return not any(pattern.search(message) for pattern, _ in self._compiled_patterns)


_default_sanitizer = ErrorSanitizer()


def sanitize_error_message(message: str) -> str:
    """Convenience function returning the sanitized text only.

    Example:
        >>> sanitize_error_message("401 for Authorization: Bearer abc.def.ghi")
        '401 for Authorization: Bearer [REDACTED]'
    """
    return _default_sanitizer.sanitize(message).sanitized_message
