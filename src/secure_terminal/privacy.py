"""Secret and PII scrubbing for the diagnostic log.

Command lines routinely carry credentials (``curl -u``, ``TOKEN=...``,
``--password=...``). Everything written to the diagnostic log passes
through the scrubber first. The audit log is not scrubbed: history search
matches against the commands exactly as they ran.
"""
from __future__ import annotations
import re
from typing import Any, Dict

# PII detection patterns
EMAIL_RE = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
SSN_RE = re.compile(r'\b\d{3}-\d{2}-\d{4}\b')
CREDIT_CARD_RE = re.compile(r'\b(?:\d{4}[-\s]?){3}\d{4}\b')
# key=value / --key=value / key: value secrets on a command line
SECRET_ASSIGN_RE = re.compile(
    r'(?i)\b((?:[A-Za-z0-9_]*_)?(?:password|passwd|pwd|token|secret|api[_-]?key|auth))(\s*[=:]\s*)("[^"]*"|\'[^\']*\'|\S+)'
)
# curl -u user:pass, Authorization: Bearer xyz
BASIC_AUTH_RE = re.compile(r'(\s-u\s+)(\S+?):(\S+)')
BEARER_RE = re.compile(r'(?i)\b(bearer\s+)[A-Za-z0-9._~+/=-]+')

SENSITIVE_KEYS = ('password', 'token', 'secret', 'key', 'auth')


class Scrubber:
    """Redacts sensitive data from text and log context."""

    def __init__(self):
        self._patterns = [
            (SECRET_ASSIGN_RE, r'\1\2[REDACTED]'),
            (BASIC_AUTH_RE, r'\1\2:[REDACTED]'),
            (BEARER_RE, r'\1[REDACTED]'),
            (EMAIL_RE, "[EMAIL]"),
            (SSN_RE, "[SSN]"),
            (CREDIT_CARD_RE, "[CREDIT_CARD]"),
        ]

    def scrub_text(self, text: str) -> str:
        """Scrub sensitive data from text.

        Args:
            text: Input text

        Returns:
            Text with secrets and PII redacted
        """
        if not isinstance(text, str):
            text = str(text)

        for pattern, replacement in self._patterns:
            text = pattern.sub(replacement, text)

        return text

    def scrub_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Scrub sensitive data from a dictionary.

        Values under keys that look sensitive are replaced outright; other
        string values are scrubbed as text.

        Args:
            data: Input dictionary

        Returns:
            Dictionary with sensitive data redacted
        """
        scrubbed = {}
        for key, value in data.items():
            if isinstance(value, str):
                if any(term in key.lower() for term in SENSITIVE_KEYS):
                    scrubbed[key] = "[REDACTED]"
                else:
                    scrubbed[key] = self.scrub_text(value)
            elif isinstance(value, dict):
                scrubbed[key] = self.scrub_dict(value)
            elif isinstance(value, list):
                scrubbed[key] = [self.scrub_text(v) if isinstance(v, str) else v for v in value]
            else:
                scrubbed[key] = value

        return scrubbed


# Global scrubber instance
_scrubber = Scrubber()


def scrub(text: str) -> str:
    """Scrub secrets and PII from text (convenience function)."""
    return _scrubber.scrub_text(text)
