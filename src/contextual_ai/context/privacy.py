# contextual_ai/context/privacy.py
"""
Privacy filtering for prompt-bound page context.

Two layers, applied to a FormattedContext before it is cached or sent:

1. Exclusion: pages on an excluded domain, or whose path looks sensitive
   (login, payment, checkout, account, ...), lose their main content,
   forms and network data.
2. Redaction: emails, phone numbers, card-number-like digit runs and SSNs
   are replaced with the redaction marker in free text, and form field
   values are redacted when the field name or type looks sensitive.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urlsplit

from contextual_ai.config import PRIVACY_FILTERED_MARKER, REDACTION_MARKER
from contextual_ai.models import FormattedContext, FormFieldInfo, PrivacyConfig

logger = logging.getLogger(__name__)

# Longest patterns first: a card number also contains phone- and SSN-shaped runs
PII_PATTERNS: dict[str, re.Pattern[str]] = {
    "email": re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    "credit_card": re.compile(r"\b(?:\d{4}[-\s]?){3}\d{4}\b"),
    "ssn": re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
    "phone": re.compile(r"(?<!\w)(?:\+?1[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b"),
}

SENSITIVE_FIELD_TYPES = frozenset({"password"})

_NAME_TOKEN = re.compile(r"[A-Z]?[a-z]+|[A-Z]+(?![a-z])|\d+")
_PATH_SEGMENT = re.compile(r"[/._]+")


def redact_text(text: str) -> str:
    """Replace every PII match in ``text`` with the redaction marker."""
    if not text:
        return text
    for pattern in PII_PATTERNS.values():
        text = pattern.sub(REDACTION_MARKER, text)
    return text


class PrivacyFilter:
    """Applies a PrivacyConfig to formatted context."""

    def __init__(self, config: PrivacyConfig | None = None):
        self.config = config or PrivacyConfig()

    def update_config(self, config: PrivacyConfig) -> None:
        self.config = config

    # =========================================================================
    # Checks
    # =========================================================================

    def is_excluded(self, url: str) -> bool:
        """True for excluded domains (exact or subdomain) and sensitive paths."""
        try:
            parts = urlsplit(url)
        except ValueError:
            return False

        host = (parts.hostname or "").lower()
        for domain in self.config.excluded_domains:
            domain = domain.lower().lstrip(".")
            if host == domain or host.endswith(f".{domain}"):
                return True

        segments = set(_PATH_SEGMENT.split(parts.path.lower()))
        return any(marker.lower() in segments for marker in self.config.excluded_paths)

    def is_sensitive_field(self, field: FormFieldInfo) -> bool:
        if field.type.lower() in SENSITIVE_FIELD_TYPES:
            return True
        tokens = [t.lower() for t in _NAME_TOKEN.findall(field.name)]
        names = [n.lower() for n in self.config.sensitive_field_names]
        return any(token.startswith(name) for token in tokens for name in names)

    # =========================================================================
    # Filtering
    # =========================================================================

    def apply(self, formatted: FormattedContext) -> FormattedContext:
        """Return a filtered copy; the input is left untouched."""
        filtered = formatted.model_copy(deep=True)

        if self.is_excluded(filtered.content.url):
            logger.info(f"Page context filtered for privacy: {filtered.content.url}")
            filtered.summary = f'Page: "{filtered.content.title}" at {filtered.content.url}\n{PRIVACY_FILTERED_MARKER}'
            filtered.content.main_content = PRIVACY_FILTERED_MARKER
            filtered.content.forms = []
            filtered.network.recent_requests = []
            filtered.network.api_endpoints = []
            filtered.interactions.focused_elements = []
            filtered.privacy_filtered = True
            return filtered

        if not self.config.redact_sensitive_data:
            return filtered

        filtered.summary = redact_text(filtered.summary)
        filtered.content.main_content = redact_text(filtered.content.main_content)
        for link in filtered.content.links:
            link.text = redact_text(link.text)
        for form in filtered.content.forms:
            for field in form.fields:
                if not field.value:
                    continue
                field.value = REDACTION_MARKER if self.is_sensitive_field(field) else redact_text(field.value)
        for element in filtered.interactions.focused_elements:
            element.text = redact_text(element.text)

        return filtered
