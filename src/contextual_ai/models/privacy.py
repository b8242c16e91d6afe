# contextual_ai/models/privacy.py
"""Privacy settings read from the persistent store."""

from __future__ import annotations

from pydantic import BaseModel, Field

DEFAULT_EXCLUDED_PATHS: tuple[str, ...] = (
    "login",
    "signin",
    "sign-in",
    "payment",
    "checkout",
    "account",
    "billing",
    "password",
    "auth",
)

DEFAULT_SENSITIVE_FIELD_NAMES: tuple[str, ...] = (
    "password",
    "pwd",
    "pass",
    "secret",
    "token",
    "key",
    "ssn",
    "social",
    "credit",
    "card",
    "cvv",
    "cvc",
    "pin",
    "account",
    "routing",
    "bank",
)


class PrivacyConfig(BaseModel):
    """
    Exclusion lists and redaction toggles.

    A URL is excluded when its host equals or is a subdomain of an entry in
    ``excluded_domains``, or when any path segment equals one of
    ``excluded_paths``.
    """

    excluded_domains: list[str] = Field(default_factory=list)
    excluded_paths: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDED_PATHS))
    redact_sensitive_data: bool = True
    sensitive_field_names: list[str] = Field(default_factory=lambda: list(DEFAULT_SENSITIVE_FIELD_NAMES))
