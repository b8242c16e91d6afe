# tests/test_privacy.py
"""Tests for PII redaction and the PrivacyFilter."""

import pytest

from contextual_ai.config import PRIVACY_FILTERED_MARKER, REDACTION_MARKER
from contextual_ai.context import PrivacyFilter, redact_text
from contextual_ai.models import (
    ElementSummary,
    FormattedContent,
    FormattedContext,
    FormattedInteractions,
    FormattedNetwork,
    FormFieldInfo,
    FormInfo,
    LinkInfo,
    NetworkRequestSummary,
    PrivacyConfig,
)


def make_formatted(url: str = "https://shop.example.com/orders") -> FormattedContext:
    return FormattedContext(
        summary=f'Page: "Orders" at {url}\nContent: contact jane@example.com',
        content=FormattedContent(
            title="Orders",
            url=url,
            main_content="Call 555-123-4567 or pay with 4111 1111 1111 1111. SSN 123-45-6789.",
            forms=[
                FormInfo(
                    field_count=3,
                    fields=[
                        FormFieldInfo(name="cardNumber", value="4111111111111111"),
                        FormFieldInfo(name="shipping_note", value="Leave at door, ring 555-987-6543"),
                        FormFieldInfo(name="login", type="password", value="hunter2"),
                    ],
                )
            ],
            links=[LinkInfo(href="mailto:help@example.com", text="help@example.com")],
        ),
        network=FormattedNetwork(
            recent_requests=[NetworkRequestSummary(url=f"{url}/api")],
            api_endpoints=[f"{url}/api"],
        ),
        interactions=FormattedInteractions(
            focused_elements=[ElementSummary(tag_name="input", text="my email is bob@example.org")]
        ),
    )


# =============================================================================
# Redaction
# =============================================================================


class TestRedactText:
    @pytest.mark.parametrize(
        "text",
        [
            "reach me at jane.doe+news@example.co.uk",
            "card 4111-1111-1111-1111",
            "card 4111111111111111",
            "ssn 123-45-6789",
            "phone (555) 123-4567",
            "phone +1 555 123 4567",
        ],
    )
    def test_pii_is_redacted(self, text):
        redacted = redact_text(text)
        assert REDACTION_MARKER in redacted
        assert not any(ch.isdigit() for ch in redacted.split(" ", 1)[1].replace(REDACTION_MARKER, ""))

    def test_plain_text_untouched(self):
        text = "Order 42 shipped on 2024-05-01"
        assert redact_text(text) == text

    def test_empty(self):
        assert redact_text("") == ""


# =============================================================================
# Exclusion
# =============================================================================


class TestIsExcluded:
    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/login",
            "https://example.com/checkout/step-2",
            "https://example.com/user/account.html",
            "https://example.com/auth_callback",
        ],
    )
    def test_sensitive_paths(self, url):
        assert PrivacyFilter().is_excluded(url) is True

    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/author/jane",
            "https://example.com/accounting-101",
            "https://example.com/orders",
        ],
    )
    def test_lookalike_paths_are_not_excluded(self, url):
        assert PrivacyFilter().is_excluded(url) is False

    def test_excluded_domains_match_subdomains(self):
        privacy = PrivacyFilter(PrivacyConfig(excluded_domains=["bank.com"]))

        assert privacy.is_excluded("https://bank.com/home") is True
        assert privacy.is_excluded("https://online.bank.com/home") is True
        assert privacy.is_excluded("https://notbank.com/home") is False


class TestIsSensitiveField:
    @pytest.mark.parametrize("name", ["password", "cardNumber", "credit_card", "user_pin", "apiKey", "cvv2"])
    def test_sensitive_names(self, name):
        assert PrivacyFilter().is_sensitive_field(FormFieldInfo(name=name)) is True

    @pytest.mark.parametrize("name", ["shipping", "spinner", "monkey", "email", "first_name"])
    def test_innocent_names(self, name):
        assert PrivacyFilter().is_sensitive_field(FormFieldInfo(name=name)) is False

    def test_password_type_is_always_sensitive(self):
        assert PrivacyFilter().is_sensitive_field(FormFieldInfo(name="login", type="password")) is True


# =============================================================================
# Apply
# =============================================================================


class TestApply:
    def test_redacts_free_text_and_field_values(self):
        original = make_formatted()
        filtered = PrivacyFilter().apply(original)

        assert "jane@example.com" not in filtered.summary
        assert "555-123-4567" not in filtered.content.main_content
        assert "4111 1111 1111 1111" not in filtered.content.main_content
        assert "123-45-6789" not in filtered.content.main_content
        assert filtered.content.links[0].text == REDACTION_MARKER
        assert "bob@example.org" not in filtered.interactions.focused_elements[0].text

        card, note, login = filtered.content.forms[0].fields
        assert card.value == REDACTION_MARKER
        assert note.value == f"Leave at door, ring {REDACTION_MARKER}"
        assert login.value == REDACTION_MARKER
        assert filtered.privacy_filtered is False

        # Input untouched
        assert original.content.forms[0].fields[0].value == "4111111111111111"

    def test_redaction_can_be_disabled(self):
        filtered = PrivacyFilter(PrivacyConfig(redact_sensitive_data=False)).apply(make_formatted())
        assert "jane@example.com" in filtered.summary

    def test_excluded_page_is_stripped(self):
        filtered = PrivacyFilter().apply(make_formatted("https://example.com/payment"))

        assert filtered.privacy_filtered is True
        assert filtered.content.main_content == PRIVACY_FILTERED_MARKER
        assert filtered.summary.endswith(PRIVACY_FILTERED_MARKER)
        assert filtered.content.forms == []
        assert filtered.network.recent_requests == []
        assert filtered.network.api_endpoints == []
        assert filtered.interactions.focused_elements == []
