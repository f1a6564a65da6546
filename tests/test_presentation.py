"""
Unit tests for money presentation and email template variables.
"""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from quote_engine.core.discount import PercentageDiscount
from quote_engine.core.presentation import (
    build_template_variables,
    format_money,
    minor_units,
    round_money,
)
from quote_engine.core.pricing import new_quote
from quote_engine.storage.models import LineItem, QuoteStatus, QuoteTerms


class TestMinorUnits:
    """Test currency precision lookup."""

    @pytest.mark.parametrize("currency", ["USD", "EUR", "GBP", "usd"])
    def test_two_decimal_currencies(self, currency):
        """Verify common currencies use two decimals."""
        assert minor_units(currency) == 2

    @pytest.mark.parametrize("currency", ["JPY", "KRW", "VND", "CLP"])
    def test_zero_decimal_currencies(self, currency):
        """Verify currencies without a minor unit use zero decimals."""
        assert minor_units(currency) == 0

    def test_override(self):
        """Verify configured overrides win."""
        assert minor_units("KWD", {"KWD": 3}) == 3


class TestRounding:
    """Test presentation rounding."""

    def test_round_half_up(self):
        """Verify halves round away from zero."""
        assert round_money(Decimal("807.505"), "USD") == Decimal("807.51")
        assert round_money(Decimal("-0.005"), "USD") == Decimal("-0.01")

    def test_zero_decimal_rounding(self):
        """Verify zero-decimal currencies round to whole units."""
        assert round_money(Decimal("1249.5"), "JPY") == Decimal("1250")

    def test_sum_then_round(self):
        """Verify rounding the sum differs from summing rounded parts."""
        parts = [Decimal("0.004")] * 3
        assert round_money(sum(parts), "USD") == Decimal("0.01")
        assert sum(round_money(p, "USD") for p in parts) == Decimal("0.00")


class TestFormatMoney:
    """Test display formatting."""

    def test_usd(self):
        """Verify dollars with thousands separator."""
        assert format_money(Decimal("10307.5"), "USD") == "$10,307.50"

    def test_jpy(self):
        """Verify yen without decimals."""
        assert format_money(Decimal("1250"), "JPY") == "¥1,250"

    def test_negative(self):
        """Verify sign precedes the symbol."""
        assert format_money(Decimal("-5"), "EUR") == "-€5.00"

    def test_unknown_symbol_uses_code(self):
        """Verify unknown currencies fall back to their code."""
        assert format_money(Decimal("1250"), "CHF") == "CHF 1,250.00"


class TestTemplateVariables:
    """Test email template variables."""

    def make_quote(self, currency="USD"):
        item = LineItem(
            id="li_1",
            quantity=2,
            unit_price=Decimal("5000"),
            discount=PercentageDiscount(Decimal("5")),
            tax_rate=Decimal("8.5"),
        )
        quote = new_quote(
            "q_1", "QT-ABC123",
            datetime(2026, 2, 5, 9, 0, tzinfo=timezone.utc),
            line_items=[item],
            shipping_total=Decimal("25"),
            terms=QuoteTerms(currency=currency),
            expires_at=datetime(2026, 3, 5, 9, 0, tzinfo=timezone.utc),
        )
        return replace(quote, status=QuoteStatus.SENT)

    def test_variables_from_quote(self):
        """Verify totals and dates are formatted from the quote."""
        variables = build_template_variables(
            self.make_quote(),
            customer_name="John Smith",
            customer_email="john@example.com",
            company_name="Acme Corporation",
            shop_name="Acme Store",
            quote_url="https://quotes.example.com/view/abc123",
        )
        assert variables["quoteNumber"] == "QT-ABC123"
        assert variables["quoteTotal"] == "$10,332.50"
        assert variables["quoteSubtotal"] == "$10,000.00"
        assert variables["quoteDiscount"] == "$500.00"
        assert variables["quoteTax"] == "$807.50"
        assert variables["quoteShipping"] == "$25.00"
        assert variables["quoteDate"] == "February 5, 2026"
        assert variables["validUntil"] == "March 5, 2026"
        assert variables["expiresAt"] == "March 5, 2026"
        assert variables["quoteStatus"] == "Sent"
        assert variables["customerName"] == "John Smith"
        assert variables["shopName"] == "Acme Store"

    def test_missing_optional_values_blank(self):
        """Verify optional values default to empty strings."""
        quote = replace(self.make_quote(), expires_at=None)
        variables = build_template_variables(quote)
        assert variables["customerName"] == ""
        assert variables["validUntil"] == ""

    def test_quote_currency_used(self):
        """Verify the quote's currency selects formatting."""
        variables = build_template_variables(self.make_quote(currency="JPY"))
        assert variables["quoteTotal"] == "¥10,333"
