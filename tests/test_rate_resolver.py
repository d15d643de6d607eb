"""Tests for the rate resolver."""

from decimal import Decimal

from billing_engine.calculators import RateResolver
from billing_engine.models import Project, User


class TestRateResolver:
    """Test rate snapshot computation."""

    def test_resolves_amounts_and_margin(self):
        """10h at $75 pay / $150 bill -> 750 / 1500 / 750."""
        snapshot = RateResolver().resolve(Decimal("10"), Decimal("75"), Decimal("150"))

        assert snapshot.consultant_rate == Decimal("75")
        assert snapshot.client_rate == Decimal("150")
        assert snapshot.consultant_amount == Decimal("750.00")
        assert snapshot.client_amount == Decimal("1500.00")
        assert snapshot.margin == Decimal("750.00")

    def test_fractional_hours_keep_exact_product(self):
        snapshot = RateResolver().resolve(Decimal("1.33"), Decimal("33.33"), Decimal("99.99"))

        assert snapshot.consultant_amount == Decimal("44.3289")
        assert snapshot.client_amount == Decimal("132.9867")
        assert snapshot.margin == Decimal("88.6578")

    def test_quarter_hour_is_not_rounded_to_cents(self):
        snapshot = RateResolver().resolve(Decimal("0.25"), Decimal("75.55"), None)

        assert snapshot.consultant_amount == Decimal("18.8875")

    def test_missing_consultant_rate_leaves_amount_and_margin_null(self):
        snapshot = RateResolver().resolve(Decimal("8"), None, Decimal("150"))

        assert snapshot.consultant_amount is None
        assert snapshot.client_amount == Decimal("1200.00")
        assert snapshot.margin is None

    def test_missing_client_rate_leaves_amount_and_margin_null(self):
        snapshot = RateResolver().resolve(Decimal("8"), Decimal("75"), None)

        assert snapshot.consultant_amount == Decimal("600.00")
        assert snapshot.client_amount is None
        assert snapshot.margin is None

    def test_resolve_for_reads_user_and_project_rates(self):
        user = User(name="U", email="u@example.com", billable_rate=Decimal("50"))
        project = Project(name="P", billing_rate=Decimal("90"))

        snapshot = RateResolver().resolve_for(Decimal("2"), user, project)

        assert snapshot.consultant_amount == Decimal("100.00")
        assert snapshot.client_amount == Decimal("180.00")
        assert snapshot.margin == Decimal("80.00")

    def test_as_entry_values(self):
        values = RateResolver().resolve(Decimal("1"), Decimal("10"), Decimal("20")).as_entry_values()

        assert set(values) == {
            "consultant_rate",
            "client_rate",
            "consultant_amount",
            "client_amount",
            "margin",
        }
        assert values["margin"] == Decimal("10.00")
