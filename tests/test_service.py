"""
SpendWatch DZD - Media Buying Service Tests.

End-to-end tests for MediaBuyingService over a temporary SQLite database.
"""

import logging
import sqlite3
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import pytest

from spendwatch.config import AppConfig
from spendwatch.errors import DuplicateBudgetError, NotFoundError, ValidationError
from spendwatch.repository import SpendRepository, new_id
from spendwatch.schema import AlertType, Currency, EntryFilter, Order
from spendwatch.service import MediaBuyingService
from spendwatch.validator import DataValidator

NOW = datetime(2024, 10, 18, 15, 0)


def make_service(tmp_path: Path) -> MediaBuyingService:
    return MediaBuyingService(SpendRepository(tmp_path / "service.db"), AppConfig())


class TestEntryFlow:
    """Entry creation, editing and listing."""

    def test_usd_entry_over_budget_scenario(self, tmp_path) -> None:
        """Verify $1000 at 140 against a 100,000 DZD budget end to end."""
        service = make_service(tmp_path)
        facebook = service.create_source("Facebook Ads", "facebook")
        service.create_budget(10, 2024, Decimal("100000"), source_id=facebook.id)

        entry = service.create_entry(
            datetime(2024, 10, 3, 10, 0), facebook.id, Decimal("1000"), 42,
            Currency.USD, exchange_rate=Decimal("140"), now=NOW,
        )

        assert entry.spend_in_dzd == Decimal("140000")
        status = service.get_budget_status(10, 2024, NOW)[0]
        assert status.current_spend == Decimal("140000")
        assert status.spend_percentage == Decimal("140")
        assert status.is_over_budget is True
        assert status.source_name == "Facebook Ads"

        alerts = service.get_alerts()
        assert len(alerts) == 1
        assert alerts[0].alert_type == AlertType.BUDGET_EXCEEDED
        assert alerts[0].threshold == Decimal("100")
        assert alerts[0].current_spend == Decimal("140000")

    def test_usd_entry_without_rate_is_underived(self, tmp_path) -> None:
        """Verify a USD entry without a rate stores no DZD spend."""
        service = make_service(tmp_path)
        src = service.create_source("Google Ads", "google")

        entry = service.create_entry(
            datetime(2024, 10, 3), src.id, Decimal("50"), 2, Currency.USD, now=NOW
        )

        assert service.get_entry(entry.id).spend_in_dzd is None

    def test_negative_spend_rejected(self, tmp_path) -> None:
        """Verify negative spend is a validation error."""
        service = make_service(tmp_path)
        src = service.create_source("Google Ads", "google")

        with pytest.raises(ValidationError):
            service.create_entry(datetime(2024, 10, 3), src.id, Decimal("-1"), 0, Currency.DZD)

    def test_unknown_source_rejected(self, tmp_path) -> None:
        """Verify entries need an existing source."""
        with pytest.raises(NotFoundError):
            make_service(tmp_path).create_entry(
                datetime(2024, 10, 3), "missing", Decimal("10"), 1, Currency.DZD
            )

    def test_alert_failure_keeps_entry(self, tmp_path, monkeypatch, caplog) -> None:
        """Verify a failing alert check is logged and the entry survives."""
        service = make_service(tmp_path)
        src = service.create_source("Facebook Ads", "facebook")

        def broken(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(service._alerts, "check_budget_alerts", broken)

        with caplog.at_level(logging.ERROR, logger="spendwatch.service"):
            entry = service.create_entry(
                datetime(2024, 10, 3), src.id, Decimal("10"), 1, Currency.DZD, now=NOW
            )

        assert service.get_entry(entry.id).total_spend == Decimal("10")
        assert "Budget alert check failed" in caplog.text

    def test_update_rederives_spend_in_dzd(self, tmp_path) -> None:
        """Verify editing spend or rate re-derives the DZD spend."""
        service = make_service(tmp_path)
        src = service.create_source("Facebook Ads", "facebook")
        entry = service.create_entry(
            datetime(2024, 10, 3), src.id, Decimal("100"), 1, Currency.USD,
            exchange_rate=Decimal("140"), now=NOW,
        )

        updated = service.update_entry(entry.id, total_spend=Decimal("200"))

        assert updated.spend_in_dzd == Decimal("28000")
        assert service.get_entry(entry.id).spend_in_dzd == Decimal("28000")

    def test_update_rejects_unknown_field(self, tmp_path) -> None:
        """Verify only editable fields can be changed."""
        service = make_service(tmp_path)
        src = service.create_source("Facebook Ads", "facebook")
        entry = service.create_entry(datetime(2024, 10, 3), src.id, Decimal("1"), 1, Currency.DZD)

        with pytest.raises(ValidationError):
            service.update_entry(entry.id, id="other")

    def test_delete_missing_entry(self, tmp_path) -> None:
        """Verify deleting an unknown entry raises NotFoundError."""
        with pytest.raises(NotFoundError):
            make_service(tmp_path).delete_entry("missing")

    def test_paginated_listing(self, tmp_path) -> None:
        """Verify page metadata of the entry listing."""
        service = make_service(tmp_path)
        src = service.create_source("Facebook Ads", "facebook")
        for day in range(1, 6):
            service.create_entry(datetime(2024, 10, day), src.id, Decimal("10"), 1, Currency.DZD)

        page = service.get_entries(EntryFilter(page=3, limit=2))

        assert page.total == 5
        assert page.total_pages == 3
        assert [e.date.day for e in page.entries] == [1]


class TestBudgetFlow:
    """Budget creation and status."""

    def test_missing_amount_rejected(self, tmp_path) -> None:
        """Verify a budget without an amount is rejected."""
        with pytest.raises(ValidationError):
            make_service(tmp_path).create_budget(10, 2024, None)

    def test_zero_amount_rejected(self, tmp_path) -> None:
        """Verify a zero budget is rejected before it can divide by zero."""
        with pytest.raises(ValidationError):
            make_service(tmp_path).create_budget(10, 2024, Decimal("0"))

    def test_duplicate_global_budget(self, tmp_path) -> None:
        """Verify one global budget per month."""
        service = make_service(tmp_path)
        service.create_budget(10, 2024, Decimal("100000"))

        with pytest.raises(DuplicateBudgetError):
            service.create_budget(10, 2024, Decimal("50000"))

    def test_usd_budget_uses_given_rate(self, tmp_path) -> None:
        """Verify a USD budget is stored in DZD with the given rate."""
        budget = make_service(tmp_path).create_budget(
            10, 2024, Decimal("1000"), currency=Currency.USD, exchange_rate=Decimal("150")
        )

        assert budget.budget_amount == Decimal("150000")
        assert budget.currency == Currency.USD

    def test_usd_budget_uses_latest_recorded_rate(self, tmp_path) -> None:
        """Verify the latest recorded rate is used when none is given."""
        service = make_service(tmp_path)
        service.create_exchange_rate(Decimal("135"), datetime(2024, 9, 1))
        service.create_exchange_rate(Decimal("142"), datetime(2024, 10, 1))

        budget = service.create_budget(10, 2024, Decimal("1000"), currency="USD")

        assert budget.budget_amount == Decimal("142000")

    def test_usd_budget_falls_back_to_default_rate(self, tmp_path) -> None:
        """Verify the configured default rate applies without recorded rates."""
        budget = make_service(tmp_path).create_budget(
            10, 2024, Decimal("1000"), currency=Currency.USD
        )

        assert budget.budget_amount == Decimal("140000")

    def test_default_threshold_from_config(self, tmp_path) -> None:
        """Verify budgets default to the configured alert threshold."""
        config = AppConfig()
        config.budgets.alert_threshold = Decimal("75")
        service = MediaBuyingService(SpendRepository(tmp_path / "t.db"), config)

        assert service.create_budget(10, 2024, Decimal("1000")).alert_threshold == Decimal("75")

    def test_status_defaults_to_current_month(self, tmp_path) -> None:
        """Verify the status month defaults to the month of now."""
        service = make_service(tmp_path)
        service.create_budget(10, 2024, Decimal("1000"))
        service.create_budget(9, 2024, Decimal("1000"))

        statuses = service.get_budget_status(now=NOW)

        assert [(s.month, s.year) for s in statuses] == [(10, 2024)]
        assert statuses[0].source_name is None

    def test_status_month_zero_rejected(self, tmp_path) -> None:
        """Verify month 0 is refused rather than read as the current month."""
        with pytest.raises(ValidationError, match="Month"):
            make_service(tmp_path).get_budget_status(0, 2024, NOW)


class TestAlertsAndConversions:
    """Alert reading and lead conversions."""

    def test_mark_alert_as_read(self, tmp_path) -> None:
        """Verify reading an alert records who and when."""
        service = make_service(tmp_path)
        src = service.create_source("Facebook Ads", "facebook")
        service.create_budget(10, 2024, Decimal("100"), source_id=src.id)
        service.create_entry(datetime(2024, 10, 3), src.id, Decimal("150"), 1, Currency.DZD, now=NOW)
        alert = service.get_alerts(unread_only=True)[0]

        read = service.mark_alert_as_read(alert.id, "user-7", NOW)

        assert read.is_read is True
        assert read.read_by_id == "user-7"
        assert service.get_alerts(unread_only=True) == []

    def test_link_lead_snapshots_order_total(self, tmp_path) -> None:
        """Verify a conversion keeps the order total at link time."""
        service = make_service(tmp_path)
        src = service.create_source("Facebook Ads", "facebook")
        entry = service.create_entry(datetime(2024, 10, 3), src.id, Decimal("1000"), 10, Currency.DZD)
        order = service.repository.add_order(Order(id=new_id(), reference="CMD-001", total=Decimal("4500")))

        conversion = service.link_lead_to_order(entry.id, order.id, now=NOW)

        assert conversion.order_value == Decimal("4500")
        assert conversion.attribution_type == "direct"
        assert len(service.get_conversions(entry.id)) == 1

        service.unlink_lead_from_order(conversion.id)
        assert service.get_conversions(entry.id) == []

    def test_link_unknown_order(self, tmp_path) -> None:
        """Verify linking to an unknown order raises NotFoundError."""
        service = make_service(tmp_path)
        src = service.create_source("Facebook Ads", "facebook")
        entry = service.create_entry(datetime(2024, 10, 3), src.id, Decimal("1"), 1, Currency.DZD)

        with pytest.raises(NotFoundError):
            service.link_lead_to_order(entry.id, "missing")


class TestExchangeRates:
    """Recorded rates and their effect on stored entries."""

    def test_new_rate_does_not_rewrite_entries(self, tmp_path) -> None:
        """Verify recording a rate leaves earlier DZD spend untouched."""
        service = make_service(tmp_path)
        src = service.create_source("Facebook Ads", "facebook")
        with_rate = service.create_entry(
            datetime(2024, 10, 3), src.id, Decimal("100"), 2,
            Currency.USD, exchange_rate=Decimal("140"), now=NOW,
        )
        without_rate = service.create_entry(
            datetime(2024, 10, 3), src.id, Decimal("50"), 1, Currency.USD, now=NOW
        )

        service.create_exchange_rate(Decimal("150"), datetime(2024, 10, 10))

        assert service.get_entry(with_rate.id).spend_in_dzd == Decimal("14000")
        assert service.get_entry(without_rate.id).spend_in_dzd is None

    def test_latest_rate_and_history(self, tmp_path) -> None:
        """Verify rates are listed newest first and the latest is by effective date."""
        service = make_service(tmp_path)
        service.create_exchange_rate(Decimal("138"), datetime(2024, 9, 1))
        service.create_exchange_rate(Decimal("141.5"), datetime(2024, 10, 1), created_by_id="u1")

        latest = service.get_latest_exchange_rate()

        assert latest.rate == Decimal("141.5")
        assert latest.created_by_id == "u1"
        assert [r.rate for r in service.get_exchange_rates()] == [Decimal("141.5"), Decimal("138")]
        assert service.get_latest_exchange_rate("EUR", "DZD") is None

    def test_non_positive_rate_rejected(self, tmp_path) -> None:
        """Verify a zero rate is refused."""
        with pytest.raises(ValidationError):
            make_service(tmp_path).create_exchange_rate(Decimal("0"), datetime(2024, 10, 1))


class TestDashboardFlow:
    """Dashboard and analytics over stored entries."""

    def _seed(self, tmp_path: Path) -> MediaBuyingService:
        service = make_service(tmp_path)
        self.facebook = service.create_source("Facebook Ads", "facebook", color="#1877F2")
        self.tiktok = service.create_source("TikTok Ads", "tiktok")
        service.create_entry(datetime(2024, 10, 1, 9, 0), self.facebook.id, Decimal("500"), 5, Currency.DZD)
        service.create_entry(datetime(2024, 10, 2, 9, 0), self.facebook.id, Decimal("300"), 3, Currency.DZD)
        service.create_entry(datetime(2024, 10, 2, 11, 0), self.tiktok.id, Decimal("10"), 1,
                             Currency.USD, exchange_rate=Decimal("140"))
        service.create_entry(datetime(2024, 9, 15, 9, 0), self.facebook.id, Decimal("400"), 8, Currency.DZD)
        return service

    def test_dashboard_month_to_date(self, tmp_path) -> None:
        """Verify default range, daily trend and comparison with September."""
        service = self._seed(tmp_path)

        stats = service.get_dashboard_stats(now=NOW)

        assert stats.total_spend_in_dzd == Decimal("2200")
        assert stats.total_leads_month == 9
        assert [p.date for p in stats.daily_trend] == ["2024-10-01", "2024-10-02"]
        assert stats.best_performing_source.id == self.facebook.id
        assert stats.period_comparison.previous_leads == 8

    def test_dashboard_two_day_trend(self, tmp_path) -> None:
        """Verify two DZD entries of 500 and 300 give a trend summing to 800."""
        service = make_service(tmp_path)
        src = service.create_source("Facebook Ads", "facebook")
        service.create_entry(datetime(2024, 10, 1, 9, 0), src.id, Decimal("500"), 5, Currency.DZD)
        service.create_entry(datetime(2024, 10, 2, 9, 0), src.id, Decimal("300"), 3, Currency.DZD)

        trend = service.get_dashboard_stats(date(2024, 10, 1), date(2024, 10, 2), NOW).daily_trend

        assert [p.date for p in trend] == ["2024-10-01", "2024-10-02"]
        assert sum(p.spend for p in trend) == Decimal("800")

    def test_dashboard_on_first_of_month(self, tmp_path) -> None:
        """Verify the one-day default range on the 1st compares with the day before."""
        service = make_service(tmp_path)
        src = service.create_source("Facebook Ads", "facebook")
        service.create_entry(datetime(2024, 10, 31, 9, 0), src.id, Decimal("400"), 4, Currency.DZD)
        service.create_entry(datetime(2024, 11, 1, 9, 0), src.id, Decimal("600"), 6, Currency.DZD)

        stats = service.get_dashboard_stats(now=datetime(2024, 11, 1, 12, 0))

        assert stats.total_spend_in_dzd == Decimal("600")
        assert stats.period_comparison.previous_spend == Decimal("400")
        assert stats.period_comparison.previous_leads == 4
        assert stats.period_comparison.spend_change == Decimal("50")

    def test_dashboard_single_day_range(self, tmp_path) -> None:
        """Verify an explicit one-day range builds a dashboard."""
        service = self._seed(tmp_path)

        stats = service.get_dashboard_stats(date(2024, 10, 2), date(2024, 10, 2), NOW)

        assert stats.total_leads_month == 4
        assert stats.period_comparison.previous_leads == 5

    def test_inverted_range_rejected(self, tmp_path) -> None:
        """Verify an end before the start is a validation error."""
        with pytest.raises(ValidationError):
            make_service(tmp_path).get_dashboard_stats(date(2024, 10, 5), date(2024, 10, 1), NOW)

    def test_analytics_by_source_sorted_by_dzd(self, tmp_path) -> None:
        """Verify sources are ordered by DZD spend, highest first."""
        service = self._seed(tmp_path)

        analytics = service.get_analytics_by_source(now=NOW)

        assert [a.source_id for a in analytics] == [self.tiktok.id, self.facebook.id]
        assert analytics[0].total_spend_in_dzd == Decimal("1400")
        assert analytics[1].average_cpl == Decimal("100")

    def test_conversion_analytics(self, tmp_path) -> None:
        """Verify conversion totals over the default range."""
        service = self._seed(tmp_path)
        entry = service.get_entries(EntryFilter(source_id=self.tiktok.id)).entries[0]
        order = service.repository.add_order(Order(id=new_id(), reference="CMD-9", total=Decimal("9000")))
        service.link_lead_to_order(entry.id, order.id, now=NOW)

        result = service.get_conversion_analytics(now=NOW)

        assert result.total_conversions == 1
        assert result.total_order_value == Decimal("9000")
        assert result.revenue_per_lead == Decimal("1000")


class TestImport:
    """CSV import through the service."""

    def test_import_resolves_source_by_slug_or_name(self, tmp_path) -> None:
        """Verify imported rows map onto registered sources."""
        service = make_service(tmp_path)
        facebook = service.create_source("Facebook Ads", "facebook")
        rows = [
            {"Date": "2024-10-01", "Source": "facebook", "Total_Spend": "$120.50",
             "Currency": "USD", "Total_Leads": "12", "Exchange_Rate": "140"},
            {"Date": "2024-10-02", "Source": "Facebook Ads", "Total_Spend": "16 500 DA",
             "Currency": "DZD", "Total_Leads": "9"},
        ]
        result = DataValidator().validate_rows(rows)

        stored = service.import_entries(result.entries, created_by_id="user-1", now=NOW)

        assert [e.source_id for e in stored] == [facebook.id, facebook.id]
        assert stored[0].spend_in_dzd == Decimal("16870.00")
        assert stored[1].spend_in_dzd == Decimal("16500.00")

    def test_import_unknown_source(self, tmp_path) -> None:
        """Verify an unknown source name stops the import."""
        service = make_service(tmp_path)
        result = DataValidator().validate_rows([
            {"Date": "2024-10-01", "Source": "snapchat", "Total_Spend": "10",
             "Currency": "DZD", "Total_Leads": "1"},
        ])

        with pytest.raises(NotFoundError):
            service.import_entries(result.entries)

    def test_import_with_unknown_source_stores_nothing(self, tmp_path) -> None:
        """Verify a bad row later in the file leaves no earlier rows behind."""
        service = make_service(tmp_path)
        service.create_source("Facebook Ads", "facebook")
        result = DataValidator().validate_rows([
            {"Date": "2024-10-01", "Source": "facebook", "Total_Spend": "10",
             "Currency": "DZD", "Total_Leads": "1"},
            {"Date": "2024-10-02", "Source": "unknown", "Total_Spend": "20",
             "Currency": "DZD", "Total_Leads": "2"},
        ])

        with pytest.raises(NotFoundError):
            service.import_entries(result.entries, now=NOW)

        assert service.repository.count_entries(EntryFilter()) == 0
