"""
SpendWatch DZD - Dashboard Analytics Tests.

Unit and property-based tests for AnalyticsAggregator.
"""

from datetime import datetime
from decimal import Decimal

from hypothesis import given, settings
from hypothesis.strategies import composite, integers, sampled_from

from spendwatch.analytics import AnalyticsAggregator, percentage_change, safe_ratio
from spendwatch.currency import compute_spend_in_dzd
from spendwatch.schema import AdSource, Currency, LeadConversion, MediaBuyingEntry

NOW = datetime(2024, 10, 18, 15, 0)

SOURCES = {
    "fb": AdSource(id="fb", name="Facebook Ads", slug="facebook", color="#1877F2"),
    "tt": AdSource(id="tt", name="TikTok Ads", slug="tiktok"),
}


def make_entry(
    entry_id: str,
    source_id: str,
    spend: str,
    leads: int,
    when: datetime,
    currency: Currency = Currency.DZD,
    rate: str = None
) -> MediaBuyingEntry:
    total = Decimal(spend)
    exchange_rate = Decimal(rate) if rate else None
    return MediaBuyingEntry(
        id=entry_id,
        date=when,
        source_id=source_id,
        total_spend=total,
        total_leads=leads,
        currency=currency,
        exchange_rate=exchange_rate,
        spend_in_dzd=compute_spend_in_dzd(total, currency, exchange_rate),
    )


@composite
def dzd_entries(draw):
    """Generate lists of DZD entries spread over October 2024."""
    count = draw(integers(min_value=0, max_value=15))
    entries = []
    for i in range(count):
        day = draw(integers(min_value=1, max_value=18))
        spend = draw(integers(min_value=0, max_value=100000))
        leads = draw(integers(min_value=0, max_value=500))
        entries.append(make_entry(
            f"e{i}", draw(sampled_from(["fb", "tt"])), str(spend), leads, datetime(2024, 10, day, 10, 0)
        ))
    return entries


class TestHelpersUnit:
    """Unit tests for the zero-safe helpers."""

    def test_safe_ratio_zero_denominator(self) -> None:
        """Verify division by zero yields 0."""
        assert safe_ratio(Decimal("100"), 0) == Decimal("0")

    def test_percentage_change_zero_previous(self) -> None:
        """Verify a zero previous value yields 0 change."""
        assert percentage_change(Decimal("500"), Decimal("0")) == Decimal("0")

    def test_percentage_change(self) -> None:
        """Verify a doubling is +100%."""
        assert percentage_change(Decimal("200"), Decimal("100")) == Decimal("100")


class TestAnalyticsAggregatorUnit:
    """Unit tests for dashboard aggregation."""

    def setup_method(self) -> None:
        """Initialise the aggregator for each test."""
        self.aggregator = AnalyticsAggregator()

    def test_best_performer_lowest_cpl(self) -> None:
        """Verify A (1000/10 = 100) beats B (1000/5 = 200)."""
        entries = [
            make_entry("1", "fb", "1000", 10, NOW),
            make_entry("2", "tt", "1000", 5, NOW),
        ]

        rollups = self.aggregator.spend_by_source(entries, SOURCES)
        best = self.aggregator.best_performing_source(rollups)

        assert best.id == "fb"
        assert best.name == "Facebook Ads"
        assert best.cpl == Decimal("100")

    def test_best_performer_tie_keeps_first(self) -> None:
        """Verify the first source scanned wins a CPL tie."""
        entries = [
            make_entry("1", "tt", "500", 5, NOW),
            make_entry("2", "fb", "1000", 10, NOW),
        ]

        best = self.aggregator.best_performing_source(
            self.aggregator.spend_by_source(entries, SOURCES)
        )

        assert best.id == "tt"

    def test_best_performer_none_without_leads(self) -> None:
        """Verify no best performer when no source has leads."""
        entries = [make_entry("1", "fb", "1000", 0, NOW)]

        assert self.aggregator.best_performing_source(
            self.aggregator.spend_by_source(entries, SOURCES)
        ) is None

    def test_daily_trend_two_days(self) -> None:
        """Verify two DZD entries on different days give two ascending points."""
        entries = [
            make_entry("2", "fb", "300", 3, datetime(2024, 10, 2, 9, 0)),
            make_entry("1", "fb", "500", 5, datetime(2024, 10, 1, 9, 0)),
        ]

        trend = self.aggregator.daily_trend(entries)

        assert [p.date for p in trend] == ["2024-10-01", "2024-10-02"]
        assert [p.spend for p in trend] == [Decimal("500"), Decimal("300")]
        assert sum(p.spend for p in trend) == Decimal("800")
        assert trend[0].cpl == Decimal("100")

    def test_spend_by_source_shares(self) -> None:
        """Verify shares use DZD spend and follow first occurrence order."""
        entries = [
            make_entry("1", "tt", "250", 1, NOW),
            make_entry("2", "fb", "5", 1, NOW, Currency.USD, "150"),
        ]

        rollups = self.aggregator.spend_by_source(entries, SOURCES)

        assert [r.source_id for r in rollups] == ["tt", "fb"]
        assert rollups[0].percentage == Decimal("25")
        assert rollups[1].spend_in_dzd == Decimal("750")
        assert rollups[0].source_color == "#6B7280"

    def test_dashboard_buckets(self) -> None:
        """Verify today, week and range totals."""
        entries = [
            make_entry("1", "fb", "100", 1, datetime(2024, 10, 18, 8, 0)),
            make_entry("2", "fb", "200", 2, datetime(2024, 10, 12, 8, 0)),
            make_entry("3", "tt", "400", 4, datetime(2024, 10, 2, 8, 0)),
        ]

        stats = self.aggregator.dashboard_stats(entries, SOURCES, NOW, conversions=7)

        assert stats.total_spend_today == Decimal("100")
        assert stats.total_spend_week == Decimal("300")
        assert stats.total_spend_month == Decimal("700")
        assert stats.total_leads_today == 1
        assert stats.total_leads_week == 3
        assert stats.total_leads_month == 7
        assert stats.average_cpl == Decimal("100")
        assert stats.conversion_rate == Decimal("100")
        assert stats.total_conversions == 7
        assert stats.period_comparison is None

    def test_dashboard_without_leads_has_zero_ratios(self) -> None:
        """Verify ratios are 0 when nothing generated leads."""
        stats = self.aggregator.dashboard_stats([], SOURCES, NOW, conversions=3)

        assert stats.average_cpl == Decimal("0")
        assert stats.conversion_rate == Decimal("0")
        assert stats.best_performing_source is None
        assert stats.daily_trend == []

    def test_recent_entries_newest_five(self) -> None:
        """Verify only the five newest entries are listed."""
        entries = [
            make_entry(str(day), "fb", "10", 1, datetime(2024, 10, day, 8, 0))
            for day in range(1, 9)
        ]

        recent = self.aggregator.dashboard_stats(entries, SOURCES, NOW).recent_entries

        assert [r.id for r in recent] == ["8", "7", "6", "5", "4"]

    def test_period_comparison(self) -> None:
        """Verify deltas against the previous window."""
        current = [make_entry("1", "fb", "1500", 10, NOW)]
        previous = [make_entry("0", "fb", "1000", 10, datetime(2024, 9, 18, 8, 0))]

        comparison = self.aggregator.period_comparison(current, previous)

        assert comparison.previous_spend == Decimal("1000")
        assert comparison.spend_change == Decimal("50")
        assert comparison.leads_change == Decimal("0")
        assert comparison.cpl_change == Decimal("50")

    def test_period_comparison_empty_previous(self) -> None:
        """Verify an empty previous window yields zero deltas."""
        comparison = self.aggregator.period_comparison(
            [make_entry("1", "fb", "1500", 10, NOW)], []
        )

        assert comparison.spend_change == Decimal("0")
        assert comparison.leads_change == Decimal("0")
        assert comparison.cpl_change == Decimal("0")

    def test_source_analytics(self) -> None:
        """Verify per-source analytics."""
        entries = [
            make_entry("1", "fb", "600", 6, datetime(2024, 10, 1, 8, 0)),
            make_entry("2", "fb", "400", 4, datetime(2024, 10, 2, 8, 0)),
        ]

        analytics = self.aggregator.source_analytics(
            SOURCES["fb"], entries, conversions=2, total_spend_in_dzd=Decimal("4000")
        )

        assert analytics.total_spend_in_dzd == Decimal("1000")
        assert analytics.average_cpl == Decimal("100")
        assert analytics.conversion_rate == Decimal("20")
        assert analytics.entries == 2
        assert analytics.percentage_of_total == Decimal("25")
        assert [p.date for p in analytics.trend] == ["2024-10-01", "2024-10-02"]

    def test_conversion_analytics(self) -> None:
        """Verify conversion totals and per-source breakdown."""
        entries = [
            make_entry("1", "fb", "600", 10, NOW),
            make_entry("2", "tt", "400", 10, NOW),
        ]
        conversions = [
            LeadConversion("c1", "1", "o1", NOW, Decimal("3000")),
            LeadConversion("c2", "1", "o2", NOW, Decimal("1000")),
            LeadConversion("c3", "unknown", "o3", NOW, Decimal("9999")),
        ]

        result = self.aggregator.conversion_analytics(entries, conversions, SOURCES)

        assert result.total_leads == 20
        assert result.total_conversions == 2
        assert result.conversion_rate == Decimal("10")
        assert result.total_order_value == Decimal("4000")
        assert result.average_order_value == Decimal("2000")
        assert result.revenue_per_lead == Decimal("200")
        assert [s.conversions for s in result.by_source] == [2, 0]


class TestAnalyticsAggregatorProperty:
    """Property-based tests for dashboard totals."""

    def setup_method(self) -> None:
        self.aggregator = AnalyticsAggregator()

    @given(dzd_entries())
    @settings(max_examples=100)
    def test_source_and_trend_totals_match_range_total(self, entries) -> None:
        """
        Property: per-source and per-day DZD totals both sum to the range total.
        """
        stats = self.aggregator.dashboard_stats(entries, SOURCES, NOW)

        assert sum((s.spend_in_dzd for s in stats.spend_by_source), Decimal("0")) \
            == stats.total_spend_in_dzd
        assert sum((p.spend_in_dzd for p in stats.daily_trend), Decimal("0")) \
            == stats.total_spend_in_dzd
        assert stats.total_leads_today <= stats.total_leads_week <= stats.total_leads_month
