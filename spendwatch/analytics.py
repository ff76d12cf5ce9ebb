"""
SpendWatch DZD - Dashboard Analytics Module.

This module aggregates spend entries into dashboard figures: period
buckets, per-source rollups, the best performing source, a daily trend
and period-over-period deltas. It is pure computation over entries the
caller already fetched; the reference time is always passed in.

Division by zero never raises: cost per lead, conversion rate, shares
and deltas fall back to zero.

Classes:
    AnalyticsAggregator: Builds DashboardStats and per-source analytics.
"""

from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from spendwatch.calculator import BudgetStatusCalculator
from spendwatch.date_logic import DateManager
from spendwatch.schema import (
    DEFAULT_SOURCE_COLOR,
    HUNDRED,
    ZERO,
    AdSource,
    BestPerformer,
    ConversionAnalytics,
    DailyTrendPoint,
    DashboardStats,
    LeadConversion,
    MediaBuyingEntry,
    PeriodComparison,
    RecentEntry,
    SourceAnalytics,
    SourceConversions,
    SourceSpend,
    SourceTrendPoint,
)


def safe_ratio(numerator: Decimal, denominator) -> Decimal:
    """Returns numerator / denominator, or 0 when the denominator is 0."""
    if not denominator:
        return ZERO
    return Decimal(numerator) / Decimal(denominator)


def percentage_change(current, previous) -> Decimal:
    """
    Returns the percentage change from previous to current.

    A previous value of zero yields 0 rather than an infinite change.
    """
    if not previous:
        return ZERO
    return (Decimal(current) - Decimal(previous)) / Decimal(previous) * HUNDRED


class AnalyticsAggregator:
    """
    Aggregates media-buying entries for dashboards and reports.

    Attributes:
        date_manager: DateManager for day and week boundaries.
        recent_count: Number of entries in the dashboard feed.

    Example:
        >>> aggregator = AnalyticsAggregator()
        >>> stats = aggregator.dashboard_stats(entries, sources, now)
        >>> stats.best_performing_source.name
        'Facebook Ads'
    """

    def __init__(
        self,
        date_manager: Optional[DateManager] = None,
        recent_count: int = 5
    ):
        self._date_manager = date_manager or DateManager()
        self._calculator = BudgetStatusCalculator(self._date_manager)
        self._recent_count = recent_count

    # Bucket totals

    def sum_spend(self, entries: Iterable[MediaBuyingEntry]) -> Decimal:
        """Sums native total_spend."""
        return sum((e.total_spend for e in entries), ZERO)

    def sum_leads(self, entries: Iterable[MediaBuyingEntry]) -> int:
        """Sums total_leads."""
        return sum(e.total_leads for e in entries)

    def bucket_totals(
        self,
        entries: Sequence[MediaBuyingEntry],
        since: datetime
    ) -> Tuple[Decimal, int]:
        """
        Sums spend and leads of entries dated on or after ``since``.

        Args:
            entries: Candidate entries.
            since: Inclusive lower bound.

        Returns:
            Tuple of (native spend, leads).
        """
        bucket = [e for e in entries if e.date >= since]
        return self.sum_spend(bucket), self.sum_leads(bucket)

    # Per-source rollup

    def spend_by_source(
        self,
        entries: Sequence[MediaBuyingEntry],
        sources: Mapping[str, AdSource]
    ) -> List[SourceSpend]:
        """
        Groups entries by source and computes each source's DZD share.

        Sources appear in order of first occurrence in ``entries``.

        Args:
            entries: Entries of the range.
            sources: Known sources by id, for names and colours.

        Returns:
            One SourceSpend per source present in the entries.
        """
        groups: "OrderedDict[str, List[MediaBuyingEntry]]" = OrderedDict()
        for entry in entries:
            groups.setdefault(entry.source_id, []).append(entry)

        total_dzd = self._calculator.calculate_current_spend(entries)

        rollups: List[SourceSpend] = []
        for source_id, group in groups.items():
            spend_in_dzd = self._calculator.calculate_current_spend(group)
            name, color = self._describe_source(source_id, sources)
            rollups.append(SourceSpend(
                source_id=source_id,
                source_name=name,
                source_color=color,
                spend=self.sum_spend(group),
                spend_in_dzd=spend_in_dzd,
                leads=self.sum_leads(group),
                percentage=safe_ratio(spend_in_dzd, total_dzd) * HUNDRED,
            ))
        return rollups

    def best_performing_source(
        self,
        rollups: Sequence[SourceSpend]
    ) -> Optional[BestPerformer]:
        """
        Picks the source with the lowest DZD cost per lead.

        Sources without leads are ignored. On equal CPL the first source
        scanned wins.

        Args:
            rollups: Per-source rollups.

        Returns:
            BestPerformer, or None when no source has leads.
        """
        best: Optional[SourceSpend] = None
        best_cpl = ZERO
        for rollup in rollups:
            if rollup.leads <= 0:
                continue
            cpl = rollup.spend_in_dzd / rollup.leads
            if best is None or cpl < best_cpl:
                best, best_cpl = rollup, cpl

        if best is None:
            return None

        return BestPerformer(
            id=best.source_id,
            name=best.source_name,
            leads=best.leads,
            spend=best.spend_in_dzd,
            cpl=best_cpl,
        )

    # Trends

    def daily_trend(self, entries: Iterable[MediaBuyingEntry]) -> List[DailyTrendPoint]:
        """
        Groups entries by calendar date, ascending.

        Args:
            entries: Entries of the range.

        Returns:
            One DailyTrendPoint per date with entries.
        """
        days: Dict[str, List[MediaBuyingEntry]] = {}
        for entry in entries:
            days.setdefault(self._date_manager.date_key(entry.date), []).append(entry)

        trend: List[DailyTrendPoint] = []
        for key in sorted(days):
            group = days[key]
            spend_in_dzd = self._calculator.calculate_current_spend(group)
            leads = self.sum_leads(group)
            trend.append(DailyTrendPoint(
                date=key,
                spend=self.sum_spend(group),
                spend_in_dzd=spend_in_dzd,
                leads=leads,
                cpl=safe_ratio(spend_in_dzd, leads),
            ))
        return trend

    def source_trend(self, entries: Iterable[MediaBuyingEntry]) -> List[SourceTrendPoint]:
        """Daily DZD spend and leads of a single source, ascending by date."""
        return [
            SourceTrendPoint(date=point.date, spend=point.spend_in_dzd, leads=point.leads)
            for point in self.daily_trend(entries)
        ]

    def period_comparison(
        self,
        current_entries: Sequence[MediaBuyingEntry],
        previous_entries: Sequence[MediaBuyingEntry]
    ) -> PeriodComparison:
        """
        Compares a range with the window immediately before it.

        Spend and cost per lead use native total_spend.

        Args:
            current_entries: Entries of the requested range.
            previous_entries: Entries of the preceding window of equal length.

        Returns:
            PeriodComparison with percentage deltas.
        """
        current_spend = self.sum_spend(current_entries)
        current_leads = self.sum_leads(current_entries)
        previous_spend = self.sum_spend(previous_entries)
        previous_leads = self.sum_leads(previous_entries)

        current_cpl = safe_ratio(current_spend, current_leads)
        previous_cpl = safe_ratio(previous_spend, previous_leads)

        return PeriodComparison(
            previous_spend=previous_spend,
            previous_leads=previous_leads,
            spend_change=percentage_change(current_spend, previous_spend),
            leads_change=percentage_change(current_leads, previous_leads),
            cpl_change=percentage_change(current_cpl, previous_cpl),
        )

    # Dashboard

    def dashboard_stats(
        self,
        entries: Sequence[MediaBuyingEntry],
        sources: Mapping[str, AdSource],
        now: datetime,
        conversions: int = 0,
        previous_entries: Optional[Sequence[MediaBuyingEntry]] = None
    ) -> DashboardStats:
        """
        Builds the dashboard for entries of a requested range.

        Args:
            entries: Entries of the range, newest first.
            sources: Known sources by id.
            now: Reference time for the today and week buckets.
            conversions: Conversions linked to entries of the range.
            previous_entries: Entries of the preceding window. When given,
                the result carries a period comparison.

        Returns:
            DashboardStats for the range.
        """
        entries = list(entries)

        spend_today, leads_today = self.bucket_totals(
            entries, self._date_manager.get_start_of_day(now)
        )
        spend_week, leads_week = self.bucket_totals(
            entries, self._date_manager.get_week_start(now)
        )
        total_spend = self.sum_spend(entries)
        total_leads = self.sum_leads(entries)
        total_dzd = self._calculator.calculate_current_spend(entries)
        total_usd = self._calculator.calculate_current_spend_usd(entries)

        rollups = self.spend_by_source(entries, sources)

        comparison = None
        if previous_entries is not None:
            comparison = self.period_comparison(entries, previous_entries)

        return DashboardStats(
            total_spend_today=spend_today,
            total_spend_week=spend_week,
            total_spend_month=total_spend,
            total_spend_in_dzd=total_dzd,
            total_spend_usd=total_usd,
            total_leads_today=leads_today,
            total_leads_week=leads_week,
            total_leads_month=total_leads,
            average_cpl=safe_ratio(total_dzd, total_leads),
            best_performing_source=self.best_performing_source(rollups),
            spend_by_source=rollups,
            daily_trend=self.daily_trend(entries),
            conversion_rate=safe_ratio(Decimal(conversions), total_leads) * HUNDRED,
            total_conversions=conversions,
            recent_entries=self.recent_entries(entries, sources),
            period_comparison=comparison,
        )

    def recent_entries(
        self,
        entries: Sequence[MediaBuyingEntry],
        sources: Mapping[str, AdSource]
    ) -> List[RecentEntry]:
        """Compact rows for the newest entries."""
        newest = sorted(entries, key=lambda e: e.date, reverse=True)[:self._recent_count]
        rows = []
        for entry in newest:
            name, color = self._describe_source(entry.source_id, sources)
            rows.append(RecentEntry(
                id=entry.id,
                date=entry.date,
                source_name=name,
                source_color=color,
                total_spend=entry.total_spend,
                total_leads=entry.total_leads,
                currency=entry.currency,
            ))
        return rows

    # Analytics by source

    def source_analytics(
        self,
        source: AdSource,
        entries: Sequence[MediaBuyingEntry],
        conversions: int,
        total_spend_in_dzd: Decimal
    ) -> SourceAnalytics:
        """
        Builds the analytics row of one source.

        Args:
            source: The source.
            entries: Entries of this source in the range.
            conversions: Conversions linked to those entries.
            total_spend_in_dzd: DZD spend of every source in the range,
                for the share of total.

        Returns:
            SourceAnalytics for the source.
        """
        spend_in_dzd = self._calculator.calculate_current_spend(entries)
        leads = self.sum_leads(entries)

        return SourceAnalytics(
            source_id=source.id,
            source_name=source.name,
            source_color=source.display_color,
            total_spend=self.sum_spend(entries),
            total_spend_in_dzd=spend_in_dzd,
            total_leads=leads,
            average_cpl=safe_ratio(spend_in_dzd, leads),
            conversions=conversions,
            conversion_rate=safe_ratio(Decimal(conversions), leads) * HUNDRED,
            entries=len(entries),
            percentage_of_total=safe_ratio(spend_in_dzd, total_spend_in_dzd) * HUNDRED,
            trend=self.source_trend(entries),
        )

    # Conversions

    def conversion_analytics(
        self,
        entries: Sequence[MediaBuyingEntry],
        conversions: Sequence[LeadConversion],
        sources: Mapping[str, AdSource]
    ) -> ConversionAnalytics:
        """
        Summarises lead-to-order conversions for entries of a range.

        Conversions whose entry is not in ``entries`` are ignored.

        Args:
            entries: Entries of the range.
            conversions: Conversions linked to those entries.
            sources: Known sources by id.

        Returns:
            ConversionAnalytics with totals and a per-source breakdown.
        """
        by_entry: Dict[str, List[LeadConversion]] = {}
        for conversion in conversions:
            by_entry.setdefault(conversion.entry_id, []).append(conversion)

        groups: "OrderedDict[str, Dict]" = OrderedDict()
        total_leads = 0
        total_conversions = 0
        total_value = ZERO
        for entry in entries:
            linked = by_entry.get(entry.id, [])
            value = sum((c.order_value or ZERO for c in linked), ZERO)
            total_leads += entry.total_leads
            total_conversions += len(linked)
            total_value += value

            group = groups.setdefault(
                entry.source_id, {"leads": 0, "conversions": 0, "order_value": ZERO}
            )
            group["leads"] += entry.total_leads
            group["conversions"] += len(linked)
            group["order_value"] += value

        by_source = []
        for source_id, group in groups.items():
            name, _ = self._describe_source(source_id, sources)
            by_source.append(SourceConversions(
                source_id=source_id,
                source_name=name,
                leads=group["leads"],
                conversions=group["conversions"],
                conversion_rate=safe_ratio(
                    Decimal(group["conversions"]), group["leads"]
                ) * HUNDRED,
                order_value=group["order_value"],
            ))

        return ConversionAnalytics(
            total_leads=total_leads,
            total_conversions=total_conversions,
            conversion_rate=safe_ratio(Decimal(total_conversions), total_leads) * HUNDRED,
            total_order_value=total_value,
            average_order_value=safe_ratio(total_value, total_conversions),
            revenue_per_lead=safe_ratio(total_value, total_leads),
            by_source=by_source,
        )

    @staticmethod
    def _describe_source(
        source_id: str,
        sources: Mapping[str, AdSource]
    ) -> Tuple[str, str]:
        source = sources.get(source_id)
        if source is None:
            return source_id, DEFAULT_SOURCE_COLOR
        return source.name, source.display_color
