"""
SpendWatch DZD - Media Buying Service.

Facade over the repository and the calculation modules. Every operation
an HTTP layer or the CLI needs goes through this class: source and entry
management, budgets and their monthly status, alerts, lead conversions,
exchange rates and the dashboard analytics.

Classes:
    MediaBuyingService: Application service for the media-buying module.
"""

import logging
import math
import sqlite3
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from spendwatch.alerts import AlertTrigger
from spendwatch.analytics import AnalyticsAggregator
from spendwatch.calculator import BudgetStatusCalculator
from spendwatch.config import AppConfig
from spendwatch.currency import CurrencyNormalizer, compute_spend_in_dzd
from spendwatch.date_logic import DateManager
from spendwatch.errors import NotFoundError, ValidationError
from spendwatch.repository import SpendRepository, new_id
from spendwatch.schema import (
    AdSource,
    BudgetAlert,
    BudgetFilter,
    BudgetStatus,
    ConversionAnalytics,
    Currency,
    DashboardStats,
    EntryFilter,
    EntryPage,
    ExchangeRate,
    LeadConversion,
    MediaBuyingBudget,
    MediaBuyingEntry,
    SourceAnalytics,
)
from spendwatch.validator import DataValidator, EntryInput

logger = logging.getLogger(__name__)


class MediaBuyingService:
    """
    Application service for media-buying spend tracking.

    Attributes:
        repository: Persistence collaborator.
        config: Application configuration.

    Example:
        >>> service = MediaBuyingService(SpendRepository("data/spendwatch.db"))
        >>> entry = service.create_entry(
        ...     datetime(2024, 10, 3), source_id, Decimal("1000"), 42,
        ...     Currency.USD, exchange_rate=Decimal("140"),
        ... )
        >>> entry.spend_in_dzd
        Decimal('140000')
    """

    def __init__(
        self,
        repository: SpendRepository,
        config: Optional[AppConfig] = None,
        date_manager: Optional[DateManager] = None
    ):
        self._repository = repository
        self._config = config or AppConfig()
        self._date_manager = date_manager or DateManager()
        self._validator = DataValidator()
        self._calculator = BudgetStatusCalculator(self._date_manager)
        self._alerts = AlertTrigger(repository, self._calculator, self._date_manager)
        self._aggregator = AnalyticsAggregator(
            self._date_manager, recent_count=self._config.dashboard.recent_entries
        )
        self._normalizer = CurrencyNormalizer(self._config.currency.default_exchange_rate)

    @property
    def repository(self) -> SpendRepository:
        return self._repository

    # ── Ad sources ────────────────────────────────────────────────────────────

    def get_sources(self, include_inactive: bool = False) -> List[AdSource]:
        return self._repository.list_sources(include_inactive)

    def get_source(self, source_id: str) -> AdSource:
        source = self._repository.get_source(source_id)
        if source is None:
            raise NotFoundError(f"Ad source not found: {source_id}")
        return source

    def create_source(
        self,
        name: str,
        slug: str,
        color: Optional[str] = None,
        icon: Optional[str] = None,
        sort_order: int = 0
    ) -> AdSource:
        if not name or not name.strip():
            raise ValidationError("Source name cannot be empty")
        if not slug or not slug.strip():
            raise ValidationError("Source slug cannot be empty")
        source = AdSource(
            id=new_id(),
            name=name.strip(),
            slug=slug.strip().lower(),
            color=color,
            icon=icon,
            sort_order=sort_order or 0,
        )
        return self._repository.add_source(source)

    def update_source(self, source_id: str, **changes: Any) -> AdSource:
        """Applies name, color, icon, sort_order or is_active changes."""
        allowed = {"name", "color", "icon", "sort_order", "is_active"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Cannot update source fields: {', '.join(sorted(unknown))}")
        source = replace(self.get_source(source_id), **changes)
        return self._repository.update_source(source)

    def deactivate_source(self, source_id: str) -> AdSource:
        return self.update_source(source_id, is_active=False)

    def resolve_source(self, key: str) -> AdSource:
        """Finds a source by id, slug or name (case-insensitive)."""
        wanted = key.strip().lower()
        for source in self._repository.list_sources(include_inactive=True):
            if wanted in (source.id.lower(), source.slug.lower(), source.name.lower()):
                return source
        raise NotFoundError(f"Ad source not found: {key}")

    # ── Entries ───────────────────────────────────────────────────────────────

    def create_entry(
        self,
        entry_date: datetime,
        source_id: str,
        total_spend: Decimal,
        total_leads: int,
        currency: Currency = Currency.USD,
        exchange_rate: Optional[Decimal] = None,
        created_by_id: Optional[str] = None,
        store_id: Optional[str] = None,
        product_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        date_range_start: Optional[datetime] = None,
        date_range_end: Optional[datetime] = None,
        now: Optional[datetime] = None
    ) -> MediaBuyingEntry:
        """
        Records a spend entry and checks the budgets it touches.

        spend_in_dzd is derived from the entry's own rate. The alert check
        runs after the entry is stored; if it fails the failure is logged
        and the stored entry is still returned.

        Args:
            entry_date: Day of the spend.
            source_id: Ad source of the spend.
            total_spend: Spend in ``currency``.
            total_leads: Leads generated.
            currency: Spend currency.
            exchange_rate: Optional USD to DZD rate.
            created_by_id: Submitting user.
            store_id: Optional store context.
            product_id: Optional product context.
            metadata: Optional platform metrics.
            date_range_start: Optional reporting window start.
            date_range_end: Optional reporting window end.
            now: Reference time for alert creation.

        Returns:
            The stored entry.

        Raises:
            ValidationError: On invalid numbers or currency.
            NotFoundError: If the source does not exist.
        """
        currency = self._validator.validate_entry_values(
            total_spend, total_leads, currency, exchange_rate
        )
        self.get_source(source_id)

        entry = MediaBuyingEntry(
            id=new_id(),
            date=entry_date,
            source_id=source_id,
            total_spend=total_spend,
            total_leads=total_leads,
            currency=currency,
            exchange_rate=exchange_rate,
            spend_in_dzd=compute_spend_in_dzd(total_spend, currency, exchange_rate),
            created_by_id=created_by_id,
            date_range_start=date_range_start,
            date_range_end=date_range_end,
            store_id=store_id,
            product_id=product_id,
            metadata=dict(metadata or {}),
            created_at=now,
        )
        self._repository.add_entry(entry)
        logger.info(
            "Recorded entry %s: %s %s, %d leads for source %s",
            entry.id, entry.total_spend, entry.currency.value, entry.total_leads, source_id,
        )

        try:
            self._alerts.check_budget_alerts(source_id, entry_date, now)
        except (sqlite3.Error, ValueError):
            logger.exception("Budget alert check failed for entry %s", entry.id)

        return entry

    def update_entry(self, entry_id: str, **changes: Any) -> MediaBuyingEntry:
        """
        Edits an entry, re-deriving spend_in_dzd from the edited values.

        Budget alerts are not re-evaluated on edit.
        """
        allowed = {
            "date", "source_id", "total_spend", "total_leads", "currency",
            "exchange_rate", "store_id", "product_id", "metadata",
            "date_range_start", "date_range_end",
        }
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Cannot update entry fields: {', '.join(sorted(unknown))}")

        entry = replace(self.get_entry(entry_id), **changes)
        entry.currency = self._validator.validate_entry_values(
            entry.total_spend, entry.total_leads, entry.currency, entry.exchange_rate
        )
        if "source_id" in changes:
            self.get_source(entry.source_id)
        if {"total_spend", "currency", "exchange_rate"} & set(changes):
            entry.spend_in_dzd = compute_spend_in_dzd(
                entry.total_spend, entry.currency, entry.exchange_rate
            )
        return self._repository.update_entry(entry)

    def delete_entry(self, entry_id: str) -> None:
        if not self._repository.delete_entry(entry_id):
            raise NotFoundError(f"Entry not found: {entry_id}")

    def get_entry(self, entry_id: str) -> MediaBuyingEntry:
        entry = self._repository.get_entry(entry_id)
        if entry is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        return entry

    def get_entries(self, flt: Optional[EntryFilter] = None) -> EntryPage:
        """Returns one page of entries, newest first."""
        flt = flt or EntryFilter()
        if flt.limit is None:
            flt = replace(flt, limit=self._config.dashboard.page_size)
        if flt.limit <= 0 or flt.page < 1:
            raise ValidationError("Page and limit must be positive")

        entries = self._repository.find_entries(flt)
        total = self._repository.count_entries(flt)
        return EntryPage(
            entries=entries,
            total=total,
            page=flt.page,
            total_pages=math.ceil(total / flt.limit),
        )

    def import_entries(
        self,
        inputs: List[EntryInput],
        created_by_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> List[MediaBuyingEntry]:
        """
        Stores validated CSV entries, resolving source names or slugs.

        Raises:
            NotFoundError: If a row names an unknown source. Sources are
                resolved before anything is stored, so nothing is imported.
        """
        resolved = [(item, self.resolve_source(item.source)) for item in inputs]

        stored = []
        for item, source in resolved:
            stored.append(self.create_entry(
                entry_date=item.date,
                source_id=source.id,
                total_spend=item.total_spend,
                total_leads=item.total_leads,
                currency=item.currency,
                exchange_rate=item.exchange_rate,
                created_by_id=created_by_id,
                store_id=item.store_id,
                product_id=item.product_id,
                metadata=item.metadata,
                now=now,
            ))
        logger.info("Imported %d entries", len(stored))
        return stored

    # ── Budgets ───────────────────────────────────────────────────────────────

    def create_budget(
        self,
        month: int,
        year: int,
        budget_amount: Optional[Decimal],
        source_id: Optional[str] = None,
        currency: Currency = Currency.DZD,
        exchange_rate: Optional[Decimal] = None,
        alert_threshold: Optional[Decimal] = None,
        alert_enabled: bool = True,
        created_by_id: Optional[str] = None
    ) -> MediaBuyingBudget:
        """
        Creates a monthly budget, stored as a DZD amount.

        A USD budget is converted with ``exchange_rate``, else the latest
        recorded USD to DZD rate, else the configured default rate.

        Raises:
            ValidationError: On a missing or non-positive amount, an invalid
                month or threshold.
            DuplicateBudgetError: If the month already has a budget for the
                same source (or a global budget).
            NotFoundError: If the source does not exist.
        """
        self._validator.validate_budget_values(month, year, budget_amount, alert_threshold)
        currency = self._validator.parse_currency(currency)
        if source_id is not None:
            self.get_source(source_id)

        if currency == Currency.USD and not exchange_rate:
            exchange_rate = self._latest_rate_value()
        amount_dzd = self._normalizer.to_dzd(budget_amount, currency, exchange_rate)

        budget = MediaBuyingBudget(
            id=new_id(),
            month=month,
            year=year,
            budget_amount=amount_dzd,
            source_id=source_id,
            currency=currency,
            alert_threshold=(
                alert_threshold if alert_threshold is not None
                else self._config.budgets.alert_threshold
            ),
            alert_enabled=alert_enabled,
            created_by_id=created_by_id,
        )
        self._repository.add_budget(budget)
        logger.info(
            "Created budget %s for %02d/%d (%s): %s DZD",
            budget.id, month, year, source_id or "global", amount_dzd,
        )
        return budget

    def update_budget(
        self,
        budget_id: str,
        budget_amount: Optional[Decimal] = None,
        alert_threshold: Optional[Decimal] = None,
        alert_enabled: Optional[bool] = None
    ) -> MediaBuyingBudget:
        budget = self.get_budget(budget_id)
        if budget_amount is not None:
            budget.budget_amount = budget_amount
        if alert_threshold is not None:
            budget.alert_threshold = alert_threshold
        if alert_enabled is not None:
            budget.alert_enabled = alert_enabled
        self._validator.validate_budget_values(
            budget.month, budget.year, budget.budget_amount, budget.alert_threshold
        )
        return self._repository.update_budget(budget)

    def get_budget(self, budget_id: str) -> MediaBuyingBudget:
        budget = self._repository.get_budget(budget_id)
        if budget is None:
            raise NotFoundError(f"Budget not found: {budget_id}")
        return budget

    def get_budgets(self, flt: Optional[BudgetFilter] = None) -> List[MediaBuyingBudget]:
        return self._repository.find_budgets(flt)

    def get_budget_status(
        self,
        month: Optional[int] = None,
        year: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> List[BudgetStatus]:
        """
        Computes the status of every budget of a month.

        Args:
            month: Budget month. Defaults to the month of ``now``.
            year: Budget year. Defaults to the year of ``now``.
            now: Reference time. Defaults to the current time.

        Returns:
            One BudgetStatus per budget of the month.
        """
        if now is None:
            now = datetime.now()
        month = now.month if month is None else month
        year = now.year if year is None else year
        if not 1 <= month <= 12:
            raise ValidationError(f"Month must be between 1 and 12, got {month}")

        start, end = self._date_manager.get_month_bounds(year, month)
        sources = self._source_map()

        statuses = []
        for budget in self._repository.find_budgets(BudgetFilter(month=month, year=year)):
            entries = self._repository.find_entries(EntryFilter(
                start=start, end=end, source_id=budget.source_id
            ))
            source = None if budget.is_global else sources.get(budget.source_id)
            statuses.append(self._calculator.compute_status(
                budget, entries, source.name if source else None
            ))
        return statuses

    # ── Alerts ────────────────────────────────────────────────────────────────

    def get_alerts(self, unread_only: bool = False) -> List[BudgetAlert]:
        return self._repository.list_alerts(unread_only, self._config.dashboard.max_alerts)

    def mark_alert_as_read(
        self,
        alert_id: str,
        user_id: str,
        now: Optional[datetime] = None
    ) -> BudgetAlert:
        if not self._repository.mark_alert_read(alert_id, user_id, now or datetime.now()):
            raise NotFoundError(f"Alert not found: {alert_id}")
        return self._repository.get_alert(alert_id)

    # ── Conversions ───────────────────────────────────────────────────────────

    def link_lead_to_order(
        self,
        entry_id: str,
        order_id: str,
        attribution_type: str = "direct",
        now: Optional[datetime] = None
    ) -> LeadConversion:
        """Links an entry to an order, snapshotting the order total."""
        self.get_entry(entry_id)
        order = self._repository.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order not found: {order_id}")

        conversion = LeadConversion(
            id=new_id(),
            entry_id=entry_id,
            order_id=order_id,
            conversion_date=now or datetime.now(),
            order_value=order.total,
            attribution_type=attribution_type or "direct",
        )
        return self._repository.add_conversion(conversion)

    def unlink_lead_from_order(self, conversion_id: str) -> None:
        if not self._repository.delete_conversion(conversion_id):
            raise NotFoundError(f"Conversion not found: {conversion_id}")

    def get_conversions(self, entry_id: Optional[str] = None) -> List[LeadConversion]:
        return self._repository.find_conversions(entry_id=entry_id)

    # ── Exchange rates ────────────────────────────────────────────────────────

    def create_exchange_rate(
        self,
        rate: Decimal,
        effective_date: datetime,
        from_currency: str = "USD",
        to_currency: str = "DZD",
        created_by_id: Optional[str] = None
    ) -> ExchangeRate:
        """
        Records a rate. Existing entries keep their stored DZD spend.
        """
        if rate is None or rate <= 0:
            raise ValidationError("Exchange rate must be a positive number")
        record = ExchangeRate(
            id=new_id(),
            from_currency=from_currency.upper(),
            to_currency=to_currency.upper(),
            rate=rate,
            effective_date=effective_date,
            created_by_id=created_by_id,
        )
        return self._repository.add_exchange_rate(record)

    def get_exchange_rates(self) -> List[ExchangeRate]:
        return self._repository.list_exchange_rates()

    def get_latest_exchange_rate(
        self,
        from_currency: str = "USD",
        to_currency: str = "DZD"
    ) -> Optional[ExchangeRate]:
        return self._repository.latest_exchange_rate(from_currency, to_currency)

    # ── Dashboard & analytics ─────────────────────────────────────────────────

    def get_dashboard_stats(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        now: Optional[datetime] = None
    ) -> DashboardStats:
        """
        Builds the dashboard for [start, end], month-to-date by default.

        The result includes a comparison with the preceding window of the
        same length.
        """
        if now is None:
            now = datetime.now()
        start, end = self._resolve_range(start, end, now)
        range_filter = self._range_filter(start, end)

        entries = self._repository.find_entries(range_filter)
        conversions = self._repository.count_conversions(range_filter)

        previous_start, previous_end = self._date_manager.get_previous_window(start, end)
        previous_entries = self._repository.find_entries(
            self._range_filter(previous_start, previous_end)
        )

        return self._aggregator.dashboard_stats(
            entries,
            self._source_map(),
            now,
            conversions=conversions,
            previous_entries=previous_entries,
        )

    def get_analytics_by_source(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        now: Optional[datetime] = None
    ) -> List[SourceAnalytics]:
        """
        Per active source analytics, highest DZD spend first.

        Entries and conversions are fetched one source at a time.
        """
        start, end = self._resolve_range(start, end, now)
        range_filter = self._range_filter(start, end)

        per_source: List[Tuple[AdSource, List[MediaBuyingEntry], int]] = []
        for source in self._repository.list_sources():
            source_filter = replace(range_filter, source_id=source.id)
            entries = self._repository.find_entries(source_filter, newest_first=False)
            conversions = self._repository.count_conversions(source_filter)
            per_source.append((source, entries, conversions))

        total_dzd = sum(
            (self._calculator.calculate_current_spend(entries) for _, entries, _ in per_source),
            Decimal("0"),
        )
        analytics = [
            self._aggregator.source_analytics(source, entries, conversions, total_dzd)
            for source, entries, conversions in per_source
        ]
        return sorted(analytics, key=lambda a: a.total_spend_in_dzd, reverse=True)

    def get_conversion_analytics(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        now: Optional[datetime] = None
    ) -> ConversionAnalytics:
        start, end = self._resolve_range(start, end, now)
        range_filter = self._range_filter(start, end)
        entries = self._repository.find_entries(range_filter)
        conversions = self._repository.find_conversions(range_filter)
        return self._aggregator.conversion_analytics(entries, conversions, self._source_map())

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _resolve_range(
        self,
        start: Optional[date],
        end: Optional[date],
        now: Optional[datetime]
    ) -> Tuple[date, date]:
        default_start, default_end = self._date_manager.get_default_range(now)
        start = start or default_start
        end = end or default_end
        if end < start:
            raise ValidationError(f"Range end {end} is before range start {start}")
        return start, end

    def _range_filter(self, start: date, end: date) -> EntryFilter:
        lower, upper = self._date_manager.get_range_bounds(start, end)
        return EntryFilter(start=lower, end=upper)

    def _source_map(self) -> Dict[str, AdSource]:
        return {s.id: s for s in self._repository.list_sources(include_inactive=True)}

    def _latest_rate_value(self) -> Optional[Decimal]:
        latest = self._repository.latest_exchange_rate(
            self._config.currency.from_currency, self._config.currency.to_currency
        )
        return latest.rate if latest else None
