"""
SpendWatch DZD - Data Schema Module.

This module defines the core data models for the SpendWatch system.
All monetary fields use Decimal type to ensure financial precision.

Algerian Market Context:
    - Ad platforms bill in USD; the business accounts in DZD
    - Budgets are stored as DZD canonical amounts
    - spend_in_dzd is derived once at entry time and never recomputed

Classes:
    Currency: Supported spend currencies.
    AlertType: Budget alert classifications.
    AdSource, MediaBuyingEntry, MediaBuyingBudget, BudgetAlert,
    LeadConversion, ExchangeRate, Order: Persisted entities.
    EntryFilter, BudgetFilter: Query filters for the repository.
    BudgetStatus, DashboardStats, SourceAnalytics, ConversionAnalytics:
        Read-only aggregation results.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


DEFAULT_ALERT_THRESHOLD = Decimal("80")
DEFAULT_SOURCE_COLOR = "#6B7280"

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class Currency(Enum):
    """
    Currencies a spend entry or budget can be recorded in.

    Attributes:
        USD: US Dollar, the billing currency of most ad platforms.
        DZD: Algerian Dinar, the accounting currency.
    """

    USD = "USD"
    DZD = "DZD"


class AlertType(Enum):
    """
    Budget alert classification.

    Attributes:
        THRESHOLD_WARNING: Spend crossed the budget's alert threshold.
        BUDGET_EXCEEDED: Spend reached or passed 100% of the budget.
    """

    THRESHOLD_WARNING = "THRESHOLD_WARNING"
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"


@dataclass
class AdSource:
    """
    An advertising channel such as Facebook Ads or TikTok Ads.

    Sources are soft-deactivated, never deleted while entries reference them.
    """

    id: str
    name: str
    slug: str
    color: Optional[str] = None
    icon: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True

    @property
    def display_color(self) -> str:
        """Returns the source colour, or the neutral default."""
        return self.color or DEFAULT_SOURCE_COLOR


@dataclass
class MediaBuyingEntry:
    """
    A spend report for one ad source on one day.

    Important Definitions:
        total_spend: Amount spent, in ``currency``.
        exchange_rate: USD to DZD rate captured with the entry, if any.
        spend_in_dzd: Derived DZD amount. Equals total_spend for DZD
            entries, total_spend * exchange_rate for USD entries with a
            rate, and None otherwise.

    Attributes:
        id: Entry identifier.
        date: When the spend happened.
        source_id: Owning AdSource.
        total_spend: Spend in entry currency.
        total_leads: Leads generated.
        currency: Spend currency.
        exchange_rate: Optional per-entry USD to DZD rate.
        spend_in_dzd: Derived DZD spend.
        created_by_id: User who submitted the entry.
        date_range_start: Optional start of the reporting window.
        date_range_end: Optional end of the reporting window.
        store_id: Optional store context.
        product_id: Optional product context.
        metadata: Free-form platform metrics (ctr, cpm, impressions, ...).
    """

    id: str
    date: datetime
    source_id: str
    total_spend: Decimal
    total_leads: int
    currency: Currency
    exchange_rate: Optional[Decimal] = None
    spend_in_dzd: Optional[Decimal] = None
    created_by_id: Optional[str] = None
    date_range_start: Optional[datetime] = None
    date_range_end: Optional[datetime] = None
    store_id: Optional[str] = None
    product_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    @property
    def normalised_spend(self) -> Decimal:
        """DZD spend, falling back to the raw spend when it was never derived."""
        if self.spend_in_dzd is not None:
            return self.spend_in_dzd
        return self.total_spend


@dataclass
class MediaBuyingBudget:
    """
    Monthly spend ceiling, for one source or globally.

    Attributes:
        id: Budget identifier.
        month: Month number (1-12).
        year: Four-digit year.
        source_id: Scoped AdSource, or None for a global budget.
        budget_amount: Ceiling in DZD.
        currency: Currency the budget was entered in.
        alert_threshold: Percentage that triggers a warning.
        alert_enabled: Whether alerts are raised for this budget.
        created_by_id: User who created the budget.
    """

    id: str
    month: int
    year: int
    budget_amount: Decimal
    source_id: Optional[str] = None
    currency: Currency = Currency.DZD
    alert_threshold: Decimal = DEFAULT_ALERT_THRESHOLD
    alert_enabled: bool = True
    created_by_id: Optional[str] = None

    @property
    def is_global(self) -> bool:
        """True when the budget aggregates every source."""
        return self.source_id is None


@dataclass
class BudgetAlert:
    """
    A raised budget alert.

    ``period_start`` is the first day of the budget month; together with
    budget_id and alert_type it identifies the alert uniquely.
    """

    id: str
    budget_id: str
    alert_type: AlertType
    threshold: Decimal
    current_spend: Decimal
    budget_amount: Decimal
    period_start: date
    created_at: datetime
    is_read: bool = False
    read_at: Optional[datetime] = None
    read_by_id: Optional[str] = None


@dataclass
class LeadConversion:
    """A lead entry linked to the order it produced."""

    id: str
    entry_id: str
    order_id: str
    conversion_date: datetime
    order_value: Optional[Decimal] = None
    attribution_type: str = "direct"


@dataclass
class ExchangeRate:
    """An append-only exchange rate record."""

    id: str
    from_currency: str
    to_currency: str
    rate: Decimal
    effective_date: datetime
    created_by_id: Optional[str] = None


@dataclass
class Order:
    """The slice of an order the media-buying module reads."""

    id: str
    reference: str
    total: Decimal
    status: str = "PENDING"


@dataclass
class EntryFilter:
    """
    Query filter for spend entries.

    Date bounds are inclusive. ``page`` is 1-based; ``limit`` of None
    disables pagination.
    """

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    source_id: Optional[str] = None
    store_id: Optional[str] = None
    product_id: Optional[str] = None
    page: int = 1
    limit: Optional[int] = None


@dataclass
class BudgetFilter:
    """
    Query filter for budgets.

    ``global_only`` restricts to budgets without a source; it is needed
    because a source_id of None means "any source".
    """

    month: Optional[int] = None
    year: Optional[int] = None
    source_id: Optional[str] = None
    global_only: bool = False
    alert_enabled: Optional[bool] = None


@dataclass
class EntryPage:
    """One page of entries plus paging metadata."""

    entries: List[MediaBuyingEntry]
    total: int
    page: int
    total_pages: int


@dataclass
class NormalisedAmount:
    """An amount expressed in both DZD and USD."""

    dzd: Decimal
    usd: Decimal


@dataclass
class BudgetStatus:
    """
    Read-only projection of a budget against its period spend.

    Attributes:
        budget_id: Budget identifier.
        month: Budget month.
        year: Budget year.
        source_id: Scoped source or None for global budgets.
        source_name: Display name of the scoped source.
        budget_amount: Ceiling in DZD.
        current_spend: DZD spend for the period.
        current_spend_usd: USD-equivalent spend for the period.
        spend_percentage: current_spend / budget_amount * 100.
        remaining: budget_amount - current_spend (may be negative).
        alert_threshold: Warning percentage.
        is_over_budget: current_spend > budget_amount.
        is_near_threshold: spend_percentage >= alert_threshold.
    """

    budget_id: str
    month: int
    year: int
    source_id: Optional[str]
    source_name: Optional[str]
    budget_amount: Decimal
    current_spend: Decimal
    current_spend_usd: Decimal
    spend_percentage: Decimal
    remaining: Decimal
    alert_threshold: Decimal
    is_over_budget: bool
    is_near_threshold: bool


@dataclass
class SourceSpend:
    """Spend rollup for one source within a dashboard range."""

    source_id: str
    source_name: str
    source_color: str
    spend: Decimal
    spend_in_dzd: Decimal
    leads: int
    percentage: Decimal


@dataclass
class BestPerformer:
    """The source with the lowest DZD cost per lead."""

    id: str
    name: str
    leads: int
    spend: Decimal
    cpl: Decimal


@dataclass
class DailyTrendPoint:
    """Spend and leads for one calendar day."""

    date: str
    spend: Decimal
    spend_in_dzd: Decimal
    leads: int
    cpl: Decimal


@dataclass
class PeriodComparison:
    """
    Percentage deltas against the immediately preceding window.

    A previous value of zero yields a delta of 0.
    """

    previous_spend: Decimal
    previous_leads: int
    spend_change: Decimal
    leads_change: Decimal
    cpl_change: Decimal


@dataclass
class RecentEntry:
    """Compact entry row for the dashboard feed."""

    id: str
    date: datetime
    source_name: str
    source_color: str
    total_spend: Decimal
    total_leads: int
    currency: Currency


@dataclass
class DashboardStats:
    """Media-buying dashboard for a date range."""

    total_spend_today: Decimal
    total_spend_week: Decimal
    total_spend_month: Decimal
    total_spend_in_dzd: Decimal
    total_spend_usd: Decimal
    total_leads_today: int
    total_leads_week: int
    total_leads_month: int
    average_cpl: Decimal
    best_performing_source: Optional[BestPerformer]
    spend_by_source: List[SourceSpend]
    daily_trend: List[DailyTrendPoint]
    conversion_rate: Decimal
    total_conversions: int
    recent_entries: List[RecentEntry]
    period_comparison: Optional[PeriodComparison] = None


@dataclass
class SourceTrendPoint:
    """DZD spend and leads for one source on one day."""

    date: str
    spend: Decimal
    leads: int


@dataclass
class SourceAnalytics:
    """Per-source analytics for a date range."""

    source_id: str
    source_name: str
    source_color: str
    total_spend: Decimal
    total_spend_in_dzd: Decimal
    total_leads: int
    average_cpl: Decimal
    conversions: int
    conversion_rate: Decimal
    entries: int
    percentage_of_total: Decimal
    trend: List[SourceTrendPoint] = field(default_factory=list)


@dataclass
class SourceConversions:
    """Conversion breakdown for one source."""

    source_id: str
    source_name: str
    leads: int
    conversions: int
    conversion_rate: Decimal
    order_value: Decimal


@dataclass
class ConversionAnalytics:
    """Lead-to-order conversion summary for a date range."""

    total_leads: int
    total_conversions: int
    conversion_rate: Decimal
    total_order_value: Decimal
    average_order_value: Decimal
    revenue_per_lead: Decimal
    by_source: List[SourceConversions] = field(default_factory=list)
