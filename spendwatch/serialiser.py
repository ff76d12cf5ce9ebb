"""
SpendWatch DZD - Report Serialisation Module.

This module turns budget statuses and dashboard analytics into JSON
payloads. All Decimal values are converted to string representation to
preserve precision; keys use camelCase as the dashboard client expects.

Algerian Market Context:
    - Every report carries timestamp and version for traceability
    - DZD amounts keep full Decimal precision
    - Status reports can be reloaded for month-over-month comparison

Classes:
    DecimalEncoder: JSON encoder for Decimal, datetime, date and Enum.
    ReportSerialiser: Builds and persists JSON reports.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from spendwatch import __version__
from spendwatch.schema import (
    BudgetStatus,
    ConversionAnalytics,
    DashboardStats,
    SourceAnalytics,
)


class DecimalEncoder(json.JSONEncoder):
    """
    Custom JSON encoder that converts Decimal to string.

    Preserves full precision of Decimal values by encoding them
    as strings rather than floats.
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


def _opt(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


class ReportSerialiser:
    """
    Serialises media-buying reports to JSON.

    Example:
        >>> serialiser = ReportSerialiser()
        >>> json_str = serialiser.serialise_status_report(statuses, now)
        >>> restored = serialiser.deserialise_status_report(json_str)
        >>> assert restored[0].budget_amount == statuses[0].budget_amount
    """

    def __init__(self, version: str = None):
        """
        Initialises the ReportSerialiser.

        Args:
            version: Version identifier for reports.
                     Defaults to package version.
        """
        self._version = version or __version__

    # Payloads

    def status_to_dict(self, status: BudgetStatus) -> Dict[str, Any]:
        return {
            "budgetId": status.budget_id,
            "month": status.month,
            "year": status.year,
            "sourceId": status.source_id,
            "sourceName": status.source_name,
            "budgetAmount": str(status.budget_amount),
            "currentSpend": str(status.current_spend),
            "currentSpendUSD": str(status.current_spend_usd),
            "spendPercentage": str(status.spend_percentage),
            "remaining": str(status.remaining),
            "alertThreshold": str(status.alert_threshold),
            "isOverBudget": status.is_over_budget,
            "isNearThreshold": status.is_near_threshold,
        }

    def dashboard_to_dict(self, stats: DashboardStats) -> Dict[str, Any]:
        """
        Converts DashboardStats to the dashboard payload.

        Args:
            stats: Dashboard figures.

        Returns:
            Dictionary with camelCase keys and string amounts.
        """
        best = stats.best_performing_source
        comparison = stats.period_comparison

        return {
            "totalSpendToday": str(stats.total_spend_today),
            "totalSpendWeek": str(stats.total_spend_week),
            "totalSpendMonth": str(stats.total_spend_month),
            "totalSpendInDZD": str(stats.total_spend_in_dzd),
            "totalSpendUSD": str(stats.total_spend_usd),
            "totalLeadsToday": stats.total_leads_today,
            "totalLeadsWeek": stats.total_leads_week,
            "totalLeadsMonth": stats.total_leads_month,
            "averageCPL": str(stats.average_cpl),
            "bestPerformingSource": None if best is None else {
                "id": best.id,
                "name": best.name,
                "leads": best.leads,
                "spend": str(best.spend),
                "cpl": str(best.cpl),
            },
            "spendBySource": [
                {
                    "sourceId": s.source_id,
                    "sourceName": s.source_name,
                    "sourceColor": s.source_color,
                    "spend": str(s.spend),
                    "spendInDZD": str(s.spend_in_dzd),
                    "leads": s.leads,
                    "percentage": str(s.percentage),
                }
                for s in stats.spend_by_source
            ],
            "dailyTrend": [
                {
                    "date": p.date,
                    "spend": str(p.spend),
                    "spendInDZD": str(p.spend_in_dzd),
                    "leads": p.leads,
                    "cpl": str(p.cpl),
                }
                for p in stats.daily_trend
            ],
            "conversionRate": str(stats.conversion_rate),
            "totalConversions": stats.total_conversions,
            "recentEntries": [
                {
                    "id": e.id,
                    "date": e.date.isoformat(),
                    "sourceName": e.source_name,
                    "sourceColor": e.source_color,
                    "totalSpend": str(e.total_spend),
                    "totalLeads": e.total_leads,
                    "currency": e.currency.value,
                }
                for e in stats.recent_entries
            ],
            "periodComparison": None if comparison is None else {
                "previousSpend": str(comparison.previous_spend),
                "previousLeads": comparison.previous_leads,
                "spendChange": str(comparison.spend_change),
                "leadsChange": str(comparison.leads_change),
                "cplChange": str(comparison.cpl_change),
            },
        }

    def source_analytics_to_dict(self, analytics: SourceAnalytics) -> Dict[str, Any]:
        return {
            "sourceId": analytics.source_id,
            "sourceName": analytics.source_name,
            "sourceColor": analytics.source_color,
            "totalSpend": str(analytics.total_spend),
            "totalSpendInDZD": str(analytics.total_spend_in_dzd),
            "totalLeads": analytics.total_leads,
            "averageCPL": str(analytics.average_cpl),
            "conversions": analytics.conversions,
            "conversionRate": str(analytics.conversion_rate),
            "entries": analytics.entries,
            "percentageOfTotal": str(analytics.percentage_of_total),
            "trend": [
                {"date": p.date, "spend": str(p.spend), "leads": p.leads}
                for p in analytics.trend
            ],
        }

    def conversion_analytics_to_dict(self, analytics: ConversionAnalytics) -> Dict[str, Any]:
        return {
            "totalLeads": analytics.total_leads,
            "totalConversions": analytics.total_conversions,
            "conversionRate": str(analytics.conversion_rate),
            "totalOrderValue": str(analytics.total_order_value),
            "averageOrderValue": str(analytics.average_order_value),
            "revenuePerLead": str(analytics.revenue_per_lead),
            "bySource": [
                {
                    "sourceId": s.source_id,
                    "sourceName": s.source_name,
                    "leads": s.leads,
                    "conversions": s.conversions,
                    "conversionRate": str(s.conversion_rate),
                    "orderValue": str(s.order_value),
                }
                for s in analytics.by_source
            ],
        }

    # Reports

    def serialise_status_report(
        self,
        statuses: List[BudgetStatus],
        generated_at: datetime
    ) -> str:
        """
        Serialises budget statuses with report metadata.

        Args:
            statuses: Budget statuses of one month.
            generated_at: Report timestamp.

        Returns:
            JSON string representation.
        """
        data = {
            "metadata": self._metadata(generated_at),
            "summary": {
                "budgetCount": len(statuses),
                "overBudgetCount": sum(1 for s in statuses if s.is_over_budget),
                "nearThresholdCount": sum(1 for s in statuses if s.is_near_threshold),
            },
            "budgets": [self.status_to_dict(s) for s in statuses],
        }
        return json.dumps(data, cls=DecimalEncoder, indent=2)

    def deserialise_status_report(self, json_str: str) -> List[BudgetStatus]:
        """
        Rebuilds budget statuses from a status report.

        Raises:
            json.JSONDecodeError: If JSON is malformed.
            KeyError: If required fields are missing.
        """
        data = json.loads(json_str)
        return [self._dict_to_status(item) for item in data["budgets"]]

    def serialise_dashboard(self, stats: DashboardStats, generated_at: datetime) -> str:
        data = {
            "metadata": self._metadata(generated_at),
            "dashboard": self.dashboard_to_dict(stats),
        }
        return json.dumps(data, cls=DecimalEncoder, indent=2)

    def serialise_analytics(
        self,
        sources: List[SourceAnalytics],
        conversions: ConversionAnalytics,
        generated_at: datetime
    ) -> str:
        data = {
            "metadata": self._metadata(generated_at),
            "sources": [self.source_analytics_to_dict(s) for s in sources],
            "conversions": self.conversion_analytics_to_dict(conversions),
        }
        return json.dumps(data, cls=DecimalEncoder, indent=2)

    def save_to_file(self, json_str: str, file_path: Union[str, Path]) -> None:
        """
        Writes a serialised report to disk, creating parent directories.

        Raises:
            PermissionError: If file cannot be written.
        """
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(json_str, encoding="utf-8")

    def generate_filename(self, prefix: str, generated_at: datetime) -> str:
        """
        Generates a timestamped filename for reports.

        Returns:
            Filename like "status_2024-10-18_143052.json".
        """
        return f"{prefix}_{generated_at.strftime('%Y-%m-%d_%H%M%S')}.json"

    def _metadata(self, generated_at: datetime) -> Dict[str, Any]:
        return {
            "timestamp": generated_at.isoformat(),
            "version": self._version,
            "generatedBy": "SpendWatch DZD",
        }

    @staticmethod
    def _dict_to_status(data: Dict[str, Any]) -> BudgetStatus:
        return BudgetStatus(
            budget_id=data["budgetId"],
            month=data["month"],
            year=data["year"],
            source_id=data["sourceId"],
            source_name=data["sourceName"],
            budget_amount=Decimal(data["budgetAmount"]),
            current_spend=Decimal(data["currentSpend"]),
            current_spend_usd=Decimal(data["currentSpendUSD"]),
            spend_percentage=Decimal(data["spendPercentage"]),
            remaining=Decimal(data["remaining"]),
            alert_threshold=Decimal(data["alertThreshold"]),
            is_over_budget=data["isOverBudget"],
            is_near_threshold=data["isNearThreshold"],
        )
