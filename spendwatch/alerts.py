"""
SpendWatch DZD - Budget Alert Module.

Raises budget alerts when spend for a month crosses a budget's warning
threshold or exceeds the budget outright. Alerts are written at most once
per budget, alert type and budget month.

Classes:
    AlertTrigger: Evaluates budgets after an entry is recorded.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from spendwatch.calculator import BudgetStatusCalculator
from spendwatch.date_logic import DateManager
from spendwatch.repository import SpendRepository, new_id
from spendwatch.schema import (
    HUNDRED,
    AlertType,
    BudgetAlert,
    BudgetFilter,
    EntryFilter,
    MediaBuyingBudget,
)

logger = logging.getLogger(__name__)


def decide_alert(
    spend_percentage: Decimal,
    budget: MediaBuyingBudget
) -> Optional[Tuple[AlertType, Decimal]]:
    """
    Applies the alert decision table to a spend percentage.

    Rules, first match wins:
    - spend >= 100%: BUDGET_EXCEEDED, threshold recorded as 100
    - spend >= alert threshold: THRESHOLD_WARNING, threshold recorded
      as the budget's alert threshold
    - otherwise no alert

    Args:
        spend_percentage: Current spend as percentage of budget.
        budget: Budget being evaluated.

    Returns:
        Tuple of (alert type, recorded threshold), or None.
    """
    if spend_percentage >= HUNDRED:
        return AlertType.BUDGET_EXCEEDED, HUNDRED
    if spend_percentage >= budget.alert_threshold:
        return AlertType.THRESHOLD_WARNING, budget.alert_threshold
    return None


class AlertTrigger:
    """
    Checks the budgets touched by a new entry and records alerts.

    Up to two budgets are checked per entry: the budget of the entry's
    source and the global budget for the same month, both only when
    alerts are enabled on them.

    Persistence errors propagate to the caller.

    Example:
        >>> trigger = AlertTrigger(repository)
        >>> created = trigger.check_budget_alerts(source_id, entry.date)
    """

    def __init__(
        self,
        repository: SpendRepository,
        calculator: Optional[BudgetStatusCalculator] = None,
        date_manager: Optional[DateManager] = None
    ):
        self._repository = repository
        self._date_manager = date_manager or DateManager()
        self._calculator = calculator or BudgetStatusCalculator(self._date_manager)

    def resolve_budgets(self, source_id: str, month: int, year: int) -> List[MediaBuyingBudget]:
        """
        Returns the alert-enabled source and global budgets of a month.

        Args:
            source_id: Source of the new entry.
            month: Entry month.
            year: Entry year.

        Returns:
            Source budget first (if any), then the global budget (if any).
        """
        budgets: List[MediaBuyingBudget] = []
        source_budgets = self._repository.find_budgets(BudgetFilter(
            month=month, year=year, source_id=source_id, alert_enabled=True
        ))
        global_budgets = self._repository.find_budgets(BudgetFilter(
            month=month, year=year, global_only=True, alert_enabled=True
        ))
        budgets.extend(source_budgets[:1])
        budgets.extend(global_budgets[:1])
        return budgets

    def check_budget(
        self,
        budget: MediaBuyingBudget,
        now: Optional[datetime] = None
    ) -> Optional[BudgetAlert]:
        """
        Evaluates one budget and records an alert if the table calls for one.

        Args:
            budget: Budget to evaluate.
            now: Creation time of the alert. Defaults to the current time.

        Returns:
            The newly recorded alert, or None when no alert was due or an
            alert of the same type already exists for the budget month.
        """
        if now is None:
            now = datetime.now()

        start, end = self._date_manager.get_month_bounds(budget.year, budget.month)
        entries = self._repository.find_entries(EntryFilter(
            start=start, end=end, source_id=budget.source_id
        ))
        current_spend = self._calculator.calculate_current_spend(entries)
        spend_percentage = self._calculator.calculate_spend_percentage(
            current_spend, budget.budget_amount
        )

        decision = decide_alert(spend_percentage, budget)
        if decision is None:
            return None

        alert_type, threshold = decision
        existing = self._repository.find_existing_alert(budget.id, alert_type, start)
        if existing is not None:
            logger.debug(
                "Alert %s already raised for budget %s at %s",
                alert_type.value, budget.id, existing.created_at,
            )
            return None

        alert = BudgetAlert(
            id=new_id(),
            budget_id=budget.id,
            alert_type=alert_type,
            threshold=threshold,
            current_spend=current_spend,
            budget_amount=budget.budget_amount,
            period_start=self._date_manager.get_month_start(budget.year, budget.month),
            created_at=now,
        )

        if not self._repository.create_alert(alert):
            logger.debug(
                "Alert %s already raised for budget %s in %02d/%d",
                alert_type.value, budget.id, budget.month, budget.year,
            )
            return None

        logger.info(
            "Raised %s for budget %s: spend %s DZD (%.1f%% of %s)",
            alert_type.value, budget.id, current_spend,
            spend_percentage, budget.budget_amount,
        )
        return alert

    def check_budget_alerts(
        self,
        source_id: str,
        entry_date: datetime,
        now: Optional[datetime] = None
    ) -> List[BudgetAlert]:
        """
        Checks every budget affected by an entry of ``source_id``.

        Args:
            source_id: Source of the recorded entry.
            entry_date: Date of the recorded entry; selects the budget month.
            now: Creation time for any alert. Defaults to the current time.

        Returns:
            Alerts newly recorded by this call.
        """
        created: List[BudgetAlert] = []
        for budget in self.resolve_budgets(source_id, entry_date.month, entry_date.year):
            alert = self.check_budget(budget, now)
            if alert is not None:
                created.append(alert)
        return created
