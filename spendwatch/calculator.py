"""
SpendWatch DZD - Budget Status Module.

This module provides the calculation engine that compares a budget
against the spend recorded in its month. All calculations use Decimal
arithmetic.

Classes:
    BudgetStatusCalculator: Computes BudgetStatus projections.
"""

from decimal import Decimal
from typing import Iterable, List, Optional

from spendwatch.date_logic import DateManager
from spendwatch.schema import (
    HUNDRED,
    ZERO,
    BudgetStatus,
    Currency,
    MediaBuyingBudget,
    MediaBuyingEntry,
)


class BudgetStatusCalculator:
    """
    Compares a monthly budget with the spend of its period.

    The calculator performs no writes; it is a read-only projection over
    entries the caller already fetched.

    Attributes:
        date_manager: DateManager instance for month boundaries.

    Example:
        >>> calculator = BudgetStatusCalculator(DateManager())
        >>> status = calculator.compute_status(budget, entries)
        >>> status.is_over_budget
        False
    """

    def __init__(self, date_manager: Optional[DateManager] = None):
        """
        Initialises the BudgetStatusCalculator.

        Args:
            date_manager: DateManager for month boundaries.
        """
        self._date_manager = date_manager or DateManager()

    def filter_period_entries(
        self,
        budget: MediaBuyingBudget,
        entries: Iterable[MediaBuyingEntry]
    ) -> List[MediaBuyingEntry]:
        """
        Restricts entries to the budget's month and source scope.

        A global budget keeps entries of every source.

        Args:
            budget: Budget defining the scope.
            entries: Candidate entries.

        Returns:
            Entries dated within the budget month and matching its source.
        """
        start, end = self._date_manager.get_month_bounds(budget.year, budget.month)
        return [
            entry for entry in entries
            if start <= entry.date <= end
            and (budget.is_global or entry.source_id == budget.source_id)
        ]

    def calculate_current_spend(self, entries: Iterable[MediaBuyingEntry]) -> Decimal:
        """
        Sums DZD spend, falling back to raw spend for underived entries.

        Args:
            entries: Entries of the period.

        Returns:
            Total DZD spend.
        """
        return sum((entry.normalised_spend for entry in entries), ZERO)

    def calculate_current_spend_usd(self, entries: Iterable[MediaBuyingEntry]) -> Decimal:
        """
        Sums USD-equivalent spend.

        USD entries count as-is. DZD entries are divided by their own rate
        when they carry one, otherwise counted unconverted.

        Args:
            entries: Entries of the period.

        Returns:
            Total USD-equivalent spend.
        """
        total = ZERO
        for entry in entries:
            if entry.currency == Currency.USD:
                total += entry.total_spend
            elif entry.exchange_rate:
                total += entry.total_spend / entry.exchange_rate
            else:
                total += entry.total_spend
        return total

    def calculate_spend_percentage(
        self,
        current_spend: Decimal,
        budget_amount: Decimal
    ) -> Decimal:
        """
        Calculates spend as a percentage of the budget.

        Args:
            current_spend: DZD spend of the period.
            budget_amount: Budget ceiling in DZD.

        Returns:
            Spend percentage (0-100+). Can exceed 100 if over budget.

        Raises:
            ValueError: If budget_amount is zero or negative.
        """
        if budget_amount <= ZERO:
            raise ValueError("Budget amount must be positive")

        return (current_spend / budget_amount) * HUNDRED

    def compute_status(
        self,
        budget: MediaBuyingBudget,
        period_entries: Iterable[MediaBuyingEntry],
        source_name: Optional[str] = None
    ) -> BudgetStatus:
        """
        Builds the status projection for a budget.

        ``period_entries`` must already be restricted to the budget month
        and source (see :meth:`filter_period_entries`).

        Args:
            budget: Budget to evaluate.
            period_entries: Entries within the budget scope.
            source_name: Display name of the budget's source.

        Returns:
            BudgetStatus with spend totals and threshold flags.
        """
        entries = list(period_entries)
        current_spend = self.calculate_current_spend(entries)
        current_spend_usd = self.calculate_current_spend_usd(entries)
        spend_percentage = self.calculate_spend_percentage(
            current_spend, budget.budget_amount
        )

        return BudgetStatus(
            budget_id=budget.id,
            month=budget.month,
            year=budget.year,
            source_id=budget.source_id,
            source_name=source_name,
            budget_amount=budget.budget_amount,
            current_spend=current_spend,
            current_spend_usd=current_spend_usd,
            spend_percentage=spend_percentage,
            remaining=budget.budget_amount - current_spend,
            alert_threshold=budget.alert_threshold,
            is_over_budget=current_spend > budget.budget_amount,
            is_near_threshold=spend_percentage >= budget.alert_threshold,
        )
