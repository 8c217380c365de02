"""
Budget Thresholds

Compares monthly-normalized spending against user budgets.

Only ACTIVE subscriptions count toward a budget, and weekly charges use the
4.33 weeks-per-month factor. Yearly budgets are spread evenly over 12 months.
"""

from typing import Any, Iterable

from subtracker.analysis.billing import BUDGET_WEEKS_PER_MONTH, record_monthly_equivalent
from subtracker.models.subscription import (
    Budget,
    BudgetPeriod,
    BudgetStatus,
    SubscriptionStatus,
)


NEAR_LIMIT_PERCENT = 80.0


def budget_monthly_amount(budget: Budget) -> float:
    """Budget limit expressed per month."""
    amount = float(budget.amount)
    if budget.period == BudgetPeriod.YEARLY:
        return amount / 12
    return amount


def budget_spending(budget: Budget, records: Iterable[Any]) -> float:
    """Monthly spend of the active records this budget covers."""
    total = 0.0
    for record in records:
        if getattr(record, "status", None) != SubscriptionStatus.ACTIVE:
            continue
        if budget.category is not None and getattr(record, "category", None) != budget.category:
            continue
        total += record_monthly_equivalent(record, weekly_factor=BUDGET_WEEKS_PER_MONTH)
    return total


def calculate_budget_status(
    budget: Budget,
    records: Iterable[Any],
    near_limit_percent: float = NEAR_LIMIT_PERCENT,
) -> BudgetStatus:
    """
    Spending, percentage and threshold flags for one budget.

    Over budget means strictly above 100%. Near the limit means above
    `near_limit_percent` and at most 100%.
    """
    spending = budget_spending(budget, records)
    monthly_amount = budget_monthly_amount(budget)
    percentage = (spending / monthly_amount) * 100

    return BudgetStatus(
        budget=budget,
        spending=spending,
        budget_amount=monthly_amount,
        percentage=percentage,
        is_over_budget=percentage > 100,
        is_near_limit=near_limit_percent < percentage <= 100,
    )


def evaluate_budgets(
    budgets: Iterable[Budget],
    records: Iterable[Any],
    near_limit_percent: float = NEAR_LIMIT_PERCENT,
) -> list[BudgetStatus]:
    """Status of every budget against the same snapshot."""
    snapshot = list(records)
    return [
        calculate_budget_status(budget, snapshot, near_limit_percent)
        for budget in budgets
    ]
