"""Tests for budget thresholds."""

import pytest
from decimal import Decimal

from subtracker.analysis.budgets import (
    budget_monthly_amount,
    budget_spending,
    calculate_budget_status,
    evaluate_budgets,
)
from subtracker.models.subscription import (
    BillingFrequency,
    Budget,
    BudgetPeriod,
    SubscriptionCategory,
    SubscriptionStatus,
)


@pytest.fixture
def snapshot(make_record):
    return [
        make_record(id="netflix", amount="15.99"),
        make_record(
            id="gym",
            name="Gym",
            amount="5",
            category=SubscriptionCategory.FITNESS,
            billing_frequency=BillingFrequency.WEEKLY,
        ),
        make_record(
            id="old",
            name="Old Service",
            amount="100",
            status=SubscriptionStatus.CANCELLED,
        ),
    ]


class TestBudgetSpending:
    """Tests for what counts toward a budget."""

    def test_active_only_with_budget_weekly_factor(self, snapshot):
        """Test cancelled records are skipped and weekly uses 4.33."""
        budget = Budget(name="All", amount=Decimal("50"))
        assert budget_spending(budget, snapshot) == pytest.approx(15.99 + 21.65)

    def test_category_budget(self, snapshot):
        """Test a category budget only counts its category."""
        budget = Budget(
            name="Fun",
            amount=Decimal("50"),
            category=SubscriptionCategory.ENTERTAINMENT,
        )
        assert budget_spending(budget, snapshot) == pytest.approx(15.99)

    def test_yearly_budget_spread_over_months(self):
        """Test yearly budgets are divided by 12."""
        budget = Budget(name="Year", amount=Decimal("600"), period=BudgetPeriod.YEARLY)
        assert budget_monthly_amount(budget) == pytest.approx(50)


class TestBudgetStatus:
    """Tests for over / near-limit flags."""

    def test_under_budget(self, snapshot):
        """Test spending well below the limit sets no flags."""
        status = calculate_budget_status(Budget(name="All", amount=Decimal("50")), snapshot)
        assert status.percentage == pytest.approx((15.99 + 21.65) / 50 * 100)
        assert status.is_over_budget is False
        assert status.is_near_limit is False

    def test_near_limit(self, snapshot):
        """Test spending between 80% and 100% is near the limit."""
        status = calculate_budget_status(Budget(name="All", amount=Decimal("40")), snapshot)
        assert status.is_near_limit is True
        assert status.is_over_budget is False

    def test_over_budget(self, snapshot):
        """Test spending above 100% is over budget."""
        status = calculate_budget_status(Budget(name="All", amount=Decimal("30")), snapshot)
        assert status.is_over_budget is True
        assert status.is_near_limit is False

    def test_exactly_full_is_near_not_over(self, make_record):
        """Test exactly 100% is near the limit but not over."""
        status = calculate_budget_status(
            Budget(name="All", amount=Decimal("50")),
            [make_record(amount="50")],
        )
        assert status.percentage == pytest.approx(100)
        assert status.is_over_budget is False
        assert status.is_near_limit is True

    def test_exactly_eighty_is_not_near(self, make_record):
        """Test the near-limit threshold is strict."""
        status = calculate_budget_status(
            Budget(name="All", amount=Decimal("50")),
            [make_record(amount="40")],
        )
        assert status.is_near_limit is False

    def test_custom_threshold(self, make_record):
        """Test the near-limit threshold is configurable."""
        status = calculate_budget_status(
            Budget(name="All", amount=Decimal("50")),
            [make_record(amount="40")],
            near_limit_percent=75.0,
        )
        assert status.is_near_limit is True

    def test_evaluate_budgets_keeps_order(self, snapshot):
        """Test one status per budget in input order."""
        budgets = [
            Budget(id="b1", name="All", amount=Decimal("50")),
            Budget(id="b2", name="Fitness", amount=Decimal("20"), category=SubscriptionCategory.FITNESS),
        ]
        statuses = evaluate_budgets(budgets, iter(snapshot))
        assert [s.budget.id for s in statuses] == ["b1", "b2"]
        assert statuses[1].is_over_budget is True
