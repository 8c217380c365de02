"""Shared fixtures for SubTracker tests."""

from datetime import date
from decimal import Decimal

import pytest

from subtracker.config import get_settings
from subtracker.models.subscription import (
    BillingFrequency,
    SubscriptionCategory,
    SubscriptionRecord,
    SubscriptionStatus,
)


def build_record(
    id: str = "sub-1",
    name: str = "Netflix",
    amount: str = "15.99",
    category: SubscriptionCategory = SubscriptionCategory.ENTERTAINMENT,
    billing_frequency: BillingFrequency = BillingFrequency.MONTHLY,
    next_billing_date: date = date(2024, 6, 20),
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    **kwargs,
) -> SubscriptionRecord:
    return SubscriptionRecord(
        id=id,
        name=name,
        amount=Decimal(amount),
        category=category,
        billing_frequency=billing_frequency,
        next_billing_date=next_billing_date,
        status=status,
        **kwargs,
    )


@pytest.fixture
def make_record():
    """Factory for SubscriptionRecord with sensible defaults."""
    return build_record


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; tests that set env vars need a fresh read."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
