"""
In-Memory Storage Implementation

Implements every storage interface with plain Python containers.
Used by the test suite and for running the analysis flow without a
configured Google Sheets backend. Nothing survives the process.
"""

from typing import Optional
from uuid import UUID

from subtracker.models.audit import AuditEvent
from subtracker.models.subscription import (
    Budget,
    PriceChange,
    SubscriptionCategory,
    SubscriptionRecord,
    SubscriptionStatus,
)
from subtracker.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    DismissalStorageInterface,
    DuplicateError,
    NotFoundError,
    PriceHistoryInterface,
    SubscriptionStorageInterface,
)


class InMemoryStorage(
    SubscriptionStorageInterface,
    BudgetStorageInterface,
    DismissalStorageInterface,
    PriceHistoryInterface,
    AuditStorageInterface,
):
    """All storage concerns backed by dicts and lists."""

    def __init__(
        self,
        subscriptions: Optional[list[SubscriptionRecord]] = None,
        budgets: Optional[list[Budget]] = None,
    ):
        # dicts keep insertion order, which is the scan order for duplicates
        self._subscriptions: dict[str, SubscriptionRecord] = {}
        for subscription in subscriptions or []:
            self._subscriptions[subscription.id] = subscription
        self._budgets: dict[str, Budget] = {b.id: b for b in budgets or []}
        self._dismissed_duplicates: set[str] = set()
        self._dismissed_notifications: set[str] = set()
        self._price_changes: list[PriceChange] = []
        self._events: list[AuditEvent] = []

    # -- subscriptions ---------------------------------------------------

    async def save_subscription(self, subscription: SubscriptionRecord) -> bool:
        if subscription.id in self._subscriptions:
            raise DuplicateError(f"Subscription already exists: {subscription.id}")
        self._subscriptions[subscription.id] = subscription
        return True

    async def get_subscription(self, subscription_id: str) -> Optional[SubscriptionRecord]:
        return self._subscriptions.get(subscription_id)

    async def update_subscription(self, subscription: SubscriptionRecord) -> bool:
        if subscription.id not in self._subscriptions:
            raise NotFoundError(f"Subscription not found: {subscription.id}")
        self._subscriptions[subscription.id] = subscription
        return True

    async def delete_subscription(self, subscription_id: str) -> bool:
        return self._subscriptions.pop(subscription_id, None) is not None

    async def list_subscriptions(
        self,
        user_id: Optional[str] = None,
        category: Optional[SubscriptionCategory] = None,
        status: Optional[SubscriptionStatus] = None,
    ) -> list[SubscriptionRecord]:
        results = []
        for subscription in self._subscriptions.values():
            if user_id and subscription.user_id != user_id:
                continue
            if category and subscription.category != category:
                continue
            if status and subscription.status != status:
                continue
            results.append(subscription)
        return results

    # -- budgets ---------------------------------------------------------

    async def save_budget(self, budget: Budget) -> bool:
        if budget.id in self._budgets:
            raise DuplicateError(f"Budget already exists: {budget.id}")
        self._budgets[budget.id] = budget
        return True

    async def delete_budget(self, budget_id: str) -> bool:
        return self._budgets.pop(budget_id, None) is not None

    async def list_budgets(self, user_id: Optional[str] = None) -> list[Budget]:
        budgets = [
            b for b in self._budgets.values()
            if not user_id or b.user_id == user_id
        ]
        budgets.sort(key=lambda b: b.created_at, reverse=True)
        return budgets

    # -- dismissals ------------------------------------------------------

    async def add_dismissed_duplicate(self, group_key: str) -> bool:
        self._dismissed_duplicates.add(group_key)
        return True

    async def list_dismissed_duplicates(self) -> set[str]:
        return set(self._dismissed_duplicates)

    async def add_dismissed_notification(self, notification_id: str) -> bool:
        self._dismissed_notifications.add(notification_id)
        return True

    async def list_dismissed_notifications(self) -> set[str]:
        return set(self._dismissed_notifications)

    # -- price history ---------------------------------------------------

    async def record_price_change(self, change: PriceChange) -> bool:
        self._price_changes.append(change)
        return True

    async def list_price_changes(
        self,
        subscription_id: Optional[str] = None,
    ) -> list[PriceChange]:
        return [
            c for c in self._price_changes
            if subscription_id is None or c.subscription_id == subscription_id
        ]

    # -- audit -----------------------------------------------------------

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
