"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Use Google Sheets now and a real database later
2. Use in-memory storage for testing
3. Keep the analysis passes decoupled from persistence

The interfaces are intentionally small - just the operations the
analysis flow and the user's dismiss/merge/budget decisions need.
"""

from abc import ABC, abstractmethod
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


class SubscriptionStorageInterface(ABC):
    """
    Abstract interface for subscription storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def save_subscription(self, subscription: SubscriptionRecord) -> bool:
        """
        Save a new subscription.

        Raises:
            DuplicateError: If a subscription with the same id exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_subscription(self, subscription_id: str) -> Optional[SubscriptionRecord]:
        """Retrieve a subscription by id, or None."""
        pass

    @abstractmethod
    async def update_subscription(self, subscription: SubscriptionRecord) -> bool:
        """
        Replace an existing subscription.

        Raises:
            NotFoundError: If the subscription doesn't exist
        """
        pass

    @abstractmethod
    async def delete_subscription(self, subscription_id: str) -> bool:
        """
        Delete a subscription.

        Returns:
            True if a row was deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def list_subscriptions(
        self,
        user_id: Optional[str] = None,
        category: Optional[SubscriptionCategory] = None,
        status: Optional[SubscriptionStatus] = None,
    ) -> list[SubscriptionRecord]:
        """
        List subscriptions, in stored order.

        The order matters: duplicate detection scans records in this order.
        """
        pass


class BudgetStorageInterface(ABC):
    """Abstract interface for budget storage."""

    @abstractmethod
    async def save_budget(self, budget: Budget) -> bool:
        pass

    @abstractmethod
    async def delete_budget(self, budget_id: str) -> bool:
        pass

    @abstractmethod
    async def list_budgets(self, user_id: Optional[str] = None) -> list[Budget]:
        """List budgets, newest first."""
        pass


class DismissalStorageInterface(ABC):
    """
    Abstract interface for dismissed-state storage.

    Holds two small id lists: duplicate group keys the user marked as
    "not duplicates", and notification ids the user dismissed.
    """

    @abstractmethod
    async def add_dismissed_duplicate(self, group_key: str) -> bool:
        pass

    @abstractmethod
    async def list_dismissed_duplicates(self) -> set[str]:
        pass

    @abstractmethod
    async def add_dismissed_notification(self, notification_id: str) -> bool:
        pass

    @abstractmethod
    async def list_dismissed_notifications(self) -> set[str]:
        pass


class PriceHistoryInterface(ABC):
    """Abstract interface for the price-history feed."""

    @abstractmethod
    async def record_price_change(self, change: PriceChange) -> bool:
        pass

    @abstractmethod
    async def list_price_changes(
        self,
        subscription_id: Optional[str] = None,
    ) -> list[PriceChange]:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events of one correlation id in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
