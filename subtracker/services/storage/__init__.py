"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the persistent backend; the in-memory backend serves tests
and local runs. Both are swappable behind the interfaces.
"""

from subtracker.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    DismissalStorageInterface,
    DuplicateError,
    NotFoundError,
    PriceHistoryInterface,
    StorageConnectionError,
    StorageError,
    SubscriptionStorageInterface,
)
from subtracker.services.storage.memory import InMemoryStorage
from subtracker.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsClient,
    GoogleSheetsDismissalStorage,
    GoogleSheetsPriceHistory,
    GoogleSheetsSubscriptionStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "DismissalStorageInterface",
    "PriceHistoryInterface",
    "SubscriptionStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBudgetStorage",
    "GoogleSheetsClient",
    "GoogleSheetsDismissalStorage",
    "GoogleSheetsPriceHistory",
    "GoogleSheetsSubscriptionStorage",
]
