"""Services package."""

from subtracker.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    DismissalStorageInterface,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsClient,
    GoogleSheetsDismissalStorage,
    GoogleSheetsPriceHistory,
    GoogleSheetsSubscriptionStorage,
    InMemoryStorage,
    NotFoundError,
    PriceHistoryInterface,
    StorageConnectionError,
    StorageError,
    SubscriptionStorageInterface,
)

__all__ = [
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "DismissalStorageInterface",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBudgetStorage",
    "GoogleSheetsClient",
    "GoogleSheetsDismissalStorage",
    "GoogleSheetsPriceHistory",
    "GoogleSheetsSubscriptionStorage",
    "InMemoryStorage",
    "NotFoundError",
    "PriceHistoryInterface",
    "StorageConnectionError",
    "StorageError",
    "SubscriptionStorageInterface",
]
