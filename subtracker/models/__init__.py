"""
Data Models Package

This package contains all Pydantic models used in SubTracker.
Records loaded from storage and every derived result conform to these schemas.
"""

from subtracker.models.subscription import (
    AnalysisReport,
    BillingFrequency,
    Budget,
    BudgetPeriod,
    BudgetStatus,
    CalendarDay,
    CategorySpend,
    DuplicateGroup,
    NotificationItem,
    NotificationPriority,
    NotificationSettings,
    NotificationType,
    PriceChange,
    SavingsSuggestion,
    SelectionStats,
    SpendingSummary,
    SubscriptionCategory,
    SubscriptionRecord,
    SubscriptionStatus,
    ValidationIssue,
    ValidationResult,
)
from subtracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Subscription models
    "AnalysisReport",
    "BillingFrequency",
    "Budget",
    "BudgetPeriod",
    "BudgetStatus",
    "CalendarDay",
    "CategorySpend",
    "DuplicateGroup",
    "NotificationItem",
    "NotificationPriority",
    "NotificationSettings",
    "NotificationType",
    "PriceChange",
    "SavingsSuggestion",
    "SelectionStats",
    "SpendingSummary",
    "SubscriptionCategory",
    "SubscriptionRecord",
    "SubscriptionStatus",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
