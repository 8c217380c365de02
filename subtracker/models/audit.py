"""
Audit Models for SubTracker

Every analysis pass and every user decision (dismiss, merge, budget change)
is logged for audit purposes. This provides:
1. Traceability of what the user was shown and what they decided
2. Debugging information when a pass misbehaves
3. Ability to reconstruct why a duplicate group disappeared

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Analysis passes
    ANALYSIS_COMPLETED = "analysis_completed"
    DUPLICATES_DETECTED = "duplicates_detected"
    NOTIFICATIONS_GENERATED = "notifications_generated"
    BUDGET_EXCEEDED = "budget_exceeded"

    # User decisions
    DUPLICATE_DISMISSED = "duplicate_dismissed"
    DUPLICATES_MERGED = "duplicates_merged"
    NOTIFICATION_DISMISSED = "notification_dismissed"
    BUDGET_CREATED = "budget_created"
    BUDGET_DELETED = "budget_deleted"

    # Input validation
    SUBSCRIPTION_VALIDATED = "subscription_validated"
    SUBSCRIPTION_REJECTED = "subscription_rejected"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'subscription', 'budget', 'duplicate_group')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID or key of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one analysis pass)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.duplicates_detected(3, keys, correlation_id)
        event = AuditEventBuilder.duplicate_dismissed(key, correlation_id)
    """

    @staticmethod
    def analysis_completed(
        record_count: int,
        notification_count: int,
        duplicate_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYSIS_COMPLETED,
            entity_type="snapshot",
            correlation_id=correlation_id,
            description=(
                f"Analysis completed over {record_count} subscriptions: "
                f"{notification_count} notifications, {duplicate_count} duplicate groups"
            ),
            details={
                "record_count": record_count,
                "notification_count": notification_count,
                "duplicate_count": duplicate_count,
            },
        )

    @staticmethod
    def duplicates_detected(
        group_keys: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATES_DETECTED,
            severity=AuditSeverity.WARNING,
            entity_type="duplicate_group",
            correlation_id=correlation_id,
            description=f"{len(group_keys)} potential duplicate group(s) detected",
            details={
                "group_keys": group_keys,
            },
        )

    @staticmethod
    def notifications_generated(
        counts_by_priority: dict[str, int],
        correlation_id: UUID,
    ) -> AuditEvent:
        total = sum(counts_by_priority.values())
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATIONS_GENERATED,
            entity_type="notification",
            correlation_id=correlation_id,
            description=f"{total} notification(s) generated",
            details={
                "by_priority": counts_by_priority,
            },
        )

    @staticmethod
    def budget_exceeded(
        budget_id: str,
        budget_name: str,
        percentage: float,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_EXCEEDED,
            severity=AuditSeverity.WARNING,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Budget '{budget_name}' at {percentage:.0f}%",
            details={
                "percentage": round(percentage, 2),
            },
        )

    @staticmethod
    def duplicate_dismissed(
        group_key: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_DISMISSED,
            entity_type="duplicate_group",
            entity_id=group_key,
            correlation_id=correlation_id,
            description="User marked group as not duplicates",
            is_user_action=True,
        )

    @staticmethod
    def duplicates_merged(
        keep_id: str,
        remove_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATES_MERGED,
            entity_type="subscription",
            entity_id=keep_id,
            correlation_id=correlation_id,
            description=f"User kept {keep_id} and removed {remove_id}",
            details={
                "removed_id": remove_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def notification_dismissed(
        notification_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_DISMISSED,
            entity_type="notification",
            entity_id=notification_id,
            correlation_id=correlation_id,
            description=f"Notification dismissed: {notification_id}",
            is_user_action=True,
        )

    @staticmethod
    def budget_created(
        budget_id: str,
        name: str,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CREATED,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Budget created: {name} - {amount}",
            details={
                "name": name,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def budget_deleted(
        budget_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_DELETED,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Budget deleted: {budget_id}",
            is_user_action=True,
        )

    @staticmethod
    def subscription_validated(
        subscription_id: str,
        name: str,
        warning_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_VALIDATED,
            entity_type="subscription",
            entity_id=subscription_id,
            correlation_id=correlation_id,
            description=f"Subscription saved: {name}",
            details={
                "warning_count": warning_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def subscription_rejected(
        name: Optional[str],
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="subscription",
            correlation_id=correlation_id,
            description=f"Subscription input rejected with {len(issues)} issues",
            details={
                "name": name,
                "issues": issues,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
