"""
Audit Logger

DESIGN DECISION: Every analysis pass and every user decision is logged.
This provides:
1. Traceability of what the user was shown
2. Debugging capability
3. A history of dismiss/merge/budget decisions

The audit logger:
- Is async so it can sit next to the async storage calls
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from subtracker.models.audit import AuditEvent, AuditEventBuilder
from subtracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at `level`."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("subtracker.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_analysis_completed(
        self,
        record_count: int,
        notification_count: int,
        duplicate_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log the end of an analysis pass."""
        event = AuditEventBuilder.analysis_completed(
            record_count=record_count,
            notification_count=notification_count,
            duplicate_count=duplicate_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_duplicates_detected(
        self,
        group_keys: list[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.duplicates_detected(
            group_keys=group_keys,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_notifications_generated(
        self,
        counts_by_priority: dict[str, int],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.notifications_generated(
            counts_by_priority=counts_by_priority,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_budget_exceeded(
        self,
        budget_id: str,
        budget_name: str,
        percentage: float,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.budget_exceeded(
            budget_id=budget_id,
            budget_name=budget_name,
            percentage=percentage,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_duplicate_dismissed(
        self,
        group_key: str,
        correlation_id: UUID,
    ) -> None:
        """Log a "not duplicates" decision."""
        event = AuditEventBuilder.duplicate_dismissed(
            group_key=group_key,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_duplicates_merged(
        self,
        keep_id: str,
        remove_id: str,
        correlation_id: UUID,
    ) -> None:
        """Log a merge decision."""
        event = AuditEventBuilder.duplicates_merged(
            keep_id=keep_id,
            remove_id=remove_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_notification_dismissed(
        self,
        notification_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.notification_dismissed(
            notification_id=notification_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_budget_created(
        self,
        budget_id: str,
        name: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.budget_created(
            budget_id=budget_id,
            name=name,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_budget_deleted(
        self,
        budget_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.budget_deleted(
            budget_id=budget_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_subscription_validated(
        self,
        subscription_id: str,
        name: str,
        warning_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.subscription_validated(
            subscription_id=subscription_id,
            name=name,
            warning_count=warning_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_subscription_rejected(
        self,
        name: Optional[str],
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log rejected subscription input."""
        event = AuditEventBuilder.subscription_rejected(
            name=name,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., an analysis pass).
    Pass it through all subsequent operations.
    """
    return uuid4()
