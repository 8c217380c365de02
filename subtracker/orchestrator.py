"""
Main Orchestrator for SubTracker

This module ties together storage and the pure analysis passes, and
defines the end-to-end flows for:
1. Analysis (snapshot -> spend totals, notifications, duplicates, budgets)
2. User decisions (dismiss a duplicate group, merge duplicates, dismiss a
   notification, create/delete budgets, add a subscription)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The analysis passes never touch storage or the clock
- Every decision is persisted through the storage interfaces
- Every step is audited

Storage failures are audited as external service errors and re-raised.
An analysis over a broken snapshot would show the user wrong totals.
"""

from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Optional, Union
from uuid import UUID

import structlog

from subtracker.analysis.billing import upcoming_within_days
from subtracker.analysis.budgets import evaluate_budgets
from subtracker.analysis.insights import savings_suggestions, spending_summary
from subtracker.analysis.notifications import build_notifications
from subtracker.analysis.similarity import detect_duplicates
from subtracker.audit import AuditLogger, configure_logging, create_correlation_id
from subtracker.config import get_settings
from subtracker.models.subscription import (
    AnalysisReport,
    Budget,
    BudgetPeriod,
    DuplicateGroup,
    NotificationSettings,
    SubscriptionCategory,
    SubscriptionRecord,
)
from subtracker.services.storage import (
    BudgetStorageInterface,
    DismissalStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsClient,
    GoogleSheetsDismissalStorage,
    GoogleSheetsPriceHistory,
    GoogleSheetsSubscriptionStorage,
    InMemoryStorage,
    NotFoundError,
    PriceHistoryInterface,
    StorageError,
    SubscriptionStorageInterface,
)
from subtracker.validation import InvalidInputDataError, SubscriptionValidator


logger = structlog.get_logger(__name__)


class SubscriptionAnalysisFlow:
    """
    Orchestrates analysis passes and user decisions.

    Flow for one analysis pass:
    1. Load → subscriptions, budgets, dismissed keys/ids, price history
    2. Analyze → spend summary, upcoming, notifications, duplicates, budgets
    3. Audit → one correlation id for every event of the pass
    4. Report → a single AnalysisReport

    Only subscription storage is required. Missing budget, dismissal or
    price-history backends are treated as empty.
    """

    def __init__(
        self,
        subscription_storage: SubscriptionStorageInterface,
        budget_storage: Optional[BudgetStorageInterface] = None,
        dismissal_storage: Optional[DismissalStorageInterface] = None,
        price_history: Optional[PriceHistoryInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[SubscriptionValidator] = None,
    ):
        self._subscriptions = subscription_storage
        self._budgets = budget_storage
        self._dismissals = dismissal_storage
        self._price_history = price_history
        self._audit_logger = audit_logger
        self._validator = validator or SubscriptionValidator(subscription_storage)
        self._settings = get_settings()

    async def _storage_call(self, operation, correlation_id: UUID, service: str = "storage"):
        """Await a storage operation, auditing failures before re-raising."""
        try:
            return await operation
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service=service,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

    def _require_storage(self, storage: Any, name: str) -> Any:
        if storage is None:
            raise StorageError(f"{name} storage is not configured")
        return storage

    async def run(
        self,
        today: date,
        settings: Optional[NotificationSettings] = None,
        transitive: Optional[bool] = None,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AnalysisReport:
        """
        Run one analysis pass over the current snapshot.

        Args:
            today: Injected current date; the passes never read the clock
            settings: Notification preferences; configured defaults when None
            transitive: Group duplicates by connected components.
                        None uses the configured default.
            user_id: Restrict the snapshot to one owner
            correlation_id: Ties the audit events of this pass together

        Returns:
            AnalysisReport
        """
        correlation_id = correlation_id or create_correlation_id()
        app_settings = self._settings.app
        notification_defaults = self._settings.notifications
        settings = settings or notification_defaults.to_notification_settings()
        if transitive is None:
            transitive = app_settings.transitive_duplicates

        # Step 1: Load the snapshot
        records = await self._storage_call(
            self._subscriptions.list_subscriptions(user_id=user_id),
            correlation_id,
        )
        budgets = []
        if self._budgets:
            budgets = await self._storage_call(
                self._budgets.list_budgets(user_id=user_id),
                correlation_id,
            )
        dismissed_keys, dismissed_ids = set(), set()
        if self._dismissals:
            dismissed_keys = await self._storage_call(
                self._dismissals.list_dismissed_duplicates(),
                correlation_id,
            )
            dismissed_ids = await self._storage_call(
                self._dismissals.list_dismissed_notifications(),
                correlation_id,
            )
        price_history = []
        if self._price_history:
            price_history = await self._storage_call(
                self._price_history.list_price_changes(),
                correlation_id,
            )

        logger.info(
            "analysis_snapshot_loaded",
            record_count=len(records),
            budget_count=len(budgets),
            correlation_id=str(correlation_id),
        )

        # Step 2: Analyze. Both passes read the same snapshot independently.
        try:
            notifications = build_notifications(
                records,
                today,
                settings=settings,
                dismissed_ids=dismissed_ids,
                price_history=price_history,
            )
            duplicates = detect_duplicates(
                records,
                dismissed_keys=dismissed_keys,
                transitive=transitive,
            )
            budget_statuses = evaluate_budgets(
                budgets,
                records,
                near_limit_percent=app_settings.budget_near_limit_percent,
            )

            report = AnalysisReport(
                generated_for=today,
                spending=spending_summary(records),
                upcoming=upcoming_within_days(
                    records, today, notification_defaults.upcoming_window_days
                ),
                notifications=notifications,
                duplicates=duplicates,
                budgets=budget_statuses,
                suggestions=savings_suggestions(records),
            )
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"stage": "analysis", "record_count": len(records)},
                    correlation_id=correlation_id,
                )
            raise

        # Step 3: Audit
        if self._audit_logger:
            if duplicates:
                await self._audit_logger.log_duplicates_detected(
                    group_keys=[group.key for group in duplicates],
                    correlation_id=correlation_id,
                )
            counts = Counter(item.priority.value for item in notifications)
            await self._audit_logger.log_notifications_generated(
                counts_by_priority=dict(counts),
                correlation_id=correlation_id,
            )
            for status in budget_statuses:
                if status.is_over_budget or status.is_near_limit:
                    await self._audit_logger.log_budget_exceeded(
                        budget_id=status.budget.id,
                        budget_name=status.budget.name,
                        percentage=status.percentage,
                        correlation_id=correlation_id,
                    )
            await self._audit_logger.log_analysis_completed(
                record_count=len(records),
                notification_count=len(notifications),
                duplicate_count=len(duplicates),
                correlation_id=correlation_id,
            )

        return report

    async def dismiss_duplicate_group(
        self,
        group: Union[DuplicateGroup, str],
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Mark a group as "not duplicates".

        The key is stored, so the same group never shows up again.
        Returns the dismissed key.
        """
        correlation_id = correlation_id or create_correlation_id()
        key = group.key if isinstance(group, DuplicateGroup) else group
        storage = self._require_storage(self._dismissals, "Dismissal")

        await self._storage_call(storage.add_dismissed_duplicate(key), correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_duplicate_dismissed(
                group_key=key,
                correlation_id=correlation_id,
            )
        return key

    async def merge_duplicates(
        self,
        keep_id: str,
        remove_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> SubscriptionRecord:
        """
        Resolve a duplicate pair by keeping one record and deleting the other.

        Returns:
            The kept record

        Raises:
            ValueError: If both ids are the same
            NotFoundError: If either record does not exist
        """
        if keep_id == remove_id:
            raise ValueError("Cannot merge a subscription with itself")

        correlation_id = correlation_id or create_correlation_id()

        kept = await self._storage_call(
            self._subscriptions.get_subscription(keep_id), correlation_id
        )
        if kept is None:
            raise NotFoundError(f"Subscription not found: {keep_id}")

        removed = await self._storage_call(
            self._subscriptions.delete_subscription(remove_id), correlation_id
        )
        if not removed:
            raise NotFoundError(f"Subscription not found: {remove_id}")

        if self._audit_logger:
            await self._audit_logger.log_duplicates_merged(
                keep_id=keep_id,
                remove_id=remove_id,
                correlation_id=correlation_id,
            )
        return kept

    async def dismiss_notification(
        self,
        notification_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        correlation_id = correlation_id or create_correlation_id()
        storage = self._require_storage(self._dismissals, "Dismissal")

        await self._storage_call(
            storage.add_dismissed_notification(notification_id), correlation_id
        )

        if self._audit_logger:
            await self._audit_logger.log_notification_dismissed(
                notification_id=notification_id,
                correlation_id=correlation_id,
            )

    async def create_budget(
        self,
        name: str,
        amount: Union[Decimal, float, str],
        period: BudgetPeriod = BudgetPeriod.MONTHLY,
        category: Optional[SubscriptionCategory] = None,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        """
        Create and persist a budget.

        Raises:
            pydantic.ValidationError: If the amount is not positive
        """
        correlation_id = correlation_id or create_correlation_id()
        storage = self._require_storage(self._budgets, "Budget")

        budget = Budget(
            name=name,
            amount=Decimal(str(amount)),
            period=period,
            category=category,
            user_id=user_id,
        )
        await self._storage_call(storage.save_budget(budget), correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_budget_created(
                budget_id=budget.id,
                name=budget.name,
                amount=str(budget.amount),
                correlation_id=correlation_id,
            )
        return budget

    async def delete_budget(
        self,
        budget_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()
        storage = self._require_storage(self._budgets, "Budget")

        deleted = await self._storage_call(storage.delete_budget(budget_id), correlation_id)

        if deleted and self._audit_logger:
            await self._audit_logger.log_budget_deleted(
                budget_id=budget_id,
                correlation_id=correlation_id,
            )
        return deleted

    async def add_subscription(
        self,
        data: Mapping[str, Any],
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SubscriptionRecord:
        """
        Validate loosely typed input and persist it.

        Warnings do not block saving; schema errors do.

        Raises:
            InvalidInputDataError: If schema validation fails
        """
        correlation_id = correlation_id or create_correlation_id()

        result = await self._validator.validate(data, today=today)
        if not result.is_valid:
            if self._audit_logger:
                await self._audit_logger.log_subscription_rejected(
                    name=data.get("name"),
                    issues=[issue.model_dump() for issue in result.issues],
                    correlation_id=correlation_id,
                )
            raise InvalidInputDataError(result)

        record = result.record

        await self._storage_call(
            self._subscriptions.save_subscription(record), correlation_id
        )

        if self._audit_logger:
            await self._audit_logger.log_subscription_validated(
                subscription_id=record.id,
                name=record.name,
                warning_count=len(result.warnings),
                correlation_id=correlation_id,
            )
        return record


def create_app_components(
    use_storage: bool = True,
) -> tuple[SubscriptionAnalysisFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run against in-memory storage.

    Returns:
        (analysis_flow, sheets_client)
    """
    configure_logging(get_settings().app.log_level)

    sheets_client = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            flow = SubscriptionAnalysisFlow(
                subscription_storage=GoogleSheetsSubscriptionStorage(sheets_client),
                budget_storage=GoogleSheetsBudgetStorage(sheets_client),
                dismissal_storage=GoogleSheetsDismissalStorage(sheets_client),
                price_history=GoogleSheetsPriceHistory(sheets_client),
                audit_logger=AuditLogger(GoogleSheetsAuditStorage(sheets_client)),
            )
            return flow, sheets_client
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None

    memory = InMemoryStorage()
    flow = SubscriptionAnalysisFlow(
        subscription_storage=memory,
        budget_storage=memory,
        dismissal_storage=memory,
        price_history=memory,
        audit_logger=AuditLogger(),  # Local-only logging
    )
    return flow, sheets_client
