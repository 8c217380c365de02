"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the default storage backend because:
1. The user can view and edit their subscriptions directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (a personal subscription list is tiny)
- No transactions (we handle this with careful ordering)
- Limited query capabilities (we filter in Python)

Rows are loosely typed. A row that cannot be parsed into a model is skipped
when listing, so one bad cell never hides the rest of the snapshot.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from subtracker.config import get_settings
from subtracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from subtracker.models.subscription import (
    BillingFrequency,
    Budget,
    BudgetPeriod,
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
    StorageConnectionError,
    StorageError,
    SubscriptionStorageInterface,
)


SUBSCRIPTION_COLUMNS = [
    "id",
    "user_id",
    "name",
    "category",
    "amount",
    "currency",
    "billing_frequency",
    "next_billing_date",
    "last_billing_date",
    "website",
    "description",
    "status",
    "created_at",
    "updated_at",
]

BUDGET_COLUMNS = [
    "id",
    "user_id",
    "name",
    "amount",
    "period",
    "category",
    "created_at",
    "updated_at",
]

DISMISSAL_COLUMNS = [
    "kind",
    "value",
    "dismissed_at",
]

PRICE_HISTORY_COLUMNS = [
    "subscription_id",
    "old_amount",
    "new_amount",
    "changed_on",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

DISMISSED_DUPLICATE = "duplicate"
DISMISSED_NOTIFICATION = "notification"

# Duplicate and missing rows are answers, not transient API failures
_sheets_retry = retry(
    retry=retry_if_not_exception_type((DuplicateError, NotFoundError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _cell(row: list, index: int, default: str = "") -> str:
    """Handle short rows and empty cells gracefully."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @_sheets_retry
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_subscriptions_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.subscriptions_sheet_name, SUBSCRIPTION_COLUMNS
        )

    def get_budgets_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.budgets_sheet_name, BUDGET_COLUMNS
        )

    def get_dismissals_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.dismissals_sheet_name, DISMISSAL_COLUMNS
        )

    def get_price_history_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.price_history_sheet_name, PRICE_HISTORY_COLUMNS
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsSubscriptionStorage(SubscriptionStorageInterface):
    """
    Google Sheets implementation of subscription storage.

    One subscription per row, in insertion order.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _subscription_to_row(self, subscription: SubscriptionRecord) -> list:
        return [
            subscription.id,
            subscription.user_id or "",
            subscription.name,
            subscription.category.value,
            str(subscription.amount),
            subscription.currency,
            subscription.billing_frequency.value,
            subscription.next_billing_date.isoformat(),
            subscription.last_billing_date.isoformat() if subscription.last_billing_date else "",
            subscription.website or "",
            subscription.description or "",
            subscription.status.value,
            subscription.created_at.isoformat(),
            subscription.updated_at.isoformat(),
        ]

    def _row_to_subscription(self, row: list) -> SubscriptionRecord:
        last_billing = _cell(row, 8)
        return SubscriptionRecord(
            id=_cell(row, 0),
            user_id=_cell(row, 1) or None,
            name=_cell(row, 2),
            category=SubscriptionCategory(_cell(row, 3, "other")),
            amount=Decimal(_cell(row, 4, "0")),
            currency=_cell(row, 5, "USD"),
            billing_frequency=BillingFrequency(_cell(row, 6, "monthly")),
            next_billing_date=date.fromisoformat(_cell(row, 7)),
            last_billing_date=date.fromisoformat(last_billing) if last_billing else None,
            website=_cell(row, 9) or None,
            description=_cell(row, 10) or None,
            status=SubscriptionStatus(_cell(row, 11, "active")),
            created_at=datetime.fromisoformat(_cell(row, 12, datetime.utcnow().isoformat())),
            updated_at=datetime.fromisoformat(_cell(row, 13, datetime.utcnow().isoformat())),
        )

    def _find_row_index(self, all_rows: list[list], subscription_id: str) -> Optional[int]:
        # Sheet rows are 1-based and row 1 is the header
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == subscription_id:
                return idx
        return None

    @_sheets_retry
    async def save_subscription(self, subscription: SubscriptionRecord) -> bool:
        """Append a subscription row."""
        try:
            sheet = self._client.get_subscriptions_sheet()
            if self._find_row_index(sheet.get_all_values(), subscription.id):
                raise DuplicateError(f"Subscription already exists: {subscription.id}")
            sheet.append_row(self._subscription_to_row(subscription), value_input_option="RAW")
            return True
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save subscription: {e}")

    async def get_subscription(self, subscription_id: str) -> Optional[SubscriptionRecord]:
        try:
            sheet = self._client.get_subscriptions_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == subscription_id:
                    return self._row_to_subscription(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get subscription: {e}")

    async def update_subscription(self, subscription: SubscriptionRecord) -> bool:
        try:
            sheet = self._client.get_subscriptions_sheet()
            idx = self._find_row_index(sheet.get_all_values(), subscription.id)
            if idx is None:
                raise NotFoundError(f"Subscription not found: {subscription.id}")

            updated = subscription.model_copy(update={"updated_at": datetime.utcnow()})
            for col_idx, value in enumerate(self._subscription_to_row(updated), start=1):
                sheet.update_cell(idx, col_idx, value)
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update subscription: {e}")

    async def delete_subscription(self, subscription_id: str) -> bool:
        try:
            sheet = self._client.get_subscriptions_sheet()
            idx = self._find_row_index(sheet.get_all_values(), subscription_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete subscription: {e}")

    async def list_subscriptions(
        self,
        user_id: Optional[str] = None,
        category: Optional[SubscriptionCategory] = None,
        status: Optional[SubscriptionStatus] = None,
    ) -> list[SubscriptionRecord]:
        try:
            sheet = self._client.get_subscriptions_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list subscriptions: {e}")

        subscriptions = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                subscription = self._row_to_subscription(row)
            except Exception:
                continue  # Skip malformed rows

            if user_id and subscription.user_id != user_id:
                continue
            if category and subscription.category != category:
                continue
            if status and subscription.status != status:
                continue
            subscriptions.append(subscription)

        return subscriptions


class GoogleSheetsBudgetStorage(BudgetStorageInterface):
    """Google Sheets implementation of budget storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _budget_to_row(self, budget: Budget) -> list:
        return [
            budget.id,
            budget.user_id or "",
            budget.name,
            str(budget.amount),
            budget.period.value,
            budget.category.value if budget.category else "",
            budget.created_at.isoformat(),
            budget.updated_at.isoformat(),
        ]

    def _row_to_budget(self, row: list) -> Budget:
        category = _cell(row, 5)
        return Budget(
            id=_cell(row, 0),
            user_id=_cell(row, 1) or None,
            name=_cell(row, 2),
            amount=Decimal(_cell(row, 3)),
            period=BudgetPeriod(_cell(row, 4, "monthly")),
            category=SubscriptionCategory(category) if category else None,
            created_at=datetime.fromisoformat(_cell(row, 6, datetime.utcnow().isoformat())),
            updated_at=datetime.fromisoformat(_cell(row, 7, datetime.utcnow().isoformat())),
        )

    @_sheets_retry
    async def save_budget(self, budget: Budget) -> bool:
        try:
            sheet = self._client.get_budgets_sheet()
            sheet.append_row(self._budget_to_row(budget), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save budget: {e}")

    async def delete_budget(self, budget_id: str) -> bool:
        try:
            sheet = self._client.get_budgets_sheet()
            for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
                if row and row[0] == budget_id:
                    sheet.delete_rows(idx)
                    return True
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete budget: {e}")

    async def list_budgets(self, user_id: Optional[str] = None) -> list[Budget]:
        try:
            sheet = self._client.get_budgets_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list budgets: {e}")

        budgets = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                budget = self._row_to_budget(row)
            except Exception:
                continue
            if user_id and budget.user_id != user_id:
                continue
            budgets.append(budget)

        budgets.sort(key=lambda b: b.created_at, reverse=True)
        return budgets


class GoogleSheetsDismissalStorage(DismissalStorageInterface):
    """
    Google Sheets implementation of dismissed-state storage.

    Both lists share one sheet, told apart by the `kind` column.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @_sheets_retry
    async def _append(self, kind: str, value: str) -> bool:
        try:
            sheet = self._client.get_dismissals_sheet()
            sheet.append_row(
                [kind, value, datetime.utcnow().isoformat()],
                value_input_option="RAW",
            )
            return True
        except Exception as e:
            raise StorageError(f"Failed to save dismissal: {e}")

    async def _list(self, kind: str) -> set[str]:
        try:
            sheet = self._client.get_dismissals_sheet()
            return {
                row[1]
                for row in sheet.get_all_values()[1:]
                if len(row) > 1 and row[0] == kind and row[1]
            }
        except Exception as e:
            raise StorageError(f"Failed to list dismissals: {e}")

    async def add_dismissed_duplicate(self, group_key: str) -> bool:
        return await self._append(DISMISSED_DUPLICATE, group_key)

    async def list_dismissed_duplicates(self) -> set[str]:
        return await self._list(DISMISSED_DUPLICATE)

    async def add_dismissed_notification(self, notification_id: str) -> bool:
        return await self._append(DISMISSED_NOTIFICATION, notification_id)

    async def list_dismissed_notifications(self) -> set[str]:
        return await self._list(DISMISSED_NOTIFICATION)


class GoogleSheetsPriceHistory(PriceHistoryInterface):
    """Google Sheets implementation of the price-history feed."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @_sheets_retry
    async def record_price_change(self, change: PriceChange) -> bool:
        try:
            sheet = self._client.get_price_history_sheet()
            sheet.append_row(
                [
                    change.subscription_id,
                    str(change.old_amount),
                    str(change.new_amount),
                    change.changed_on.isoformat(),
                ],
                value_input_option="RAW",
            )
            return True
        except Exception as e:
            raise StorageError(f"Failed to record price change: {e}")

    async def list_price_changes(
        self,
        subscription_id: Optional[str] = None,
    ) -> list[PriceChange]:
        try:
            sheet = self._client.get_price_history_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list price changes: {e}")

        changes = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            if subscription_id and row[0] != subscription_id:
                continue
            try:
                changes.append(PriceChange(
                    subscription_id=_cell(row, 0),
                    old_amount=Decimal(_cell(row, 1)),
                    new_amount=Decimal(_cell(row, 2)),
                    changed_on=date.fromisoformat(_cell(row, 3)),
                ))
            except Exception:
                continue
        return changes


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            entity_type=_cell(row, 4) or None,
            entity_id=_cell(row, 5) or None,
            correlation_id=UUID(_cell(row, 6)) if _cell(row, 6) else None,
            description=_cell(row, 7),
            details=json.loads(_cell(row, 8)) if _cell(row, 8) else {},
            error_message=_cell(row, 9) or None,
            is_user_action=_cell(row, 10).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event; never raises."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception:
            # Audit logging should not break the main flow; the caller logs locally
            return False

    async def _all_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in await self._all_events()
            if e.correlation_id == correlation_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = await self._all_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
