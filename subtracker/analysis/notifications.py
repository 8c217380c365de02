"""
Notification Projector

Classifies each subscription into zero or more time-windowed notification
items, then flattens, filters and orders them for display.

BILLING-DATE BRANCH (at most one item per record):
- overdue   (days < 0)                -> critical, actionable
- today     (days == 0)               -> high, actionable
- tomorrow  (days == 1)               -> high, actionable
- upcoming  (1 < days <= days_ahead)  -> high if days <= 2 else medium

INDEPENDENT BRANCHES:
- renewed       last charge within the past 7 days (show_renewed)
- price_change  one item per recent price change (show_price_changes)

Price changes come from an explicit price-history feed, never from chance.
"""

from collections import defaultdict
from datetime import date
from typing import Any, Iterable, Optional

from subtracker.analysis.billing import amount_as_decimal, coerce_date, days_between
from subtracker.models.subscription import (
    NotificationItem,
    NotificationPriority,
    NotificationSettings,
    NotificationType,
    PriceChange,
)


RENEWAL_WINDOW_DAYS = 7
PRICE_CHANGE_WINDOW_DAYS = 30


def _format_money(amount: Any, currency: Any) -> str:
    code = currency if isinstance(currency, str) and currency else "USD"
    return f"{amount_as_decimal(amount):.2f} {code}"


def _plural_days(count: int) -> str:
    return f"{count} day" if count == 1 else f"{count} days"


def _billing_item(record: Any, today: date, days_ahead: int) -> Optional[NotificationItem]:
    days = days_between(getattr(record, "next_billing_date", None), today)
    if days is None:
        return None

    name = getattr(record, "name", "")
    charge = _format_money(getattr(record, "amount", None), getattr(record, "currency", None))
    record_id = getattr(record, "id", "")

    if days < 0:
        return NotificationItem(
            id=f"overdue-{record_id}",
            type=NotificationType.OVERDUE,
            title="Payment Overdue",
            message=f"{name} payment was due {_plural_days(abs(days))} ago",
            item_date=today,
            priority=NotificationPriority.CRITICAL,
            subscription=record,
            actionable=True,
            days_until=days,
        )
    if days == 0:
        return NotificationItem(
            id=f"today-{record_id}",
            type=NotificationType.TODAY,
            title="Charging Today",
            message=f"{name} will be charged {charge} today",
            item_date=today,
            priority=NotificationPriority.HIGH,
            subscription=record,
            actionable=True,
            days_until=days,
        )
    if days == 1:
        return NotificationItem(
            id=f"tomorrow-{record_id}",
            type=NotificationType.UPCOMING,
            title="Charging Tomorrow",
            message=f"{name} will be charged {charge} tomorrow",
            item_date=today,
            priority=NotificationPriority.HIGH,
            subscription=record,
            actionable=True,
            days_until=days,
        )
    if days <= days_ahead:
        return NotificationItem(
            id=f"upcoming-{days}-{record_id}",
            type=NotificationType.UPCOMING,
            title="Upcoming Charge",
            message=f"{name} will be charged {charge} in {_plural_days(days)}",
            item_date=today,
            priority=NotificationPriority.HIGH if days <= 2 else NotificationPriority.MEDIUM,
            subscription=record,
            actionable=False,
            days_until=days,
        )
    return None


def _renewal_item(record: Any, today: date) -> Optional[NotificationItem]:
    last_charge = coerce_date(getattr(record, "last_billing_date", None))
    if last_charge is None:
        return None

    days_since = (today - last_charge).days
    if not 0 <= days_since <= RENEWAL_WINDOW_DAYS:
        return None

    record_id = getattr(record, "id", "")
    name = getattr(record, "name", "")
    return NotificationItem(
        id=f"renewed-{record_id}",
        type=NotificationType.RENEWED,
        title="Recently Renewed",
        message=f"{name} was renewed on {last_charge:%b %d}",
        item_date=last_charge,
        priority=NotificationPriority.LOW,
        subscription=record,
    )


def _price_change_items(
    record: Any,
    today: date,
    price_changes: Iterable[PriceChange],
) -> list[NotificationItem]:
    items = []
    record_id = getattr(record, "id", "")
    name = getattr(record, "name", "")
    for change in price_changes:
        if change.subscription_id != record_id or change.delta == 0:
            continue
        days_since = (today - change.changed_on).days
        if not 0 <= days_since <= PRICE_CHANGE_WINDOW_DAYS:
            continue

        direction = "increased" if change.delta > 0 else "decreased"
        difference = _format_money(abs(change.delta), getattr(record, "currency", None))
        items.append(NotificationItem(
            id=f"price-change-{record_id}-{change.changed_on.isoformat()}",
            type=NotificationType.PRICE_CHANGE,
            title="Price Change Alert",
            message=f"{name} price {direction} by {difference}",
            item_date=change.changed_on,
            priority=NotificationPriority.MEDIUM,
            subscription=record,
            actionable=True,
        ))
    return items


def classify(
    record: Any,
    today: date,
    settings: Optional[NotificationSettings] = None,
    price_changes: Iterable[PriceChange] = (),
) -> list[NotificationItem]:
    """
    Notification items for one record.

    Yields at most one billing-date item, optionally a renewal item, and
    one item per recent price change when price changes are shown.
    """
    settings = settings or NotificationSettings()
    today = coerce_date(today)
    if today is None:
        return []
    items = []

    billing = _billing_item(record, today, settings.days_ahead)
    if billing is not None:
        items.append(billing)

    if settings.show_renewed:
        renewal = _renewal_item(record, today)
        if renewal is not None:
            items.append(renewal)

    if settings.show_price_changes:
        items.extend(_price_change_items(record, today, price_changes))

    return items


def sort_notifications(items: Iterable[NotificationItem]) -> list[NotificationItem]:
    """Priority descending, then item date descending (stable)."""
    return sorted(
        items,
        key=lambda item: (item.priority.rank, item.item_date),
        reverse=True,
    )


def build_notifications(
    records: Iterable[Any],
    today: date,
    settings: Optional[NotificationSettings] = None,
    dismissed_ids: Optional[Iterable[str]] = None,
    price_history: Optional[Iterable[PriceChange]] = None,
) -> list[NotificationItem]:
    """
    Classify every record, drop dismissed items and order the rest.

    Args:
        records: The snapshot
        today: Injected current date
        settings: Notification preferences (defaults when None)
        dismissed_ids: Notification ids the user dismissed
        price_history: Known price changes across all subscriptions
    """
    settings = settings or NotificationSettings()
    dismissed = set(dismissed_ids or ())

    changes_by_subscription = defaultdict(list)
    for change in price_history or ():
        changes_by_subscription[change.subscription_id].append(change)

    items = []
    for record in records:
        items.extend(classify(
            record,
            today,
            settings,
            changes_by_subscription.get(getattr(record, "id", None), ()),
        ))

    return sort_notifications(item for item in items if item.id not in dismissed)
