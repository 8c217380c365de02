"""
Spending Insights

Dashboard-level views over a snapshot: spend by category, savings tips,
search filters, bulk-selection stats, a billing calendar and JSON export.

All totals here use the flat 4 weeks-per-month factor, except the
bulk-selection total which matches the budget figures (4.33).
"""

import calendar
import json
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from subtracker.analysis.billing import (
    BUDGET_WEEKS_PER_MONTH,
    aggregate_monthly_spend,
    amount_as_decimal,
    project_charge_dates,
    record_monthly_equivalent,
)
from subtracker.models.subscription import (
    BillingFrequency,
    CalendarDay,
    CategorySpend,
    SavingsSuggestion,
    SelectionStats,
    SpendingSummary,
    SubscriptionCategory,
    SubscriptionRecord,
    SubscriptionStatus,
)


ENTERTAINMENT_MIN_SUBSCRIPTIONS = 2
ENTERTAINMENT_SPEND_LIMIT = 50
ENTERTAINMENT_REDUCTION_RATE = Decimal("0.3")
YEARLY_SWITCH_MIN_AMOUNT = 10
YEARLY_SWITCH_DISCOUNT = Decimal("0.15")


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _category(value: Any) -> SubscriptionCategory:
    try:
        return SubscriptionCategory(value)
    except (TypeError, ValueError):
        return SubscriptionCategory.OTHER


def spending_summary(records: Iterable[Any]) -> SpendingSummary:
    """
    Monthly totals over every record and over active records only.

    Both figures are reported so the caller decides which one to show.
    """
    snapshot = list(records)
    active = [r for r in snapshot if getattr(r, "status", None) == SubscriptionStatus.ACTIVE]
    return SpendingSummary(
        total_monthly=aggregate_monthly_spend(snapshot),
        active_monthly=aggregate_monthly_spend(active),
        subscription_count=len(snapshot),
        active_count=len(active),
    )


def spending_by_category(records: Iterable[Any]) -> list[CategorySpend]:
    """Monthly spend per category, highest first."""
    totals: dict[SubscriptionCategory, float] = {}
    counts: dict[SubscriptionCategory, int] = {}

    for record in records:
        category = _category(getattr(record, "category", None))
        totals[category] = totals.get(category, 0.0) + record_monthly_equivalent(record)
        counts[category] = counts.get(category, 0) + 1

    breakdown = [
        CategorySpend(
            category=category,
            monthly_amount=amount,
            subscription_count=counts[category],
        )
        for category, amount in totals.items()
    ]
    breakdown.sort(key=lambda item: item.monthly_amount, reverse=True)
    return breakdown


def top_categories(records: Iterable[Any], limit: int = 5) -> list[CategorySpend]:
    return spending_by_category(records)[:limit]


def most_expensive(records: Iterable[Any]) -> Optional[Any]:
    """Record with the highest monthly equivalent (first one wins ties)."""
    snapshot = list(records)
    if not snapshot:
        return None
    return max(snapshot, key=record_monthly_equivalent)


def savings_suggestions(records: Iterable[Any]) -> list[SavingsSuggestion]:
    """
    Heuristic savings tips.

    - More than two entertainment subscriptions costing over 50/month:
      suggest trimming them (30% of that spend).
    - Monthly-billed subscriptions over 10: suggest yearly billing
      (about 15% of a year's charges).
    """
    snapshot = list(records)
    suggestions = []

    entertainment = [
        r for r in snapshot
        if getattr(r, "category", None) == SubscriptionCategory.ENTERTAINMENT
    ]
    if len(entertainment) > ENTERTAINMENT_MIN_SUBSCRIPTIONS:
        total_entertainment = sum(record_monthly_equivalent(r) for r in entertainment)
        if total_entertainment > ENTERTAINMENT_SPEND_LIMIT:
            suggestions.append(SavingsSuggestion(
                type="reduce",
                message=(
                    "Consider reducing entertainment subscriptions. "
                    f"You're spending {total_entertainment:.2f}/month."
                ),
                savings=_round_half_up(
                    float(Decimal(str(total_entertainment)) * ENTERTAINMENT_REDUCTION_RATE)
                ),
            ))

    monthly_billed = [
        r for r in snapshot
        if getattr(r, "billing_frequency", None) == BillingFrequency.MONTHLY
        and amount_as_decimal(getattr(r, "amount", None)) > YEARLY_SWITCH_MIN_AMOUNT
    ]
    if monthly_billed:
        plural = "s" if len(monthly_billed) > 1 else ""
        yearly_cost = sum(amount_as_decimal(r.amount) for r in monthly_billed) * 12
        suggestions.append(SavingsSuggestion(
            type="optimize",
            message=(
                f"Switch to yearly billing for {len(monthly_billed)} "
                f"subscription{plural} to save ~15%"
            ),
            savings=_round_half_up(float(yearly_cost * YEARLY_SWITCH_DISCOUNT)),
        ))

    return suggestions


def filter_subscriptions(
    records: Iterable[Any],
    search: str = "",
    category: Optional[str] = None,
    status: Optional[str] = None,
) -> list[Any]:
    """
    Search and filter a snapshot.

    `search` matches name or description, case-insensitive. A category or
    status of None or "all" disables that filter.
    """
    term = (search or "").strip().lower()
    results = []

    for record in records:
        if term:
            name = (getattr(record, "name", None) or "").lower()
            description = (getattr(record, "description", None) or "").lower()
            if term not in name and term not in description:
                continue
        if category not in (None, "all") and getattr(record, "category", None) != category:
            continue
        if status not in (None, "all") and getattr(record, "status", None) != status:
            continue
        results.append(record)

    return results


def selection_stats(records: Iterable[Any], selected_ids: Iterable[str]) -> SelectionStats:
    """Monthly total and per-status counts of the selected records."""
    wanted = set(selected_ids)
    selected = [r for r in records if getattr(r, "id", None) in wanted]

    status_counts: dict[str, int] = {}
    for record in selected:
        status = getattr(record, "status", None)
        key = status.value if isinstance(status, SubscriptionStatus) else str(status)
        status_counts[key] = status_counts.get(key, 0) + 1

    return SelectionStats(
        selected_count=len(selected),
        monthly_total=sum(
            record_monthly_equivalent(r, weekly_factor=BUDGET_WEEKS_PER_MONTH)
            for r in selected
        ),
        status_counts=status_counts,
    )


def billing_calendar(records: Iterable[Any], year: int, month: int) -> list[CalendarDay]:
    """
    One entry per day of the month with the charges projected onto it.

    Charges are projected forward from each record's next billing date by
    its cadence, so a weekly subscription shows up every week.
    """
    _, last_day = calendar.monthrange(year, month)
    start = date(year, month, 1)
    end = date(year, month, last_day)

    by_day: dict[date, list[SubscriptionRecord]] = {}
    for record in records:
        for charge in project_charge_dates(record, start, end):
            by_day.setdefault(charge, []).append(record)

    days = []
    for day_number in range(1, last_day + 1):
        day = date(year, month, day_number)
        charged = by_day.get(day, [])
        days.append(CalendarDay(
            day=day,
            subscriptions=charged,
            total_amount=sum((amount_as_decimal(r.amount) for r in charged), Decimal("0")),
        ))
    return days


def export_filename(exported_on: date, selected_only: bool = False) -> str:
    prefix = "selected-subscriptions" if selected_only else "subscription-tracker"
    return f"{prefix}-{exported_on.isoformat()}.json"


def export_subscriptions(
    records: Iterable[SubscriptionRecord],
    exported_on: date,
) -> str:
    """Serialize records to an indented JSON export document."""
    snapshot = list(records)
    document = {
        "exported_on": exported_on.isoformat(),
        "count": len(snapshot),
        "subscriptions": [record.model_dump(mode="json") for record in snapshot],
    }
    return json.dumps(document, indent=2)
