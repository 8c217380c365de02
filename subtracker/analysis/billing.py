"""
Recurring Billing Calculations

Normalizes heterogeneous billing cadences to a monthly basis and works out
where charges fall in time.

DESIGN DECISION: Every function here is total. Records can arrive from
loosely-typed external input, so a missing or unparseable date makes a
record "never upcoming" instead of raising. Callers always pass `today`;
nothing in this module reads the system clock.

Two weekly conversion factors exist on purpose:
- WEEKS_PER_MONTH (4) for aggregate spend totals and analytics
- BUDGET_WEEKS_PER_MONTH (4.33) for budget percentages and bulk selections
"""

from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Iterator, Optional

from dateutil.relativedelta import relativedelta

from subtracker.models.subscription import BillingFrequency, SubscriptionStatus


WEEKS_PER_MONTH = 4
BUDGET_WEEKS_PER_MONTH = 4.33

# Upper bound on cadence steps when rolling a stale date forward
_MAX_PROJECTION_STEPS = 10000


def coerce_date(value: Any) -> Optional[date]:
    """
    Best-effort conversion to a `date`.

    Accepts date, datetime and ISO-8601 strings. Anything else yields None.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            return None
    return None


def days_between(target: Any, today: Any) -> Optional[int]:
    """
    Whole days from `today` to `target` (negative when target is past).

    Returns None when either side is not a usable date.
    """
    target_date = coerce_date(target)
    today_date = coerce_date(today)
    if target_date is None or today_date is None:
        return None
    return (target_date - today_date).days


def _to_float(amount: Any) -> float:
    if isinstance(amount, bool):
        return 0.0
    try:
        value = float(amount)
    except (TypeError, ValueError, InvalidOperation):
        return 0.0
    if value != value:  # NaN
        return 0.0
    return value


def _frequency(value: Any) -> Optional[BillingFrequency]:
    try:
        return BillingFrequency(value)
    except (TypeError, ValueError):
        return None


def monthly_equivalent(
    amount: Any,
    frequency: Any,
    weekly_factor: float = WEEKS_PER_MONTH,
) -> float:
    """
    Express one charge as its average monthly cost.

    yearly -> /12, quarterly -> /3, weekly -> x weekly_factor,
    monthly (or unknown cadence) -> unchanged.
    """
    value = _to_float(amount)
    cadence = _frequency(frequency)

    if cadence == BillingFrequency.YEARLY:
        return value / 12
    if cadence == BillingFrequency.QUARTERLY:
        return value / 3
    if cadence == BillingFrequency.WEEKLY:
        return value * weekly_factor
    return value


def record_monthly_equivalent(
    record: Any,
    weekly_factor: float = WEEKS_PER_MONTH,
) -> float:
    """Monthly equivalent of a record's amount and cadence."""
    return monthly_equivalent(
        getattr(record, "amount", None),
        getattr(record, "billing_frequency", None),
        weekly_factor=weekly_factor,
    )


def aggregate_monthly_spend(
    records: Iterable[Any],
    statuses: Optional[Iterable[SubscriptionStatus]] = None,
) -> float:
    """
    Sum of monthly equivalents (weekly x 4).

    With no `statuses` filter every record counts, whatever its status.
    Pass e.g. {SubscriptionStatus.ACTIVE} for an active-only total.
    """
    allowed = set(statuses) if statuses is not None else None
    total = 0.0
    for record in records:
        if allowed is not None and getattr(record, "status", None) not in allowed:
            continue
        total += record_monthly_equivalent(record)
    return total


def upcoming_within_days(
    records: Iterable[Any],
    today: date,
    n: int,
) -> list[Any]:
    """Records whose next charge is between today and `n` days out, inclusive."""
    upcoming = []
    for record in records:
        days = days_between(getattr(record, "next_billing_date", None), today)
        if days is not None and 0 <= days <= n:
            upcoming.append(record)
    return upcoming


# =============================================================================
# CADENCE PROJECTION
# =============================================================================

def _period_delta(frequency: Any, periods: int):
    cadence = _frequency(frequency)
    if cadence == BillingFrequency.WEEKLY:
        return timedelta(weeks=periods)
    if cadence == BillingFrequency.MONTHLY:
        return relativedelta(months=periods)
    if cadence == BillingFrequency.QUARTERLY:
        return relativedelta(months=3 * periods)
    if cadence == BillingFrequency.YEARLY:
        return relativedelta(years=periods)
    return None


def advance_billing_date(
    anchor: date,
    frequency: Any,
    periods: int = 1,
) -> Optional[date]:
    """
    The charge date `periods` cadence steps after `anchor`.

    Month arithmetic is calendar-aware and always measured from the anchor,
    so a 31st-of-month charge lands on the 31st again when the month has one.
    Returns None for an unknown cadence or an out-of-range date.
    """
    delta = _period_delta(frequency, periods)
    if delta is None:
        return None
    try:
        return anchor + delta
    except (OverflowError, ValueError):
        return None


def _first_step_on_or_after(anchor: date, frequency: Any, target: date) -> Optional[int]:
    if anchor >= target:
        return 0
    if _frequency(frequency) == BillingFrequency.WEEKLY:
        return -(-(target - anchor).days // 7)
    for step in range(1, _MAX_PROJECTION_STEPS):
        projected = advance_billing_date(anchor, frequency, step)
        if projected is None:
            return None
        if projected >= target:
            return step
    return None


def project_next_charge(record: Any, today: date) -> Optional[date]:
    """
    Next charge on or after `today`.

    A stale `next_billing_date` is rolled forward by the record's cadence.
    Records with an unusable date or cadence yield None when stale.
    """
    anchor = coerce_date(getattr(record, "next_billing_date", None))
    if anchor is None:
        return None
    frequency = getattr(record, "billing_frequency", None)
    step = _first_step_on_or_after(anchor, frequency, today)
    if step is None:
        return None
    if step == 0:
        return anchor
    return advance_billing_date(anchor, frequency, step)


def project_charge_dates(record: Any, start: date, end: date) -> Iterator[date]:
    """Yield every projected charge date of `record` within [start, end]."""
    anchor = coerce_date(getattr(record, "next_billing_date", None))
    if anchor is None or end < start:
        return
    frequency = getattr(record, "billing_frequency", None)

    step = _first_step_on_or_after(anchor, frequency, start)
    if step is None:
        return
    while step < _MAX_PROJECTION_STEPS:
        charge = anchor if step == 0 else advance_billing_date(anchor, frequency, step)
        if charge is None or charge > end:
            return
        yield charge
        if _frequency(frequency) is None:
            return
        step += 1


def amount_as_decimal(amount: Any) -> Decimal:
    """Amount as Decimal, zero when it cannot be parsed or is not finite."""
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    if not value.is_finite():
        return Decimal("0")
    return value
