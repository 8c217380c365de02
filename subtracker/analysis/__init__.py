"""
Analysis package.

Pure, synchronous passes over a snapshot of subscription records.
Nothing in here performs I/O or reads the clock.
"""

from subtracker.analysis.billing import (
    BUDGET_WEEKS_PER_MONTH,
    WEEKS_PER_MONTH,
    advance_billing_date,
    aggregate_monthly_spend,
    coerce_date,
    days_between,
    monthly_equivalent,
    project_charge_dates,
    project_next_charge,
    upcoming_within_days,
)
from subtracker.analysis.budgets import calculate_budget_status, evaluate_budgets
from subtracker.analysis.insights import (
    billing_calendar,
    export_subscriptions,
    filter_subscriptions,
    most_expensive,
    savings_suggestions,
    selection_stats,
    spending_by_category,
    spending_summary,
    top_categories,
)
from subtracker.analysis.notifications import build_notifications, classify
from subtracker.analysis.similarity import (
    SimilarityResult,
    compute_similarity,
    detect_duplicates,
    extract_domain,
    levenshtein_distance,
    name_similarity,
)

__all__ = [
    # Billing
    "BUDGET_WEEKS_PER_MONTH",
    "WEEKS_PER_MONTH",
    "advance_billing_date",
    "aggregate_monthly_spend",
    "coerce_date",
    "days_between",
    "monthly_equivalent",
    "project_charge_dates",
    "project_next_charge",
    "upcoming_within_days",
    # Budgets
    "calculate_budget_status",
    "evaluate_budgets",
    # Insights
    "billing_calendar",
    "export_subscriptions",
    "filter_subscriptions",
    "most_expensive",
    "savings_suggestions",
    "selection_stats",
    "spending_by_category",
    "spending_summary",
    "top_categories",
    # Notifications
    "build_notifications",
    "classify",
    # Similarity
    "SimilarityResult",
    "compute_similarity",
    "detect_duplicates",
    "extract_domain",
    "levenshtein_distance",
    "name_similarity",
]
