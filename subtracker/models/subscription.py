"""
Core Data Models for SubTracker

These models define the schemas for everything the analysis passes read
and produce. They are designed to:
1. Enforce type safety at the persistence boundary
2. Stay read-only once a snapshot has been loaded
3. Be serializable for storage, export and logging

DESIGN DECISION: Input records are frozen. The analysis passes only derive
new structures (DuplicateGroup, NotificationItem, BudgetStatus) from them.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class SubscriptionCategory(str, Enum):
    """Supported subscription categories."""
    ENTERTAINMENT = "entertainment"
    PRODUCTIVITY = "productivity"
    FITNESS = "fitness"
    FOOD = "food"
    EDUCATION = "education"
    NEWS = "news"
    MUSIC = "music"
    GAMING = "gaming"
    SHOPPING = "shopping"
    OTHER = "other"


class BillingFrequency(str, Enum):
    """
    Recurrence interval of a charge.

    Monthly-equivalent conversion lives in analysis.billing, not here.
    """
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class SubscriptionStatus(str, Enum):
    """Lifecycle status of a subscription."""
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class NotificationType(str, Enum):
    """Kinds of in-app notification items."""
    UPCOMING = "upcoming"
    TODAY = "today"
    OVERDUE = "overdue"
    RENEWED = "renewed"
    PRICE_CHANGE = "price_change"


class NotificationPriority(str, Enum):
    """
    Notification priority.

    Ordering is critical > high > medium > low (see `rank`).
    """
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    NotificationPriority.CRITICAL: 4,
    NotificationPriority.HIGH: 3,
    NotificationPriority.MEDIUM: 2,
    NotificationPriority.LOW: 1,
}


class BudgetPeriod(str, Enum):
    """Period a budget amount applies to."""
    MONTHLY = "monthly"
    YEARLY = "yearly"


# =============================================================================
# SUBSCRIPTION RECORD
# =============================================================================

class SubscriptionRecord(BaseModel):
    """
    A single recurring subscription.

    CRITICAL: Records are owned by the persistence layer.
    The analysis passes never mutate them (the model is frozen).
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        description="Opaque unique identifier within a snapshot"
    )
    name: str = Field(
        ...,
        max_length=200,
        description="Display name, used for fuzzy matching"
    )
    category: SubscriptionCategory = Field(
        default=SubscriptionCategory.OTHER,
        description="Subscription category"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Charge amount per billing period, in `currency`"
    )
    currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="ISO-like 3-letter currency code"
    )
    billing_frequency: BillingFrequency = Field(
        default=BillingFrequency.MONTHLY,
        description="Billing cadence"
    )
    next_billing_date: date = Field(
        ...,
        description="Date of the next charge (may be in the past)"
    )
    last_billing_date: Optional[date] = Field(
        default=None,
        description="Date of the most recent charge"
    )
    website: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Service URL, used for domain matching"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=1000,
    )
    status: SubscriptionStatus = Field(
        default=SubscriptionStatus.ACTIVE,
    )
    user_id: Optional[str] = Field(
        default=None,
        description="Owner scope for stored rows"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Currency codes are stored upper-cased."""
        return v.upper()

    @field_validator('website')
    @classmethod
    def blank_website_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


# =============================================================================
# DERIVED RESULTS
# =============================================================================

class DuplicateGroup(BaseModel):
    """
    A cluster of records judged likely to be the same real-world service.

    `similarity` is a display value, not the computed pairwise score.
    """

    key: str = Field(
        ...,
        description="Sorted member ids joined with '-'"
    )
    subscriptions: list[SubscriptionRecord] = Field(
        ...,
        min_length=2,
        description="Group members, anchor record first"
    )
    similarity: float = Field(
        ...,
        ge=0.0,
        le=1.0,
    )
    reason: str = Field(
        ...,
        description="Reasons computed between the first two members"
    )

    @property
    def member_ids(self) -> list[str]:
        return [sub.id for sub in self.subscriptions]


class NotificationItem(BaseModel):
    """An in-app notification derived from one subscription record."""

    id: str = Field(
        ...,
        description="Deterministic id, used for dismissal"
    )
    type: NotificationType
    title: str
    message: str
    item_date: date = Field(
        ...,
        description="Date the item refers to, used as the sort tie-breaker"
    )
    priority: NotificationPriority
    subscription: SubscriptionRecord
    actionable: bool = False
    days_until: Optional[int] = Field(
        default=None,
        description="Days until the charge (negative when overdue)"
    )


class NotificationSettings(BaseModel):
    """
    User notification preferences.

    Only days_ahead, show_renewed and show_price_changes affect
    classification. The delivery flags are stored preferences only.
    """

    days_ahead: int = Field(
        default=3,
        ge=0,
        description="Size of the upcoming-charge window in days"
    )
    show_renewed: bool = True
    show_price_changes: bool = True
    email_enabled: bool = True
    push_enabled: bool = False
    enable_sound: bool = False


class PriceChange(BaseModel):
    """A recorded price change from the price-history feed."""

    subscription_id: str
    old_amount: Decimal = Field(..., ge=0)
    new_amount: Decimal = Field(..., ge=0)
    changed_on: date

    @property
    def delta(self) -> Decimal:
        return self.new_amount - self.old_amount


# =============================================================================
# BUDGETS
# =============================================================================

class Budget(BaseModel):
    """A spending limit, optionally scoped to one category."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Limit for one period"
    )
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    category: Optional[SubscriptionCategory] = Field(
        default=None,
        description="Only count this category; None means all"
    )
    user_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class BudgetStatus(BaseModel):
    """Spending against one budget, normalized to a month."""

    budget: Budget
    spending: float = Field(..., ge=0.0)
    budget_amount: float = Field(
        ...,
        description="Monthly budget amount"
    )
    percentage: float
    is_over_budget: bool
    is_near_limit: bool


# =============================================================================
# INSIGHT MODELS
# =============================================================================

class CategorySpend(BaseModel):
    """Monthly-equivalent spend of one category."""

    category: SubscriptionCategory
    monthly_amount: float
    subscription_count: int = Field(ge=0)


class SavingsSuggestion(BaseModel):
    """A heuristic savings tip."""

    type: str = Field(
        ...,
        pattern="^(reduce|optimize)$",
    )
    message: str
    savings: int = Field(
        ...,
        description="Estimated savings, rounded to whole currency units"
    )


class SelectionStats(BaseModel):
    """Summary of a bulk selection."""

    selected_count: int = Field(ge=0)
    monthly_total: float
    status_counts: dict[str, int] = Field(default_factory=dict)


class CalendarDay(BaseModel):
    """Charges falling on one calendar day."""

    day: date
    subscriptions: list[SubscriptionRecord] = Field(default_factory=list)
    total_amount: Decimal = Decimal("0")

    @property
    def has_charges(self) -> bool:
        return bool(self.subscriptions)


class SpendingSummary(BaseModel):
    """Monthly spend totals for one snapshot."""

    total_monthly: float = Field(
        ...,
        description="Monthly equivalent over every record, any status"
    )
    active_monthly: float = Field(
        ...,
        description="Monthly equivalent over active records only"
    )
    subscription_count: int
    active_count: int


class AnalysisReport(BaseModel):
    """Everything one analysis pass produces."""

    generated_for: date
    spending: SpendingSummary
    upcoming: list[SubscriptionRecord] = Field(default_factory=list)
    notifications: list[NotificationItem] = Field(default_factory=list)
    duplicates: list[DuplicateGroup] = Field(default_factory=list)
    budgets: list[BudgetStatus] = Field(default_factory=list)
    suggestions: list[SavingsSuggestion] = Field(default_factory=list)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation of subscription input.

    Stage 1: Schema validation (types, required fields)
    Stage 2: Semantic validation (logic checks, warnings only)
    """

    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    schema_valid: bool = Field(
        ...,
        description="Did schema validation pass?"
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    record: Optional[SubscriptionRecord] = Field(
        default=None,
        description="The parsed record, present only when the input is valid"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
