"""
Two-Stage Validation Pipeline

Turns loosely typed subscription input (an API payload, a spreadsheet row
typed by hand) into a SubscriptionRecord.

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Enum membership (category, billing frequency, status)
- Amount and date parsing
- This catches malformed data

STAGE 2 - SEMANTIC VALIDATION:
- Zero or absurd amounts
- Next billing date far in the past
- Last billing date after next billing date
- Website without a hostname, odd currency codes
- Likely duplicates of stored subscriptions
- These are warnings only: the data is possible, just suspicious

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the user can decide.
"""

from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

from pydantic import ValidationError

from subtracker.analysis.billing import coerce_date
from subtracker.analysis.similarity import DUPLICATE_THRESHOLD, compute_similarity
from subtracker.config import get_settings
from subtracker.models.subscription import (
    BillingFrequency,
    SubscriptionCategory,
    SubscriptionRecord,
    SubscriptionStatus,
    ValidationIssue,
    ValidationResult,
)
from subtracker.services.storage import StorageError, SubscriptionStorageInterface


REQUIRED_FIELDS = ("name", "amount", "next_billing_date")

_ENUM_FIELDS = {
    "category": SubscriptionCategory,
    "billing_frequency": BillingFrequency,
    "status": SubscriptionStatus,
}


class InvalidInputDataError(Exception):
    """Subscription input was rejected by schema validation."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(
            issue.message for issue in result.issues if issue.severity == "error"
        )
        super().__init__(f"Invalid subscription input: {messages}")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _website_hostname(website: str) -> Optional[str]:
    raw = website.strip()
    if not raw.lower().startswith("http"):
        raw = f"https://{raw}"
    try:
        return urlsplit(raw).hostname
    except ValueError:
        return None


class SubscriptionValidator:
    """
    Validates subscription input through a two-stage pipeline.

    Stage 1: Schema validation (can run without storage)
    Stage 2: Semantic validation (may use storage for duplicate checks)
    """

    def __init__(
        self,
        subscription_storage: Optional[SubscriptionStorageInterface] = None,
    ):
        """
        Initialize validator.

        Args:
            subscription_storage: Storage interface for duplicate checking.
                         If None, duplicate checking is skipped.
        """
        self._storage = subscription_storage
        self._settings = get_settings().app

    def _validate_schema(
        self,
        data: Mapping[str, Any],
    ) -> tuple[Optional[SubscriptionRecord], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (record_or_none, list_of_issues)
        """
        issues = []

        for field in REQUIRED_FIELDS:
            if _is_blank(data.get(field)):
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing",
                    message=f"{field.replace('_', ' ').capitalize()} is required",
                    severity="error",
                ))

        for field, enum_cls in _ENUM_FIELDS.items():
            value = data.get(field)
            if _is_blank(value):
                continue
            try:
                enum_cls(value)
            except ValueError:
                allowed = ", ".join(member.value for member in enum_cls)
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="invalid_value",
                    message=f"Unknown {field.replace('_', ' ')} '{value}'",
                    severity="error",
                    suggested_fix=f"Use one of: {allowed}",
                ))

        amount = data.get("amount")
        if not _is_blank(amount):
            try:
                parsed = Decimal(str(amount))
                if not parsed.is_finite():
                    raise InvalidOperation
                if parsed < 0:
                    issues.append(ValidationIssue(
                        field="amount",
                        issue_type="invalid_value",
                        message="Amount cannot be negative",
                        severity="error",
                    ))
            except InvalidOperation:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_format",
                    message=f"Amount '{amount}' is not a number",
                    severity="error",
                ))

        for field in ("next_billing_date", "last_billing_date"):
            value = data.get(field)
            if not _is_blank(value) and coerce_date(value) is None:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="invalid_format",
                    message=f"{field.replace('_', ' ').capitalize()} '{value}' is not a valid date",
                    severity="error",
                    suggested_fix="Use the YYYY-MM-DD format",
                ))

        if any(issue.severity == "error" for issue in issues):
            return None, issues

        # Remaining structural checks (lengths, currency size) come from the model
        payload = {k: v for k, v in data.items() if not _is_blank(v)}
        for field in ("next_billing_date", "last_billing_date"):
            if field in payload:
                payload[field] = coerce_date(payload[field])
        try:
            return SubscriptionRecord(**payload), issues
        except ValidationError as e:
            for error in e.errors():
                field = ".".join(str(part) for part in error["loc"]) or "record"
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="invalid_value",
                    message=f"{field}: {error['msg']}",
                    severity="error",
                ))
            return None, issues

    def _validate_semantic(
        self,
        record: SubscriptionRecord,
        today: date,
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation.

        Every issue here is a warning.
        """
        issues = []

        if record.amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"{record.name} has a zero amount",
                severity="warning",
                suggested_fix="Free tiers can be tracked, but check this isn't a typo",
            ))

        max_amount = Decimal(str(self._settings.max_subscription_amount))
        if record.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({record.amount:,.2f} {record.currency}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        stale_before = today - timedelta(days=self._settings.stale_billing_date_days)
        if record.next_billing_date < stale_before:
            issues.append(ValidationIssue(
                field="next_billing_date",
                issue_type="suspicious_date",
                message=f"Next billing date ({record.next_billing_date}) is long past",
                severity="warning",
                suggested_fix="Update the next billing date or cancel the subscription",
            ))

        if (
            record.last_billing_date
            and record.last_billing_date > record.next_billing_date
        ):
            issues.append(ValidationIssue(
                field="last_billing_date",
                issue_type="inconsistent",
                message="Last billing date is after the next billing date",
                severity="warning",
                suggested_fix="Please verify both dates",
            ))

        if record.website:
            hostname = _website_hostname(record.website)
            if not hostname or "." not in hostname:
                issues.append(ValidationIssue(
                    field="website",
                    issue_type="invalid_format",
                    message=f"Website '{record.website}' has no recognizable domain",
                    severity="warning",
                    suggested_fix="Domain matching for duplicates will not work for this entry",
                ))

        if not record.currency.isalpha():
            issues.append(ValidationIssue(
                field="currency",
                issue_type="suspicious_value",
                message=f"Currency code '{record.currency}' doesn't look like an ISO code",
                severity="warning",
            ))

        return issues

    async def _check_duplicates(
        self,
        record: SubscriptionRecord,
    ) -> list[ValidationIssue]:
        """
        Check for likely duplicates among stored subscriptions.

        This requires storage access.
        """
        issues = []

        if self._storage is None:
            return issues

        try:
            existing = await self._storage.list_subscriptions(user_id=record.user_id)
        except StorageError:
            # Don't fail validation due to storage errors
            return issues

        for other in existing:
            if other.id == record.id:
                continue
            result = compute_similarity(record, other)
            if result.score > DUPLICATE_THRESHOLD:
                issues.append(ValidationIssue(
                    field="duplicate",
                    issue_type="potential_duplicate",
                    message=(
                        f"{record.name} looks like existing subscription "
                        f"{other.name} ({', '.join(result.reasons)})"
                    ),
                    severity="warning",
                    suggested_fix="Please verify this isn't a duplicate entry",
                ))

        return issues

    async def validate(
        self,
        data: Mapping[str, Any],
        today: Optional[date] = None,
        check_duplicates: bool = True,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            data: Loosely typed subscription fields
            today: Reference date for date checks (defaults to the system date)
            check_duplicates: Whether to compare against stored subscriptions

        Returns:
            ValidationResult with all issues found and, if valid, the record
        """
        today = today or date.today()

        # Stage 1: Schema validation
        record, all_issues = self._validate_schema(data)
        schema_valid = record is not None

        # Only run stage 2 if stage 1 passes
        if record is not None:
            all_issues.extend(self._validate_semantic(record, today))
            if check_duplicates:
                all_issues.extend(await self._check_duplicates(record))

        warnings = [
            issue.message for issue in all_issues if issue.severity == "warning"
        ]

        return ValidationResult(
            schema_valid=schema_valid,
            is_valid=schema_valid,
            issues=all_issues,
            warnings=warnings,
            record=record,
        )

    async def validate_or_raise(
        self,
        data: Mapping[str, Any],
        today: Optional[date] = None,
        check_duplicates: bool = True,
    ) -> SubscriptionRecord:
        """
        Validate and return the record.

        Raises:
            InvalidInputDataError: If schema validation fails
        """
        result = await self.validate(data, today=today, check_duplicates=check_duplicates)
        if not result.is_valid:
            raise InvalidInputDataError(result)
        return result.record

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show to non-technical users.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed!"

        lines = []

        if not result.schema_valid:
            lines.append("❌ This subscription can't be saved yet:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        lines.append("")
        if result.is_valid:
            lines.append("You can still save it, but please review carefully.")
        else:
            lines.append("Please fix the issues above before continuing.")

        return "\n".join(lines)
