"""
Integration tests for the analysis flow.

Runs against InMemoryStorage; no external services are contacted.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from subtracker.audit import AuditLogger
from subtracker.models.audit import AuditEventType
from subtracker.models.subscription import (
    BudgetPeriod,
    NotificationSettings,
    PriceChange,
    SubscriptionCategory,
)
from subtracker.orchestrator import SubscriptionAnalysisFlow, create_app_components
from subtracker.services.storage import (
    InMemoryStorage,
    NotFoundError,
    StorageError,
)
from subtracker.validation import InvalidInputDataError


TODAY = date(2024, 6, 10)


class FailingStorage(InMemoryStorage):
    """Storage whose subscription listing always fails."""

    async def list_subscriptions(self, user_id=None, category=None, status=None):
        raise StorageError("sheet unavailable")


@pytest.fixture
def storage(make_record):
    return InMemoryStorage(subscriptions=[
        make_record(id="n1", name="Netflix", next_billing_date=TODAY),
        make_record(id="n2", name="Netflx", next_billing_date=TODAY + timedelta(days=12)),
        make_record(
            id="gym",
            name="Gym",
            amount="40",
            category=SubscriptionCategory.FITNESS,
            next_billing_date=TODAY - timedelta(days=5),
        ),
    ])


@pytest.fixture
def flow(storage):
    return SubscriptionAnalysisFlow(
        subscription_storage=storage,
        budget_storage=storage,
        dismissal_storage=storage,
        price_history=storage,
        audit_logger=AuditLogger(storage),
    )


async def event_types(storage):
    return [e.event_type for e in await storage.get_recent_events(limit=1000)]


class TestAnalysisRun:
    """Tests for a full analysis pass."""

    async def test_report_contents(self, flow):
        """Test one pass produces spend, upcoming, notifications and duplicates."""
        report = await flow.run(TODAY)

        assert report.generated_for == TODAY
        assert report.spending.subscription_count == 3
        assert report.spending.total_monthly == pytest.approx(15.99 * 2 + 40)
        assert [r.id for r in report.upcoming] == ["n1"]
        assert [n.id for n in report.notifications] == ["overdue-gym", "today-n1"]
        assert [g.key for g in report.duplicates] == ["n1-n2"]

    async def test_pass_is_audited_under_one_correlation_id(self, flow, storage):
        """Test the pass logs its events with a shared correlation id."""
        await flow.run(TODAY)

        events = await storage.get_recent_events()
        types = {e.event_type for e in events}
        assert AuditEventType.ANALYSIS_COMPLETED in types
        assert AuditEventType.DUPLICATES_DETECTED in types
        assert AuditEventType.NOTIFICATIONS_GENERATED in types
        assert len({e.correlation_id for e in events}) == 1

    async def test_custom_notification_settings(self, flow):
        """Test explicit settings override the configured defaults."""
        report = await flow.run(TODAY, settings=NotificationSettings(days_ahead=14))
        assert "upcoming-12-n2" in [n.id for n in report.notifications]

    async def test_dismissed_state_is_applied(self, flow, storage):
        """Test stored dismissals hide groups and notifications."""
        await storage.add_dismissed_duplicate("n1-n2")
        await storage.add_dismissed_notification("overdue-gym")

        report = await flow.run(TODAY)

        assert report.duplicates == []
        assert [n.id for n in report.notifications] == ["today-n1"]

    async def test_price_history_feeds_notifications(self, flow, storage):
        """Test recorded price changes become notifications."""
        await storage.record_price_change(PriceChange(
            subscription_id="gym",
            old_amount=Decimal("35"),
            new_amount=Decimal("40"),
            changed_on=TODAY - timedelta(days=3),
        ))
        report = await flow.run(TODAY)
        assert f"price-change-gym-{TODAY - timedelta(days=3)}" in [n.id for n in report.notifications]

    async def test_budgets_evaluated_and_audited(self, flow, storage):
        """Test over-budget statuses are reported and audited."""
        await flow.create_budget("Everything", "50")

        report = await flow.run(TODAY)

        assert len(report.budgets) == 1
        assert report.budgets[0].is_over_budget is True
        assert AuditEventType.BUDGET_EXCEEDED in await event_types(storage)

    async def test_transitive_flag(self, make_record):
        """Test the transitive flag reaches duplicate detection."""
        a = make_record(id="a", name="Hulu", amount="10")
        b = make_record(id="b", name="Hulu", amount="10", website="hulu.com",
                        billing_frequency="yearly")
        c = make_record(id="c", name="Zzzz", amount="10", website="hulu.com",
                        billing_frequency="yearly")
        flow = SubscriptionAnalysisFlow(InMemoryStorage(subscriptions=[a, b, c]))

        greedy = await flow.run(TODAY)
        transitive = await flow.run(TODAY, transitive=True)

        assert [g.key for g in greedy.duplicates] == ["a-b"]
        assert [g.key for g in transitive.duplicates] == ["a-b-c"]

    async def test_storage_failure_is_audited_and_raised(self):
        """Test a failing backend is logged as an external service error and re-raised."""
        failing = FailingStorage()
        flow = SubscriptionAnalysisFlow(failing, audit_logger=AuditLogger(failing))

        with pytest.raises(StorageError):
            await flow.run(TODAY)

        assert await event_types(failing) == [AuditEventType.EXTERNAL_SERVICE_ERROR]

    async def test_analysis_failure_is_audited_and_raised(self, flow, storage, monkeypatch):
        """Test an unexpected error inside the analysis step is logged as a system error."""
        def broken_detect(*args, **kwargs):
            raise RuntimeError("grouping failed")

        monkeypatch.setattr("subtracker.orchestrator.detect_duplicates", broken_detect)

        with pytest.raises(RuntimeError):
            await flow.run(TODAY)

        events = await storage.get_recent_events()
        assert [e.event_type for e in events] == [AuditEventType.SYSTEM_ERROR]
        assert events[0].error_message == "grouping failed"
        assert events[0].details["stage"] == "analysis"

    async def test_subscription_storage_only(self, storage):
        """Test optional backends are treated as empty."""
        flow = SubscriptionAnalysisFlow(storage)
        report = await flow.run(TODAY)
        assert report.budgets == []
        assert len(report.duplicates) == 1


class TestUserDecisions:
    """Tests for decisions persisted through the flow."""

    async def test_dismiss_duplicate_group(self, flow, storage):
        """Test dismissing a group stores its key and hides it next time."""
        report = await flow.run(TODAY)

        key = await flow.dismiss_duplicate_group(report.duplicates[0])

        assert key == "n1-n2"
        assert "n1-n2" in await storage.list_dismissed_duplicates()
        assert (await flow.run(TODAY)).duplicates == []
        assert AuditEventType.DUPLICATE_DISMISSED in await event_types(storage)

    async def test_merge_duplicates(self, flow, storage):
        """Test merging keeps one record and deletes the other."""
        kept = await flow.merge_duplicates("n1", "n2")

        assert kept.id == "n1"
        assert await storage.get_subscription("n2") is None
        assert (await flow.run(TODAY)).duplicates == []
        assert AuditEventType.DUPLICATES_MERGED in await event_types(storage)

    async def test_merge_with_itself_rejected(self, flow):
        """Test a record cannot be merged with itself."""
        with pytest.raises(ValueError):
            await flow.merge_duplicates("n1", "n1")

    async def test_merge_missing_record(self, flow):
        """Test merging unknown ids raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await flow.merge_duplicates("missing", "n2")
        with pytest.raises(NotFoundError):
            await flow.merge_duplicates("n1", "missing")

    async def test_dismiss_notification(self, flow, storage):
        """Test a dismissed notification disappears from the next pass."""
        await flow.dismiss_notification("today-n1")

        report = await flow.run(TODAY)

        assert "today-n1" not in [n.id for n in report.notifications]
        assert AuditEventType.NOTIFICATION_DISMISSED in await event_types(storage)

    async def test_dismiss_without_backend(self, storage):
        """Test dismissals need a dismissal backend."""
        flow = SubscriptionAnalysisFlow(storage)
        with pytest.raises(StorageError):
            await flow.dismiss_notification("today-n1")

    async def test_create_and_delete_budget(self, flow, storage):
        """Test the budget lifecycle."""
        budget = await flow.create_budget(
            "Fitness", Decimal("600"), period=BudgetPeriod.YEARLY,
            category=SubscriptionCategory.FITNESS,
        )
        assert [b.id for b in await storage.list_budgets()] == [budget.id]

        assert await flow.delete_budget(budget.id) is True
        assert await storage.list_budgets() == []
        assert await flow.delete_budget(budget.id) is False

        types = await event_types(storage)
        assert AuditEventType.BUDGET_CREATED in types
        assert AuditEventType.BUDGET_DELETED in types

    async def test_create_budget_rejects_zero(self, flow):
        """Test budgets need a positive amount."""
        with pytest.raises(ValueError):
            await flow.create_budget("Nothing", "0")

    async def test_add_subscription(self, flow, storage):
        """Test valid input is saved and audited."""
        record = await flow.add_subscription(
            {"name": "Spotify", "amount": "9.99", "next_billing_date": "2024-07-01",
             "category": "music"},
            today=TODAY,
        )

        assert await storage.get_subscription(record.id) == record
        assert AuditEventType.SUBSCRIPTION_VALIDATED in await event_types(storage)

    async def test_add_subscription_rejected(self, flow, storage):
        """Test invalid input is not saved and the rejection is audited."""
        with pytest.raises(InvalidInputDataError):
            await flow.add_subscription({"name": "Broken", "amount": "-1"}, today=TODAY)

        assert len(await storage.list_subscriptions()) == 3
        assert AuditEventType.SUBSCRIPTION_REJECTED in await event_types(storage)


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_without_storage_uses_memory(self):
        """Test use_storage=False wires an in-memory flow."""
        flow, sheets_client = create_app_components(use_storage=False)
        assert isinstance(flow, SubscriptionAnalysisFlow)
        assert sheets_client is None

    def test_unconfigured_storage_falls_back(self, monkeypatch):
        """Test missing Google Sheets settings fall back to memory."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        flow, sheets_client = create_app_components(use_storage=True)
        assert isinstance(flow, SubscriptionAnalysisFlow)
        assert sheets_client is None
