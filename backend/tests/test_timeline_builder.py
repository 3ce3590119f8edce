"""Tests for TimelineBuilder, filter_events and KeywordEventClassifier."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from subdoctor.schemas.snapshot import NoteSnapshot, OrderSnapshot
from subdoctor.schemas.timeline import DateRange, TimelineFilters
from subdoctor.services.event_classifier import KeywordEventClassifier
from subdoctor.services.timeline_builder import TimelineBuilder, filter_events
from tests.factories import NOW, make_job, make_snapshot

CREATED = datetime(2024, 1, 15, tzinfo=UTC)


@pytest.fixture
def builder():
    return TimelineBuilder(log_dir="")


def _orders() -> tuple[OrderSnapshot, ...]:
    return (
        OrderSnapshot(
            id=100,
            relation="parent",
            status="completed",
            total=Decimal("19.99"),
            payment_method="stripe",
            date_created=CREATED,
            date_paid=CREATED + timedelta(minutes=5),
            notes=(
                NoteSnapshot(
                    id=11,
                    content="Payment completed via Stripe",
                    date_created=CREATED + timedelta(minutes=5),
                ),
            ),
        ),
        OrderSnapshot(
            id=101,
            relation="renewal",
            status="failed",
            total=Decimal("19.99"),
            date_created=datetime(2024, 2, 15, tzinfo=UTC),
            date_modified=datetime(2024, 2, 15, 1, 0, tzinfo=UTC),
        ),
        OrderSnapshot(
            id=102,
            relation="renewal",
            status="pending",
            date_created=datetime(2024, 3, 15, tzinfo=UTC),
        ),
    )


class TestKeywordEventClassifier:
    @pytest.mark.parametrize(
        ("content", "expected"),
        [
            ("Payment failed: card declined", "payment"),
            ("Status changed from active to on-hold", "status_change"),
            ("Subscription cancelled by customer", "cancellation"),
            ("Renewal failed", "payment_failed"),
            ("Customer called support", "note"),
        ],
    )
    def test_note_event_type(self, content, expected):
        assert KeywordEventClassifier().note_event_type(content) == expected

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Renewal ERROR from gateway", "failed"),
            ("Payment completed", "success"),
            ("Completed with error", "failed"),
            ("Customer called", "info"),
        ],
    )
    def test_text_status(self, text, expected):
        assert KeywordEventClassifier().text_status(text) == expected

    def test_job_event_type(self):
        classifier = KeywordEventClassifier()
        assert classifier.job_event_type("woocommerce_scheduled_subscription_payment") == "payment"
        assert classifier.job_event_type("woocommerce_scheduled_subscription_renewal") == "renewal"
        assert classifier.job_event_type("send_email_reminder") == "notification"
        expiration = "woocommerce_scheduled_subscription_expiration"
        assert classifier.job_event_type(expiration) == "action"

    def test_job_status(self):
        classifier = KeywordEventClassifier()
        assert classifier.job_status("completed") == "success"
        assert classifier.job_status("cancelled") == "info"


class TestBuild:
    def test_subscription_events(self, builder):
        timeline = builder.build(make_snapshot(scheduled_jobs={}, meta={}), NOW)
        assert [e.event_type for e in timeline.events] == ["subscription_created", "status_change"]
        assert timeline.events[1].timestamp == NOW - timedelta(days=1)
        assert timeline.events[1].description == "Status changed to: active"

    def test_order_and_payment_events(self, builder):
        snapshot = make_snapshot(orders=_orders(), scheduled_jobs={}, meta={})
        events = [e for e in builder.build(snapshot, NOW).events if e.source.startswith("order")]
        assert [(e.event_type, e.status) for e in events] == [
            ("order_created", "success"),
            ("payment", "success"),
            ("payment_completed", "success"),
            ("renewal_order_created", "success"),
            ("payment_failed", "failed"),
            ("renewal_order_created", "success"),
        ]
        failed = events[4]
        assert failed.expected is False
        assert failed.timestamp == datetime(2024, 2, 15, 1, 0, tzinfo=UTC)
        assert events[1].description == "Order #100: Payment completed via Stripe"

    def test_job_events(self, builder):
        jobs = {
            "pending": (make_job(job_id=1, hook="woocommerce_scheduled_subscription_renewal"),),
            "failed": (
                make_job(
                    job_id=2,
                    status="failed",
                    scheduled_date=datetime(2024, 5, 1, tzinfo=UTC),
                ),
            ),
        }
        timeline = builder.build(make_snapshot(scheduled_jobs=jobs, meta={}), NOW)
        events = [e for e in timeline.events if e.source == "scheduled_job"]
        assert [(e.metadata["job_id"], e.event_type, e.status) for e in events] == [
            (2, "payment", "failed"),
            (1, "renewal", "pending"),
        ]

    def test_gateway_events(self, builder):
        snapshot = make_snapshot(
            scheduled_jobs={},
            meta={"_stripe_customer_id": "cus_123", "_stripe_subscription_id": "sub_9"},
        )
        events = [e for e in builder.build(snapshot, NOW).events if e.source == "gateway"]
        assert [e.description for e in events] == [
            "Stripe customer created: cus_123",
            "Stripe subscription created: sub_9",
        ]

    def test_paypal_gateway_event(self, builder):
        snapshot = make_snapshot(
            payment_method={"gateway_id": "paypal"},
            scheduled_jobs={},
            meta={"_paypal_subscription_id": "I-123"},
        )
        events = [e for e in builder.build(snapshot, NOW).events if e.source == "gateway"]
        assert [e.event_type for e in events] == ["gateway_subscription_created"]

    def test_ties_keep_source_order(self, builder):
        # Creation, gateway and parent order all share the creation timestamp
        snapshot = make_snapshot(orders=_orders()[:1], scheduled_jobs={})
        events = builder.build(snapshot, NOW).events
        tied = [e.source for e in events if e.timestamp == CREATED]
        assert tied == ["subscription", "order", "gateway"]

    def test_events_are_chronological(self, builder):
        snapshot = make_snapshot(orders=_orders())
        events = builder.build(snapshot, NOW).events
        timestamps = [e.timestamp for e in events]
        assert timestamps == sorted(timestamps)

    def test_counts_are_conserved(self, builder):
        notes = (NoteSnapshot(id=1, content="Status changed", date_created=CREATED),)
        snapshot = make_snapshot(orders=_orders(), notes=notes)
        timeline = builder.build(snapshot, NOW)
        assert timeline.summary.total_events == len(timeline.events)
        assert sum(timeline.source_counts.values()) == timeline.summary.total_events
        assert sum(timeline.summary.sources.values()) == timeline.summary.total_events
        assert timeline.source_counts["notes"] == 1
        assert timeline.source_counts["logs"] == 0


class TestSummary:
    def test_summary_counts_and_range(self, builder):
        timeline = builder.build(make_snapshot(orders=_orders(), meta={}), NOW)
        summary = timeline.summary
        assert summary.event_types["renewal_order_created"] == 2
        assert summary.statuses["failed"] == 1
        assert summary.date_range.start == CREATED
        assert summary.date_range.end == NOW + timedelta(days=10)

    def test_empty(self):
        summary = TimelineBuilder.summarize([])
        assert summary.total_events == 0
        assert summary.date_range.start is None


class TestGaps:
    def test_missing_renewals(self, builder):
        snapshot = make_snapshot(
            orders=_orders(),
            schedule={"end_date": datetime(2024, 6, 15, tzinfo=UTC)},
        )
        gaps = builder.build(snapshot, NOW).gaps
        assert len(gaps) == 1
        assert gaps[0].type == "missing_renewals"
        assert (gaps[0].expected, gaps[0].actual) == (5, 2)
        assert gaps[0].description == "Expected 5 renewals, found 2"

    def test_no_gap_when_renewals_present(self, builder):
        snapshot = make_snapshot(
            orders=_orders(),
            schedule={"end_date": datetime(2024, 3, 15, tzinfo=UTC)},
        )
        assert builder.build(snapshot, NOW).gaps == []

    def test_no_gap_without_end_date(self, builder):
        assert builder.build(make_snapshot(), NOW).gaps == []

    def test_unknown_period_has_no_gap(self, builder):
        snapshot = make_snapshot(
            schedule={"period": "fortnight", "end_date": datetime(2024, 6, 15, tzinfo=UTC)},
        )
        assert builder.build(snapshot, NOW).gaps == []


class TestLogEvents:
    def test_scans_matching_lines(self, tmp_path):
        (tmp_path / "subscriptions.log").write_text(
            "[2024-03-01T10:00:00+00:00] Subscription 42 renewal payment failed\n"
            "[2024-03-01T10:00:00+00:00] Subscription 420 renewal payment failed\n"
            "[2024-03-02T10:00:00+00:00] Order 42 shipped\n"
            "Subscription 42 payment completed without timestamp\n",
            encoding="utf-8",
        )
        (tmp_path / "notes.txt").write_text("Subscription 42 ignored\n", encoding="utf-8")

        timeline = TimelineBuilder(log_dir=str(tmp_path)).build(make_snapshot(), NOW)
        logs = [e for e in timeline.events if e.source == "log"]

        assert [(e.timestamp, e.status) for e in logs] == [
            (datetime(2024, 3, 1, 10, 0, tzinfo=UTC), "failed"),
            (NOW, "success"),
        ]
        assert all(e.expected is False for e in logs)
        assert logs[0].metadata == {"log_file": "subscriptions.log"}
        assert timeline.source_counts["logs"] == 2

    def test_missing_directory(self, tmp_path):
        builder = TimelineBuilder(log_dir=str(tmp_path / "missing"))
        assert builder.build(make_snapshot(), NOW).source_counts["logs"] == 0


class TestFilterEvents:
    @pytest.fixture
    def events(self, builder):
        return builder.build(make_snapshot(orders=_orders()), NOW).events

    def test_no_filters(self, events):
        assert filter_events(events, TimelineFilters()) == events

    def test_by_status(self, events):
        filtered = filter_events(events, TimelineFilters(status="failed"))
        assert [e.event_type for e in filtered] == ["payment_failed"]

    def test_by_source_and_type(self, events):
        filtered = filter_events(
            events, TimelineFilters(source="order", event_type="renewal_order_created")
        )
        assert [e.metadata["order_id"] for e in filtered] == [101, 102]

    def test_by_date_range(self, events):
        date_range = DateRange(
            start=datetime(2024, 2, 1, tzinfo=UTC), end=datetime(2024, 3, 1, tzinfo=UTC)
        )
        filtered = filter_events(events, TimelineFilters(date_range=date_range))
        assert [e.event_type for e in filtered] == ["renewal_order_created", "payment_failed"]
