"""Merges subscription, order, job, log and gateway events into one timeline."""

import logging
import re
from collections import Counter
from datetime import datetime
from pathlib import Path

from subdoctor.core.config import settings
from subdoctor.models.order import PAID_ORDER_STATUSES, OrderRelation
from subdoctor.models.shared import ensure_utc
from subdoctor.schemas.snapshot import OrderSnapshot, SubscriptionSnapshot
from subdoctor.schemas.timeline import (
    DateRange,
    EventStatus,
    Timeline,
    TimelineEvent,
    TimelineFilters,
    TimelineGap,
    TimelineSummary,
)
from subdoctor.services.event_classifier import EventClassifier, KeywordEventClassifier
from subdoctor.services.subscription_dates import count_intervals

logger = logging.getLogger(__name__)

_LOG_TIMESTAMP = re.compile(r"\[([^\]]+)\]")


def _parse_log_timestamp(line: str) -> datetime | None:
    match = _LOG_TIMESTAMP.search(line)
    if not match:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(match.group(1).strip()))
    except ValueError:
        return None


class TimelineBuilder:
    """Builds the chronological event history of a subscription.

    Events from each source are appended in a fixed order (subscription,
    notes, orders, scheduled jobs, logs, gateway) and then stably sorted by
    timestamp, so events sharing a timestamp keep that source order.
    """

    def __init__(
        self,
        classifier: EventClassifier | None = None,
        log_dir: str | None = None,
    ):
        self.classifier = classifier or KeywordEventClassifier()
        self.log_dir = settings.PLATFORM_LOG_DIR if log_dir is None else log_dir

    def build(self, snapshot: SubscriptionSnapshot, now: datetime) -> Timeline:
        collected = {
            "subscription": self._subscription_events(snapshot),
            "notes": self._note_events(snapshot),
            "orders": self._order_events(snapshot),
            "scheduled_jobs": self._job_events(snapshot),
            "logs": self._log_events(snapshot, now),
            "gateway": self._gateway_events(snapshot),
        }
        events = sorted(
            (event for batch in collected.values() for event in batch),
            key=lambda e: e.timestamp,
        )
        return Timeline(
            events=events,
            summary=self.summarize(events),
            gaps=self._gaps(snapshot, events),
            source_counts={name: len(batch) for name, batch in collected.items()},
        )

    def _subscription_events(self, snapshot: SubscriptionSnapshot) -> list[TimelineEvent]:
        events = [
            TimelineEvent(
                timestamp=snapshot.date_created,
                source="subscription",
                event_type="subscription_created",
                description=f"Subscription #{snapshot.id} created",
                status=EventStatus.SUCCESS,
                metadata={
                    "subscription_id": snapshot.id,
                    "status": snapshot.status,
                    "total": str(snapshot.total),
                },
            )
        ]
        # Only the current status is known; earlier transitions are not recorded
        events.append(
            TimelineEvent(
                timestamp=snapshot.date_modified or snapshot.date_created,
                source="subscription",
                event_type="status_change",
                description=f"Status changed to: {snapshot.status}",
                status=EventStatus.SUCCESS,
                metadata={"status": snapshot.status},
            )
        )
        return events

    def _note_events(self, snapshot: SubscriptionSnapshot) -> list[TimelineEvent]:
        return [
            TimelineEvent(
                timestamp=note.date_created,
                source="subscription_note",
                event_type=self.classifier.note_event_type(note.content),
                description=note.content,
                status=self.classifier.text_status(note.content),
                metadata={
                    "note_id": note.id,
                    "note_type": note.note_type,
                    "customer_note": note.customer_note,
                },
            )
            for note in sorted(snapshot.notes, key=lambda n: n.date_created)
        ]

    def _order_events(self, snapshot: SubscriptionSnapshot) -> list[TimelineEvent]:
        events: list[TimelineEvent] = []
        for order in snapshot.orders:
            event_type = (
                "renewal_order_created"
                if order.relation == OrderRelation.RENEWAL.value
                else "order_created"
            )
            events.append(
                TimelineEvent(
                    timestamp=order.date_created,
                    source="order",
                    event_type=event_type,
                    description=f"Order #{order.id} created ({order.relation})",
                    status=EventStatus.SUCCESS,
                    metadata={
                        "order_id": order.id,
                        "order_type": order.relation,
                        "status": order.status,
                        "total": str(order.total),
                    },
                )
            )
            for note in order.notes:
                events.append(
                    TimelineEvent(
                        timestamp=note.date_created,
                        source="order_note",
                        event_type=self.classifier.note_event_type(note.content),
                        description=f"Order #{order.id}: {note.content}",
                        status=self.classifier.text_status(note.content),
                        metadata={
                            "order_id": order.id,
                            "note_id": note.id,
                            "note_type": note.note_type,
                            "customer_note": note.customer_note,
                        },
                    )
                )
            events.extend(self._payment_events(order))
        return events

    @staticmethod
    def _payment_events(order: OrderSnapshot) -> list[TimelineEvent]:
        metadata = {
            "order_id": order.id,
            "payment_method": order.payment_method,
            "amount": str(order.total),
        }
        if order.status in PAID_ORDER_STATUSES:
            return [
                TimelineEvent(
                    timestamp=order.date_paid or order.date_created,
                    source="order",
                    event_type="payment_completed",
                    description=f"Payment completed for order #{order.id}",
                    status=EventStatus.SUCCESS,
                    metadata=metadata,
                )
            ]
        if order.status == "failed":
            return [
                TimelineEvent(
                    timestamp=order.date_modified or order.date_created,
                    source="order",
                    event_type="payment_failed",
                    description=f"Payment failed for order #{order.id}",
                    status=EventStatus.FAILED,
                    expected=False,
                    metadata=metadata,
                )
            ]
        return []

    def _job_events(self, snapshot: SubscriptionSnapshot) -> list[TimelineEvent]:
        jobs = sorted(snapshot.all_jobs(), key=lambda j: (j.scheduled_date, j.id))
        return [
            TimelineEvent(
                timestamp=job.scheduled_date,
                source="scheduled_job",
                event_type=self.classifier.job_event_type(job.hook),
                description=f"Scheduled action: {job.hook}",
                status=self.classifier.job_status(job.status),
                metadata={
                    "job_id": job.id,
                    "hook": job.hook,
                    "status": job.status,
                    "group_slug": job.group_slug,
                    "args": job.args,
                },
            )
            for job in jobs
        ]

    def _log_events(self, snapshot: SubscriptionSnapshot, now: datetime) -> list[TimelineEvent]:
        """Scan platform log files for lines mentioning this subscription."""
        if not self.log_dir:
            return []
        log_dir = Path(self.log_dir)
        if not log_dir.is_dir():
            logger.warning("Platform log directory %s does not exist", log_dir)
            return []

        id_pattern = re.compile(rf"\b{snapshot.id}\b")
        events: list[TimelineEvent] = []
        for log_file in sorted(log_dir.glob("*.log")):
            try:
                lines = log_file.read_text(encoding="utf-8", errors="replace").splitlines()
            except OSError:
                logger.warning("Could not read platform log %s", log_file, exc_info=True)
                continue
            for line in lines:
                if "subscription" not in line.lower() or not id_pattern.search(line):
                    continue
                events.append(
                    TimelineEvent(
                        timestamp=_parse_log_timestamp(line) or now,
                        source="log",
                        event_type="log_entry",
                        description=line.strip(),
                        status=self.classifier.text_status(line),
                        expected=False,
                        metadata={"log_file": log_file.name},
                    )
                )
        return events

    @staticmethod
    def _gateway_events(snapshot: SubscriptionSnapshot) -> list[TimelineEvent]:
        """Synthetic events for external references stored by known gateways."""
        gateway = snapshot.payment_method.gateway_id
        references: list[tuple[str, str, str]] = []
        if gateway == "stripe":
            references = [
                ("_stripe_customer_id", "gateway_customer_created", "Stripe customer created"),
                (
                    "_stripe_subscription_id",
                    "gateway_subscription_created",
                    "Stripe subscription created",
                ),
            ]
        elif gateway == "paypal":
            references = [
                (
                    "_paypal_subscription_id",
                    "gateway_subscription_created",
                    "PayPal subscription created",
                ),
            ]

        events: list[TimelineEvent] = []
        for meta_key, event_type, label in references:
            reference = snapshot.meta.get(meta_key)
            if not reference:
                continue
            events.append(
                TimelineEvent(
                    timestamp=snapshot.date_created,
                    source="gateway",
                    event_type=event_type,
                    description=f"{label}: {reference}",
                    status=EventStatus.SUCCESS,
                    metadata={"gateway": gateway, "reference": str(reference)},
                )
            )
        return events

    @staticmethod
    def summarize(events: list[TimelineEvent]) -> TimelineSummary:
        timestamps = [e.timestamp for e in events]
        return TimelineSummary(
            total_events=len(events),
            event_types=dict(Counter(e.event_type for e in events)),
            sources=dict(Counter(e.source for e in events)),
            statuses=dict(Counter(str(e.status) for e in events)),
            date_range=DateRange(
                start=min(timestamps) if timestamps else None,
                end=max(timestamps) if timestamps else None,
            ),
        )

    @staticmethod
    def _gaps(snapshot: SubscriptionSnapshot, events: list[TimelineEvent]) -> list[TimelineGap]:
        schedule = snapshot.schedule
        if schedule.start_date is None or schedule.end_date is None:
            return []
        expected = count_intervals(
            schedule.start_date, schedule.end_date, schedule.period, schedule.interval
        )
        actual = sum(1 for e in events if e.event_type == "renewal_order_created")
        if actual >= expected:
            return []
        return [
            TimelineGap(
                type="missing_renewals",
                description=f"Expected {expected} renewals, found {actual}",
                severity="high",
                expected=expected,
                actual=actual,
            )
        ]


def filter_events(events: list[TimelineEvent], filters: TimelineFilters) -> list[TimelineEvent]:
    """Apply the operator's timeline filters; unset filters match everything."""
    result = []
    for event in events:
        if filters.event_type and event.event_type != filters.event_type:
            continue
        if filters.status and event.status != filters.status:
            continue
        if filters.source and event.source != filters.source:
            continue
        if filters.date_range is not None:
            if filters.date_range.start and event.timestamp < filters.date_range.start:
                continue
            if filters.date_range.end and event.timestamp > filters.date_range.end:
                continue
        result.append(event)
    return result
