"""Read-only aggregate snapshots for the admin analytics feeds.

Every function re-queries its window on each call. Nothing is cached and
nothing is written; callers get a JSON-ready dict (camelCase keys, matching
the dashboard client) stamped with the time it was computed.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING
from typing import Any

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db.models import Avg
from django.db.models import Count
from django.db.models import Q
from django.db.models import Sum
from django.utils import timezone

from tutorconnect.analytics.models import Prediction
from tutorconnect.analytics.models import StudentPerformance
from tutorconnect.analytics.models import TutorPerformance
from tutorconnect.payments.models import Payment
from tutorconnect.tutoring.models import TutoringSession

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime


class UnknownSnapshotError(ValueError):
    """Raised for a snapshot kind that has no builder."""


def analytics_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Return the trailing ``(start, end)`` window ending at ``now``."""

    end = now or timezone.now()
    days = int(getattr(settings, "ANALYTICS_WINDOW_DAYS", 30))
    return end - timedelta(days=days), end


def _money(value: Decimal | None) -> float:
    return float(value or Decimal("0.00"))


def _completed_payments(start: datetime, end: datetime):
    return Payment.objects.filter(
        status=Payment.Status.COMPLETED,
        paid_at__gte=start,
        paid_at__lte=end,
    )


def overview_snapshot(
    filters: dict[str, Any] | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Users, sessions and revenue over the trailing window."""

    start, end = analytics_window(now)
    user_model = get_user_model()

    sessions = TutoringSession.objects.filter(
        scheduled_at__gte=start,
        scheduled_at__lte=end,
    ).aggregate(
        total=Count("id"),
        completed=Count("id", filter=Q(status=TutoringSession.Status.COMPLETED)),
    )
    revenue = _completed_payments(start, end).aggregate(total=Sum("amount"))

    return {
        "totalUsers": user_model.objects.count(),
        "newUsers": user_model.objects.filter(date_joined__gte=start).count(),
        "totalSessions": sessions["total"],
        "completedSessions": sessions["completed"],
        "totalRevenue": _money(revenue["total"]),
        "timestamp": end.isoformat(),
    }


def learning_snapshot(
    filters: dict[str, Any] | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    start, end = analytics_window(now)
    qs = StudentPerformance.objects.filter(
        date__gte=start.date(),
        date__lte=end.date(),
    ).select_related("student")

    rows = [
        {
            "id": record.pk,
            "studentId": str(record.student_id),
            "studentName": record.student.display_name,
            "date": record.date.isoformat(),
            "subject": record.subject,
            "engagementScore": record.engagement_score,
            "averageScore": record.average_score,
            "sessionsAttended": record.sessions_attended,
        }
        for record in qs
    ]
    avg_engagement = qs.aggregate(avg=Avg("engagement_score"))["avg"]

    return {
        "studentPerformance": rows,
        "totalStudents": len(rows),
        "avgEngagementScore": float(avg_engagement or 0),
        "timestamp": end.isoformat(),
    }


def tutor_snapshot(
    filters: dict[str, Any] | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    start, end = analytics_window(now)
    qs = TutorPerformance.objects.filter(
        date__gte=start.date(),
        date__lte=end.date(),
    ).select_related("tutor")

    rows = [
        {
            "id": record.pk,
            "tutorId": str(record.tutor_id),
            "tutorName": record.tutor.display_name,
            "date": record.date.isoformat(),
            "avgRating": record.avg_rating,
            "sessionsCompleted": record.sessions_completed,
            "totalEarnings": _money(record.total_earnings),
        }
        for record in qs
    ]
    avg_rating = qs.aggregate(avg=Avg("avg_rating"))["avg"]

    return {
        "tutorPerformance": rows,
        "totalTutors": len(rows),
        "avgRating": float(avg_rating or 0),
        "timestamp": end.isoformat(),
    }


def business_snapshot(
    filters: dict[str, Any] | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    start, end = analytics_window(now)
    totals = _completed_payments(start, end).aggregate(
        revenue=Sum("amount"),
        count=Count("id"),
    )
    revenue = totals["revenue"] or Decimal("0.00")
    count = totals["count"]
    avg_amount = (revenue / count) if count else Decimal("0.00")

    return {
        "totalRevenue": _money(revenue),
        "totalPayments": count,
        "avgPaymentAmount": float(round(avg_amount, 2)),
        "timestamp": end.isoformat(),
    }


def predictions_snapshot(
    filters: dict[str, Any] | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Predictions whose target date has not passed yet, soonest first."""

    current = now or timezone.now()
    qs = Prediction.objects.filter(target_date__gte=current).order_by("target_date")
    rows = [
        {
            "id": row.pk,
            "type": row.prediction_type,
            "targetDate": row.target_date.isoformat(),
            "predictedValue": row.predicted_value,
            "confidence": row.confidence,
            "modelVersion": row.model_version,
            "factors": row.factors,
        }
        for row in qs
    ]
    return {"predictions": rows, "timestamp": current.isoformat()}


SNAPSHOT_BUILDERS: dict[str, Callable[..., dict[str, Any]]] = {
    "overview": overview_snapshot,
    "learning": learning_snapshot,
    "tutors": tutor_snapshot,
    "business": business_snapshot,
    "predictions": predictions_snapshot,
}

SNAPSHOT_TYPES = tuple(SNAPSHOT_BUILDERS)


def compute_snapshot(
    kind: str,
    filters: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Dispatch to the builder for ``kind``.

    Filters are accepted for client compatibility; the windows are fixed.
    """

    builder = SNAPSHOT_BUILDERS.get(kind)
    if builder is None:
        msg = f"Unknown analytics snapshot type: {kind}"
        raise UnknownSnapshotError(msg)
    return builder(filters)
