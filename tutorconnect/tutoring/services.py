from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from tutorconnect.tutoring.models import TutoringSession

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True)
class SessionOwnership:
    session_id: str
    tutor_id: str
    student_id: str
    scheduled_at: datetime
    subject: str
    status: str

    def includes(self, user_id: object) -> bool:
        """True when ``user_id`` is the session's tutor or student."""

        return str(user_id) in {self.tutor_id, self.student_id}

    @property
    def is_cancelled(self) -> bool:
        return self.status == TutoringSession.Status.CANCELLED


def find_session_ownership(session_id: object) -> SessionOwnership | None:
    """Return who owns ``session_id`` and when it runs, or None if unknown.

    Ids that are not valid primary keys are treated as unknown sessions.
    """

    try:
        pk = int(str(session_id))
    except (TypeError, ValueError):
        return None

    row = (
        TutoringSession.objects.filter(pk=pk)
        .values("tutor_id", "student_id", "scheduled_at", "subject", "status")
        .first()
    )
    if row is None:
        return None

    return SessionOwnership(
        session_id=str(pk),
        tutor_id=str(row["tutor_id"]),
        student_id=str(row["student_id"]),
        scheduled_at=row["scheduled_at"],
        subject=row["subject"],
        status=row["status"],
    )
