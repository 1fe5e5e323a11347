from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone

from tutorconnect.tutoring.models import TutoringSession

User = get_user_model()


def create_user(
    username: str,
    *,
    role: str = User.Role.STUDENT,
    is_staff: bool = False,
    password: str = "Secret!123",  # noqa: S107
    **extra,
):
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password=password,
        role=role,
        is_staff=is_staff,
        **extra,
    )


def create_session(
    *,
    tutor=None,
    student=None,
    starts_in: timedelta = timedelta(hours=1),
    status: str = TutoringSession.Status.SCHEDULED,
    subject: str = "Algebra",
    price: Decimal = Decimal("40.00"),
) -> TutoringSession:
    tutor = tutor or create_user("tutor", role=User.Role.TUTOR)
    student = student or create_user("student")
    return TutoringSession.objects.create(
        tutor=tutor,
        student=student,
        title=f"{subject} with {tutor.username}",
        subject=subject,
        scheduled_at=timezone.now() + starts_in,
        status=status,
        price=price,
    )
