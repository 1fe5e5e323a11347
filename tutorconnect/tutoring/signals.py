"""Keep live reminders in step with persisted session changes.

Reminders are timers in the ASGI process, planned from the schedule seen at
join time. Cancelling a session drops them. Rescheduling drops them and, once
the change is committed, asks the relay to plan them again for the connections
still in the room. Only the process serving those connections holds them, so
saves from other processes (Celery, management commands) only cancel.
"""

import logging

from django.db.models.signals import post_save
from django.db.models.signals import pre_save
from django.db.transaction import on_commit
from django.dispatch import receiver

from tutorconnect.realtime.reminders import reminder_scheduler

from .models import TutoringSession
from .services import find_session_ownership

logger = logging.getLogger(__name__)


@receiver(pre_save, sender=TutoringSession)
def store_old_schedule(sender, instance, **kwargs):
    instance._old_schedule = None  # noqa: SLF001
    if instance.pk:
        orig = (
            TutoringSession.objects.filter(pk=instance.pk)
            .values("scheduled_at", "status")
            .first()
        )
        if orig:
            instance._old_schedule = (orig["scheduled_at"], orig["status"])  # noqa: SLF001


@receiver(post_save, sender=TutoringSession)
def invalidate_stale_reminders(sender, instance, created, **kwargs):
    old = getattr(instance, "_old_schedule", None)
    if created or old is None:
        return

    old_scheduled_at, old_status = old
    rescheduled = old_scheduled_at != instance.scheduled_at
    cancelled = (
        instance.status == TutoringSession.Status.CANCELLED
        and old_status != TutoringSession.Status.CANCELLED
    )
    if rescheduled or cancelled:
        dropped = reminder_scheduler.cancel_session(str(instance.pk))
        logger.info(
            "Session %s %s, cancelled %s pending reminders",
            instance.pk,
            "cancelled" if cancelled else "rescheduled",
            dropped,
        )
        if rescheduled and not cancelled:
            on_commit(lambda: rearm_reminders(instance.pk))


def rearm_reminders(pk):
    from tutorconnect.realtime.socketio import relay  # noqa: PLC0415

    ownership = find_session_ownership(pk)
    if ownership is None:
        return
    if relay.rearm_reminders(ownership):
        logger.info("Queued reminder re-plan for session %s", pk)
