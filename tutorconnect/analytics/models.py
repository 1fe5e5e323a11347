from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _


class StudentPerformance(models.Model):
    """Daily learning metrics for one student (optionally per subject)."""

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="performance_records",
    )
    date = models.DateField(db_index=True)
    subject = models.CharField(max_length=100, blank=True)
    engagement_score = models.FloatField(default=0)
    average_score = models.FloatField(default=0)
    sessions_attended = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["-date"]

    def __str__(self) -> str:  # pragma: no cover - simple repr
        return f"StudentPerformance({self.student_id}@{self.date})"


class TutorPerformance(models.Model):
    """Daily teaching metrics for one tutor."""

    tutor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="tutor_performance_records",
    )
    date = models.DateField(db_index=True)
    avg_rating = models.FloatField(default=0)
    sessions_completed = models.PositiveIntegerField(default=0)
    total_earnings = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )

    class Meta:
        ordering = ["-date"]

    def __str__(self) -> str:  # pragma: no cover - simple repr
        return f"TutorPerformance({self.tutor_id}@{self.date})"


class Prediction(models.Model):
    """A forecast produced by the growth models, read back by dashboards."""

    class Type(models.TextChoices):
        STUDENT_GROWTH = "student_growth", _("Student growth")
        REVENUE = "revenue", _("Revenue")
        TUTOR_RETENTION = "tutor_retention", _("Tutor retention")

    prediction_type = models.CharField(max_length=32, choices=Type.choices)
    target_date = models.DateTimeField(db_index=True)
    predicted_value = models.FloatField()
    confidence = models.FloatField(default=0)
    model_version = models.CharField(max_length=20, default="1.0")
    training_data_end = models.DateTimeField(null=True, blank=True)
    factors = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["target_date"]

    def __str__(self) -> str:  # pragma: no cover - simple repr
        return f"Prediction({self.prediction_type}@{self.target_date})"
