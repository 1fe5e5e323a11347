from django.contrib import admin

from tutorconnect.analytics import models


@admin.register(models.StudentPerformance)
class StudentPerformanceAdmin(admin.ModelAdmin):
    list_display = ["id", "student", "date", "subject", "engagement_score"]
    list_filter = ["date", "subject"]
    raw_id_fields = ["student"]


@admin.register(models.TutorPerformance)
class TutorPerformanceAdmin(admin.ModelAdmin):
    list_display = ["id", "tutor", "date", "avg_rating", "sessions_completed"]
    list_filter = ["date"]
    raw_id_fields = ["tutor"]


@admin.register(models.Prediction)
class PredictionAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "prediction_type",
        "target_date",
        "predicted_value",
        "confidence",
    ]
    list_filter = ["prediction_type", "model_version"]
