from django.contrib import admin

from tutorconnect.tutoring import models


@admin.register(models.TutoringSession)
class TutoringSessionAdmin(admin.ModelAdmin):
    list_display = ["id", "subject", "tutor", "student", "scheduled_at", "status"]
    search_fields = ["title", "subject", "tutor__username", "student__username"]
    list_filter = ["status", "scheduled_at"]
    raw_id_fields = ["tutor", "student"]
