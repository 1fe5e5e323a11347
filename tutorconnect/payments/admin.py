from django.contrib import admin

from tutorconnect.payments import models


@admin.register(models.Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ["id", "payer", "amount", "currency", "status", "paid_at"]
    search_fields = ["payer__username", "payer__email"]
    list_filter = ["status", "currency", "paid_at"]
    raw_id_fields = ["payer", "session"]
