from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class TutoringConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "tutorconnect.tutoring"
    verbose_name = _("Tutoring")

    def ready(self):
        import tutorconnect.tutoring.signals  # noqa: F401, PLC0415
