from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import CharField
from django.utils.translation import gettext_lazy as _


class User(AbstractUser):
    """
    Default custom user model for TutorConnect.

    Every account plays one marketplace role. Admins (or staff) are the only
    accounts allowed onto the realtime analytics feeds.
    """

    class Role(models.TextChoices):
        STUDENT = "STUDENT", _("Student")
        TUTOR = "TUTOR", _("Tutor")
        PARENT = "PARENT", _("Parent")
        ADMIN = "ADMIN", _("Admin")

    # First and last name do not cover name patterns around the globe
    name = CharField(_("Name of User"), blank=True, max_length=255)
    role = CharField(
        _("Role"),
        max_length=16,
        choices=Role.choices,
        default=Role.STUDENT,
    )

    def __str__(self) -> str:
        return self.name or self.username

    @property
    def display_name(self) -> str:
        return self.name or self.get_full_name() or self.username

    @property
    def is_analytics_admin(self) -> bool:
        return self.role == self.Role.ADMIN or self.is_staff or self.is_superuser
