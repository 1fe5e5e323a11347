from rest_framework.permissions import BasePermission


class IsAnalyticsAdmin(BasePermission):
    """Allow access only to ADMIN-role accounts or staff."""

    def has_permission(self, request, view):
        u = getattr(request, "user", None)
        if not (u and getattr(u, "is_authenticated", False)):
            return False
        return bool(getattr(u, "is_analytics_admin", False))
