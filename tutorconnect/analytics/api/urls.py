from django.urls import path

from tutorconnect.analytics.api.views import AnalyticsSnapshotView

app_name = "analytics"

urlpatterns = [
    path("<str:kind>/", AnalyticsSnapshotView.as_view(), name="snapshot"),
]
