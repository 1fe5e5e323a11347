from django.urls import include
from django.urls import path

app_name = "api"
urlpatterns = [
    path("analytics/", include("tutorconnect.analytics.api.urls")),
]
