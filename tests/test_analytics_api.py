from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from tests.factories import create_user
from tutorconnect.payments.models import Payment


class TestAnalyticsSnapshotEndpoint(APITestCase):
    def setUp(self):
        super().setUp()
        self.admin = create_user("admin", role="ADMIN")
        self.staff = create_user("staff", role="TUTOR", is_staff=True)
        self.student = create_user("student")

    def url(self, kind: str) -> str:
        return reverse("api_v1:analytics:snapshot", kwargs={"kind": kind})

    def test_requires_authentication(self):
        res = self.client.get(self.url("overview"))
        assert res.status_code == status.HTTP_401_UNAUTHORIZED

    def test_non_admin_is_forbidden(self):
        self.client.force_authenticate(self.student)
        res = self.client.get(self.url("overview"))
        assert res.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_gets_snapshot_envelope(self):
        Payment.objects.create(
            payer=self.student,
            amount=Decimal("30.00"),
            status=Payment.Status.COMPLETED,
            paid_at=timezone.now() - timedelta(days=1),
        )
        self.client.force_authenticate(self.admin)

        res = self.client.get(self.url("overview"))

        assert res.status_code == status.HTTP_200_OK
        assert res.data["type"] == "overview"
        assert "timestamp" in res.data
        assert res.data["data"]["totalUsers"] == 3
        assert res.data["data"]["totalRevenue"] == 30.0

    def test_staff_may_read_every_kind(self):
        self.client.force_authenticate(self.staff)
        for kind in ("overview", "learning", "tutors", "business", "predictions"):
            res = self.client.get(self.url(kind))
            assert res.status_code == status.HTTP_200_OK, kind
            assert res.data["type"] == kind

    def test_unknown_kind_is_not_found(self):
        self.client.force_authenticate(self.admin)
        res = self.client.get(self.url("weather"))
        assert res.status_code == status.HTTP_404_NOT_FOUND

    def test_jwt_bearer_token_is_accepted(self):
        res = self.client.post(
            reverse("jwt-create"),
            {"username": "admin", "password": "Secret!123"},
            format="json",
        )
        assert res.status_code == status.HTTP_200_OK, res.content

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {res.data['access']}")
        res = self.client.get(self.url("business"))

        assert res.status_code == status.HTTP_200_OK
        assert res.data["data"]["totalPayments"] == 0
