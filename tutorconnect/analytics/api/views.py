from __future__ import annotations

import logging

from django.http import Http404
from drf_spectacular.utils import OpenApiParameter
from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from tutorconnect.analytics.aggregates import SNAPSHOT_TYPES
from tutorconnect.analytics.aggregates import UnknownSnapshotError
from tutorconnect.analytics.aggregates import compute_snapshot
from tutorconnect.realtime.events.analytics import build_analytics_update

from .permissions import IsAnalyticsAdmin

logger = logging.getLogger(__name__)


class AnalyticsSnapshotView(APIView):
    """Same snapshots the Socket.IO feed pushes, for polling clients."""

    permission_classes = [IsAuthenticated, IsAnalyticsAdmin]

    @extend_schema(
        summary="Get an analytics snapshot",
        parameters=[
            OpenApiParameter(
                "kind",
                str,
                OpenApiParameter.PATH,
                enum=list(SNAPSHOT_TYPES),
            ),
        ],
    )
    def get(self, request, kind: str):
        try:
            snapshot = compute_snapshot(kind, dict(request.query_params.items()))
        except UnknownSnapshotError as exc:
            raise Http404(str(exc)) from exc

        logger.debug("Served %s snapshot to user %s", kind, request.user.pk)
        return Response(build_analytics_update(kind, snapshot))
