from http import HTTPStatus
from unittest import mock

import pytest
from django.db import connection as dj_conn

REDIS_PING = "config.health.redis.Redis.ping"


class DummyDbError(Exception):
    """Synthetic DB error for testing."""


@pytest.mark.django_db
def test_health_ok(client):
    with mock.patch(REDIS_PING, return_value=True):
        resp = client.get("/health/")
    assert resp.status_code == HTTPStatus.OK
    data = resp.json()
    assert data["status"] == "ok"
    assert data["components"]["db"]["ok"] is True
    assert data["components"]["redis"]["ok"] is True


@pytest.mark.django_db
def test_health_reports_realtime_room_counts(client):
    with mock.patch(REDIS_PING, return_value=True):
        data = client.get("/health/").json()
    realtime = data["components"]["realtime"]
    assert realtime["ok"] is True
    assert set(realtime) >= {"session_rooms", "analytics_rooms", "pending_reminders"}


@pytest.mark.django_db
def test_health_degraded_when_redis_fails(client):
    with mock.patch(REDIS_PING, side_effect=TimeoutError("redis timeout")):
        resp = client.get("/health/")
    assert resp.status_code == HTTPStatus.SERVICE_UNAVAILABLE
    data = resp.json()
    assert data["components"]["redis"]["ok"] is False
    assert data["status"] == "degraded"


@pytest.mark.django_db
def test_health_degraded_when_db_fails(client, monkeypatch):
    msg = "db down"

    def raise_cursor():
        raise DummyDbError(msg)

    monkeypatch.setattr(dj_conn, "cursor", raise_cursor, raising=True)
    with mock.patch(REDIS_PING, return_value=True):
        resp = client.get("/health/")
    assert resp.status_code == HTTPStatus.SERVICE_UNAVAILABLE
    assert resp.json()["components"]["db"]["ok"] is False
