"""Usage summary endpoint and health check."""

from datetime import datetime, timedelta

import app.api.routes.usage as usage_route
from app.models.subscription import Subscription
from app.services.usage_quota import UsageStoreError


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_usage_for_new_user(client, db, auth):
    response = client.get("/api/usage", headers=auth("fresh-user"))

    assert response.status_code == 200
    body = response.json()
    assert body["plan_type"] == "free"
    assert body["api_calls_used"] == 0
    assert body["api_calls_limit"] == 50
    assert body["remaining"] == 50
    assert body["at_limit"] is False
    assert db.query(Subscription).filter_by(user_id="fresh-user").count() == 1


def test_usage_at_limit(client, db, auth):
    db.add(Subscription(
        user_id="busy-user",
        plan_type="pro",
        api_calls_used=1000,
        api_calls_limit=1000,
        current_period_end=datetime.utcnow() + timedelta(days=3),
    ))
    db.commit()

    body = client.get("/api/usage", headers=auth("busy-user")).json()

    assert body["plan_type"] == "pro"
    assert body["remaining"] == 0
    assert body["at_limit"] is True


def test_usage_store_unavailable(client, auth, monkeypatch):
    def broken(user_id, db):
        raise UsageStoreError("database unavailable")

    monkeypatch.setattr(usage_route, "get_usage_summary", broken)

    assert client.get("/api/usage", headers=auth("user-1")).status_code == 503
