"""
End-to-end tests through the FastAPI app with dependency overrides.

The app runs in TestClient's own event loop, so these tests are plain
functions and the database is seeded with asyncio.run on a NullPool engine.
"""
import asyncio
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from mentor_booking.main import app
from mentor_booking.core.database import get_session
from mentor_booking.core.dependencies import get_payment_gateway, verify_cleanup_token
from mentor_booking.core.exceptions import AuthenticationError
from mentor_booking.booking.models import Base, MentorProfile, User, UserRole
from tests.conftest import FakeGateway, sign_webhook, webhook_body

CLEANUP_HEADERS = {"Authorization": "Bearer test-cleanup-secret"}


def upcoming_monday() -> date:
    today = date.today()
    return today + timedelta(days=(7 - today.weekday()) % 7 + 7)


async def _seed(engine, factory):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with factory() as session:
        mentor = User(name="Asha Rao", email="asha@example.com", role=UserRole.mentor)
        mentee = User(name="Ben Ito", email="ben@example.com", role=UserRole.mentee)
        other = User(name="Cara Diaz", email="cara@example.com", role=UserRole.mentee)
        session.add_all([mentor, mentee, other])
        await session.flush()
        session.add(
            MentorProfile(user_id=mentor.id, pricing={"video": 1200, "chat": 600}, currency="INR")
        )
        await session.commit()
        return {"mentor": mentor.id, "mentee": mentee.id, "other": other.id}


@pytest.fixture
def api_env(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)
    factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    ids = asyncio.run(_seed(engine, factory))
    gateway = FakeGateway()

    async def override_session():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    yield TestClient(app), ids, gateway

    app.dependency_overrides.clear()
    asyncio.run(engine.dispose())


def as_user(user_id):
    return {"X-User-Id": str(user_id)}


def add_monday_window(client, mentor_id):
    response = client.post(
        "/api/v1/availability",
        json={"day_of_week": 1, "start_time": "09:00", "end_time": "10:00"},
        headers=as_user(mentor_id),
    )
    assert response.status_code == 201
    return response.json()


def reserve_body(mentor_id, window_id, **overrides):
    body = {
        "mentor_id": mentor_id,
        "date": upcoming_monday().isoformat(),
        "start_time": "09:00",
        "end_time": "09:30",
        "availability_id": window_id,
        "meeting_type": "video",
        "duration": 30,
        "timezone": "Asia/Calcutta",
    }
    body.update(overrides)
    return body


class TestHealth:
    def test_health(self, api_env):
        client, _, _ = api_env
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_request_id_is_echoed(self, api_env):
        client, ids, _ = api_env
        response = client.get(
            f"/api/v1/mentors/{ids['mentor']}/availability",
            headers={"X-Request-ID": "abc123"},
        )

        assert response.headers["X-Request-ID"] == "abc123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestIdentity:
    def test_missing_user_header(self, api_env):
        client, _, _ = api_env
        response = client.get("/api/v1/sessions/mine")

        assert response.status_code == 401
        assert response.json()["error"] == "AUTHENTICATION_ERROR"

    def test_unknown_user(self, api_env):
        client, _, _ = api_env
        response = client.get("/api/v1/sessions/mine", headers=as_user(999))

        assert response.status_code == 401

    def test_mentee_cannot_manage_availability(self, api_env):
        client, ids, _ = api_env
        response = client.post(
            "/api/v1/availability",
            json={"day_of_week": 1, "start_time": "09:00", "end_time": "10:00"},
            headers=as_user(ids["mentee"]),
        )

        assert response.status_code == 403


class TestAvailabilityAndSlots:
    def test_window_shows_up_publicly(self, api_env):
        client, ids, _ = api_env
        add_monday_window(client, ids["mentor"])

        response = client.get(f"/api/v1/mentors/{ids['mentor']}/availability")

        assert response.status_code == 200
        assert response.json()["total"] == 1

    def test_overlapping_window_conflicts(self, api_env):
        client, ids, _ = api_env
        add_monday_window(client, ids["mentor"])

        response = client.post(
            "/api/v1/availability",
            json={"day_of_week": 1, "start_time": "09:30", "end_time": "11:00"},
            headers=as_user(ids["mentor"]),
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "AVAILABILITY_OVERLAP"

    def test_slots_for_date(self, api_env):
        client, ids, _ = api_env
        add_monday_window(client, ids["mentor"])

        response = client.get(
            f"/api/v1/mentors/{ids['mentor']}/slots",
            params={"date": upcoming_monday().isoformat()},
        )

        assert response.status_code == 200
        slots = response.json()["slots"]
        assert [slot["start_time"] for slot in slots] == ["09:00", "09:30"]
        assert not any(slot["is_booked"] for slot in slots)

    def test_bad_date_is_rejected(self, api_env):
        client, ids, _ = api_env
        response = client.get(f"/api/v1/mentors/{ids['mentor']}/slots", params={"date": "02/11/2026"})

        assert response.status_code == 422


class TestReservationFlow:
    def test_reserve_then_conflict(self, api_env):
        client, ids, _ = api_env
        window = add_monday_window(client, ids["mentor"])
        body = reserve_body(ids["mentor"], window["id"])

        first = client.post("/api/v1/sessions/reserve", json=body, headers=as_user(ids["mentee"]))
        second = client.post("/api/v1/sessions/reserve", json=body, headers=as_user(ids["other"]))

        assert first.status_code == 201
        assert first.json()["already_reserved"] is False
        assert second.status_code == 409
        assert second.json()["error_code"] == "SLOT_UNAVAILABLE"

        slots = client.get(
            f"/api/v1/mentors/{ids['mentor']}/slots",
            params={"date": upcoming_monday().isoformat()},
        ).json()["slots"]
        assert [slot["is_booked"] for slot in slots] == [True, False]

    def test_short_duration_is_rejected(self, api_env):
        client, ids, _ = api_env
        window = add_monday_window(client, ids["mentor"])
        body = reserve_body(ids["mentor"], window["id"], end_time="09:15", duration=15)

        response = client.post("/api/v1/sessions/reserve", json=body, headers=as_user(ids["mentee"]))

        assert response.status_code == 400
        assert "duration" in response.json()["field_errors"]

    def test_order_then_webhook_confirms(self, api_env):
        client, ids, gateway = api_env
        window = add_monday_window(client, ids["mentor"])
        reserved = client.post(
            "/api/v1/sessions/reserve",
            json=reserve_body(ids["mentor"], window["id"]),
            headers=as_user(ids["mentee"]),
        ).json()

        order = client.post(
            "/api/v1/payments/orders",
            json={"session_id": reserved["session_id"]},
            headers=as_user(ids["mentee"]),
        )
        assert order.status_code == 200
        assert gateway.orders[0]["receipt"] == str(reserved["session_id"])

        body = webhook_body("payment.captured", "pay_http_1", reserved["session_id"])
        ack = client.post(
            "/api/v1/payments/webhook",
            content=body,
            headers={"X-Razorpay-Signature": sign_webhook(body)},
        )
        assert ack.status_code == 200
        assert ack.json()["duplicate"] is False

        mine = client.get("/api/v1/sessions/mine", headers=as_user(ids["mentee"])).json()
        assert mine["sessions"][0]["status"] == "confirmed"


class TestWebhookEndpoint:
    @pytest.mark.parametrize("method", ["GET", "HEAD"])
    def test_probe(self, api_env, method):
        client, _, _ = api_env
        response = client.request(method, "/api/v1/payments/webhook")

        assert response.status_code == 200

    def test_missing_signature(self, api_env):
        client, _, _ = api_env
        response = client.post("/api/v1/payments/webhook", content=b"{}")

        assert response.status_code == 400

    def test_bad_signature(self, api_env):
        client, _, _ = api_env
        body = webhook_body("payment.captured", "pay_1", 1)
        response = client.post(
            "/api/v1/payments/webhook",
            content=body,
            headers={"X-Razorpay-Signature": "0" * 64},
        )

        assert response.status_code == 401


class TestCleanupEndpoint:
    def test_requires_token(self, api_env):
        client, _, _ = api_env

        assert client.post("/api/v1/maintenance/cleanup").status_code == 401
        assert (
            client.post(
                "/api/v1/maintenance/cleanup", headers={"Authorization": "Bearer wrong"}
            ).status_code
            == 401
        )

    @pytest.mark.parametrize("method", ["GET", "POST"])
    def test_sweeps(self, api_env, method):
        client, _, _ = api_env
        response = client.request(method, "/api/v1/maintenance/cleanup", headers=CLEANUP_HEADERS)

        assert response.status_code == 200
        assert response.json()["deleted_count"] == 0

    @pytest.mark.parametrize("header", ["Bearer é", "Bearer tëst-cleanup-secret", "Bearer "])
    def test_malformed_tokens_are_authentication_failures(self, header):
        with pytest.raises(AuthenticationError):
            verify_cleanup_token(header)
