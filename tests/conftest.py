"""
Pytest configuration and fixtures for the mentor booking tests.
"""
import hashlib
import hmac
import json
import os
from datetime import date, datetime, time, timedelta, timezone
from types import SimpleNamespace

import pytest
import pytest_asyncio

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "test-key-secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["CLEANUP_API_SECRET"] = "test-cleanup-secret"
os.environ["REAPER_INTERVAL_SECONDS"] = "0"

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from mentor_booking.core.config import BookingConfig  # noqa: E402
from mentor_booking.booking.models import (  # noqa: E402
    Base,
    MeetingType,
    MentoringSession,
    MentorProfile,
    SessionStatus,
    User,
    UserRole,
)
from mentor_booking.booking.services.mentor_locks import MentorLockRegistry  # noqa: E402
from mentor_booking.booking.services.payment_gateway import RazorpayGateway  # noqa: E402

KEY_SECRET = "test-key-secret"
WEBHOOK_SECRET = "test-webhook-secret"

# 2026-11-02 is a Monday (day_of_week 1)
MONDAY = date(2026, 11, 2)
TUESDAY = date(2026, 11, 3)


class FixedClock:
    """Injectable clock that only moves when told to"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int = 0, seconds: int = 0):
        self.now = self.now + timedelta(minutes=minutes, seconds=seconds)


class FakeGateway(RazorpayGateway):
    """Real signature checks, canned order creation"""

    def __init__(self, **kwargs):
        kwargs.setdefault("key_id", "rzp_test_key")
        kwargs.setdefault("key_secret", KEY_SECRET)
        kwargs.setdefault("webhook_secret", WEBHOOK_SECRET)
        super().__init__(**kwargs)
        self.orders = []

    async def create_order(self, amount, currency, receipt):
        order = {
            "id": f"order_test_{len(self.orders) + 1}",
            "amount": int(amount * 100),
            "currency": currency,
            "receipt": receipt,
            "status": "created",
        }
        self.orders.append(order)
        return order


def checkout_signature(order_id: str, payment_id: str, secret: str = KEY_SECRET) -> str:
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def webhook_body(event: str, payment_id: str, session_id=None, amount=60000, order_id="order_test_1"):
    entity = {
        "id": payment_id,
        "order_id": order_id,
        "amount": amount,
        "currency": "INR",
        "notes": {"receipt": str(session_id)} if session_id is not None else {},
    }
    return json.dumps({"event": event, "payload": {"payment": {"entity": entity}}}).encode()


def sign_webhook(raw_body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()


def booking_payload(mentor_id, availability_id, start="09:00", end="09:30", duration=30, **overrides):
    payload = {
        "mentor_id": mentor_id,
        "date": MONDAY.isoformat(),
        "start_time": start,
        "end_time": end,
        "availability_id": availability_id,
        "meeting_type": "video",
        "duration": duration,
        "timezone": "Asia/Calcutta",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 11, 1, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def config() -> BookingConfig:
    return BookingConfig()


@pytest.fixture
def locks() -> MentorLockRegistry:
    return MentorLockRegistry()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'booking.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def people(db):
    """One priced mentor and two mentees"""
    mentor = User(name="Asha Rao", email="asha@example.com", role=UserRole.mentor)
    mentee_a = User(name="Ben Ito", email="ben@example.com", role=UserRole.mentee)
    mentee_b = User(name="Cara Diaz", email="cara@example.com", role=UserRole.mentee)
    db.add_all([mentor, mentee_a, mentee_b])
    await db.flush()

    db.add(
        MentorProfile(
            user_id=mentor.id,
            pricing={"chat": 600, "video": 1200, "call": 900},
            currency="INR",
        )
    )
    await db.commit()
    return SimpleNamespace(mentor=mentor, mentee_a=mentee_a, mentee_b=mentee_b)


@pytest_asyncio.fixture
async def monday_window(db, people):
    """Monday 09:00-10:00"""
    from mentor_booking.booking.crud.availability import add_time_slot
    from mentor_booking.booking.schemas.availability import TimeSlotCreate

    return await add_time_slot(
        db,
        people.mentor.id,
        TimeSlotCreate(day_of_week=1, start_time="09:00", end_time="10:00"),
    )


async def make_session(
    db,
    mentor_id,
    mentee_id,
    start="09:00",
    end="09:30",
    status=SessionStatus.reserved,
    expires=None,
    session_date=MONDAY,
):
    """Insert a session row directly, bypassing the ledger"""
    start_h, start_m = (int(part) for part in start.split(":"))
    end_h, end_m = (int(part) for part in end.split(":"))
    record = MentoringSession(
        mentor_id=mentor_id,
        mentee_id=mentee_id,
        date=session_date,
        start_time=time(start_h, start_m),
        end_time=time(end_h, end_m),
        duration_minutes=(end_h * 60 + end_m) - (start_h * 60 + start_m),
        meeting_type=MeetingType.video,
        timezone="Asia/Calcutta",
        price=600,
        status=status,
        reservation_expires=expires,
    )
    db.add(record)
    await db.commit()
    return record
