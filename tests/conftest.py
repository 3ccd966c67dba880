"""
Test configuration and fixtures.

Every test gets a fresh in-memory SQLite database (aiosqlite, single shared
connection) with the full schema. Redis caching is disabled.
"""

import os

# Settings are cached on first import, so the environment must be set first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENABLE_CACHE"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"

from datetime import timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any, Dict, Optional  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from ticketdesk.database import get_db  # noqa: E402
from ticketdesk.main import app  # noqa: E402
from ticketdesk.models import (  # noqa: E402
    Base,
    Event,
    TicketType,
    User,
    UserRole,
    UserStatus,
)
from ticketdesk.utils.auth import create_access_token  # noqa: E402
from ticketdesk.utils.clock import utc_now  # noqa: E402


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session):
    async def _make_user(
        role: UserRole = UserRole.ATTENDEE,
        status: UserStatus = UserStatus.ACTIVE,
        email: Optional[str] = None,
    ) -> User:
        user = User(
            email=email or f"{uuid4().hex[:10]}@example.com",
            first_name="Test",
            last_name="User",
            role=role,
            status=status,
        )
        session.add(user)
        await session.commit()
        return user

    return _make_user


@pytest.fixture
def make_event(session):
    async def _make_event(
        title: str = "Jazz Night",
        starts_in: timedelta = timedelta(days=7),
        is_published: bool = True,
        location: str = "Blue Hall",
    ) -> Event:
        start = utc_now() + starts_in
        event = Event(
            title=title,
            description=f"{title} description",
            location=location,
            start_date_time=start,
            end_date_time=start + timedelta(hours=3),
            capacity=0,
            is_published=is_published,
        )
        session.add(event)
        await session.commit()
        return event

    return _make_event


@pytest.fixture
def make_ticket_type(session):
    async def _make_ticket_type(
        event: Event,
        name: str = "General",
        price: str = "25.00",
        capacity: int = 100,
        sold: int = 0,
        dynamic_pricing: Optional[Dict[str, Any]] = None,
        sales_start_date=None,
        sales_end_date=None,
    ) -> TicketType:
        ticket_type = TicketType(
            event_id=event.id,
            name=name,
            price=Decimal(price),
            capacity=capacity,
            sold=sold,
            dynamic_pricing=dynamic_pricing,
            sales_start_date=sales_start_date,
            sales_end_date=sales_end_date,
        )
        session.add(ticket_type)
        await session.commit()
        return ticket_type

    return _make_ticket_type


@pytest.fixture
def move_event_start(session):
    """Shift an event's start relative to now, e.g. into the past after booking."""
    async def _move(event_id: UUID, delta: timedelta) -> None:
        event = await session.get(Event, event_id, populate_existing=True)
        event.start_date_time = utc_now() + delta
        await session.commit()

    return _move


@pytest.fixture
def reload(session):
    """Fetch fresh state of a row after a service rolled back the session."""
    async def _reload(model, ident):
        return await session.get(model, ident, populate_existing=True)

    return _reload


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> Dict[str, str]:
        token = create_access_token({
            "sub": str(user.id),
            "email": user.email,
            "role": user.role.value,
        })
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as db:
            try:
                yield db
                await db.commit()
            except Exception:
                await db.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
