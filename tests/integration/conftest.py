"""API test fixtures: the app wired to the in-memory test database."""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from dtr_engine.api.app import create_app
from dtr_engine.api.dependencies import get_clock, get_db_session


@pytest_asyncio.fixture
async def client(session_factory, clock) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    app = create_app()

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_clock] = lambda: clock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def scheduled_employee(session, employee, fixed_schedule, assign_schedule):
    """Committed employee on the 08:00-17:00 Monday to Friday schedule."""
    await assign_schedule(employee, fixed_schedule)
    await session.commit()
    return employee
