"""
Somity Payroll - Test Configuration

Pytest fixtures and configuration.
"""

from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from somity_payroll.database import Base, get_async_session
from somity_payroll.models import payroll as models  # noqa: F401
from somity_payroll.schemas.payroll import BookTierSchedule, CommissionStructure, RuleConfig
from somity_payroll.services.payroll_rules import build_rate_table, default_book_schedule
from main import app


# In-memory database shared by every connection of the test engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ===========================================
# RULE FIXTURES
# ===========================================

@pytest.fixture
def rule_config() -> RuleConfig:
    """Default business constants."""
    return RuleConfig()


@pytest.fixture
def commission_rates():
    """Rate table with a type B of own 10% / office 6%."""
    return build_rate_table([
        CommissionStructure(type_code="A", own_rate_percent=Decimal("8"), office_rate_percent=Decimal("4")),
        CommissionStructure(type_code="B", own_rate_percent=Decimal("10"), office_rate_percent=Decimal("6")),
    ])


@pytest.fixture
def book_schedule() -> BookTierSchedule:
    """Default six-term book schedule."""
    return default_book_schedule()


# ===========================================
# DATABASE FIXTURES
# ===========================================

@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh in-memory database and session for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_maker() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
