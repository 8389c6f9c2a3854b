import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.database import Base
from app.schemas.customer_success.health_score import HealthScoringInput
from app.services.customer_success.alert_store import InMemoryAlertStateStore, SqlAlchemyAlertStateStore
from app.services.customer_success.health_calculator import HealthScoreCalculator

# Register the alert lifecycle tables on Base.metadata
import app.models.customer_success  # noqa: F401

from tests.factories import NOW, HealthScoringInputFactory


@pytest.fixture
def now():
    """Fixed clock for deterministic scoring and alert timestamps."""
    return NOW


@pytest.fixture
def calculator() -> HealthScoreCalculator:
    return HealthScoreCalculator()


@pytest.fixture
def make_input():
    """Build a HealthScoringInput from factory defaults plus overrides."""

    def _make(**overrides) -> HealthScoringInput:
        return HealthScoringInput(**HealthScoringInputFactory(**overrides))

    return _make


@pytest.fixture
def memory_store() -> InMemoryAlertStateStore:
    return InMemoryAlertStateStore()


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    """Create a SQLite test database with the lifecycle tables."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_store(session_maker) -> SqlAlchemyAlertStateStore:
    return SqlAlchemyAlertStateStore(session_maker)
