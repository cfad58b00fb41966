import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser
from app.core.enums import CategoryType, FeeInvoiceStatus, WalletType
from app.core.models import Category, FeeInvoice, FeeStructure, Wallet
from app.db.session import Base, get_db
from app.main import app


NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
async def engine(tmp_path):
    """File-backed SQLite database per test so separate sessions see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def cashier() -> CurrentUser:
    return CurrentUser(id=uuid4(), email="cashier@example.com", role="FINANCE_ADMIN")


@pytest.fixture()
async def client(session_factory, cashier) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app, one DB session per request."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    async def override_get_current_user() -> CurrentUser:
        return cashier

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
async def fee_structure(db_session: AsyncSession) -> FeeStructure:
    structure = FeeStructure(
        name="BS Computer Science - Semester 1",
        semester_number=1,
        total_amount=Decimal("10000.00"),
        late_fee_per_day=Decimal("100.00"),
        grace_period_days=0,
    )
    db_session.add(structure)
    await db_session.commit()
    return structure


@pytest.fixture()
async def wallet(db_session: AsyncSession) -> Wallet:
    w = Wallet(name="Front Desk Cash", type=WalletType.CASH.value)
    db_session.add(w)
    await db_session.commit()
    return w


@pytest.fixture()
async def income_category(db_session: AsyncSession) -> Category:
    c = Category(name="Tuition Fee", type=CategoryType.INCOME.value)
    db_session.add(c)
    await db_session.commit()
    return c


@pytest.fixture()
async def expense_category(db_session: AsyncSession) -> Category:
    c = Category(name="Office Supplies", type=CategoryType.EXPENSE.value)
    db_session.add(c)
    await db_session.commit()
    return c


@pytest.fixture()
def make_invoice(db_session: AsyncSession, fee_structure: FeeStructure):
    async def _make(**overrides) -> FeeInvoice:
        values = dict(
            student_id=uuid4(),
            fee_structure_id=fee_structure.id,
            semester_number=1,
            issue_date=NOW - timedelta(days=30),
            due_date=NOW + timedelta(days=10),
            total_amount=Decimal("10000.00"),
            discount_amount=Decimal("0.00"),
            penalty_amount=Decimal("0.00"),
            amount_paid=Decimal("0.00"),
            status=FeeInvoiceStatus.PENDING.value,
        )
        values.update(overrides)
        invoice = FeeInvoice(**values)
        db_session.add(invoice)
        await db_session.commit()
        return invoice

    return _make
