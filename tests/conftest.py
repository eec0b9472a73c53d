import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("PUBLIC_APP_URL", "https://pay.example.com")

import uuid
from datetime import date
from typing import AsyncGenerator, Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fee_engine.auth.security import create_access_token
from fee_engine.core.enums import FeeComponentType, StudentStatus
from fee_engine.core.models import AcademicSession, Batch, FeeComponent, Student, Tenant
from fee_engine.db.session import Base, get_db
from fee_engine.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ALL_ACTIONS = {"create": True, "read": True, "update": True, "delete": True}
ADMIN_PERMISSIONS = {"fees": dict(ALL_ACTIONS), "scholarships": dict(ALL_ACTIONS)}


def make_token(
    tenant_id: uuid.UUID,
    role: str = "ADMIN",
    permissions: Optional[Dict[str, Dict[str, bool]]] = None,
    user_id: Optional[uuid.UUID] = None,
) -> str:
    return create_access_token(
        subject={
            "user_id": str(user_id or uuid.uuid4()),
            "tenant_id": str(tenant_id),
            "role": role,
            "permissions": ADMIN_PERMISSIONS if permissions is None else permissions,
        }
    )


def auth_headers(tenant_id: uuid.UUID, **kwargs) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(tenant_id, **kwargs)}"}


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """One in-memory database per test; the FastAPI dependency shares the test's session."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    # SQLAlchemy emits BEGIN itself so SAVEPOINT works under aiosqlite
    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Seed fixtures return plain ids; a rollback in any request expires the shared session's instances
async def _add(session: AsyncSession, *objs) -> None:
    session.add_all(objs)
    await session.commit()


@pytest.fixture()
async def tenant_id(db_session: AsyncSession) -> uuid.UUID:
    t = Tenant(id=uuid.uuid4(), name="Acme School")
    await _add(db_session, t)
    return t.id


@pytest.fixture()
async def other_tenant_id(db_session: AsyncSession) -> uuid.UUID:
    t = Tenant(id=uuid.uuid4(), name="Other School")
    await _add(db_session, t)
    return t.id


@pytest.fixture()
def headers(tenant_id: uuid.UUID) -> Dict[str, str]:
    return auth_headers(tenant_id)


@pytest.fixture()
def make_headers():
    """Build bearer headers for any tenant, role or permission set."""
    return auth_headers


@pytest.fixture()
async def session_id(db_session: AsyncSession, tenant_id: uuid.UUID) -> uuid.UUID:
    s = AcademicSession(
        id=uuid.uuid4(),
        tenant_id=tenant_id,
        name="2026-27",
        start_date=date(2026, 4, 1),
        end_date=date(2027, 3, 31),
        is_current=True,
    )
    await _add(db_session, s)
    return s.id


@pytest.fixture()
async def batch_id(db_session: AsyncSession, tenant_id: uuid.UUID) -> uuid.UUID:
    b = Batch(id=uuid.uuid4(), tenant_id=tenant_id, name="Grade 5 A")
    await _add(db_session, b)
    return b.id


@pytest.fixture()
async def student_ids(db_session: AsyncSession, tenant_id: uuid.UUID, batch_id: uuid.UUID) -> List[uuid.UUID]:
    """Three ACTIVE students in the batch, sorted by name."""
    rows = [
        Student(id=uuid.uuid4(), tenant_id=tenant_id, batch_id=batch_id, first_name=first, last_name=last)
        for first, last in (("Asha", "Rao"), ("Bala", "Iyer"), ("Chitra", "Nair"))
    ]
    await _add(db_session, *rows)
    return [r.id for r in rows]


@pytest.fixture()
async def inactive_student_id(db_session: AsyncSession, tenant_id: uuid.UUID, batch_id: uuid.UUID) -> uuid.UUID:
    s = Student(
        id=uuid.uuid4(),
        tenant_id=tenant_id,
        batch_id=batch_id,
        first_name="Dev",
        last_name="Menon",
        status=StudentStatus.INACTIVE.value,
    )
    await _add(db_session, s)
    return s.id


@pytest.fixture()
async def component_ids(db_session: AsyncSession, tenant_id: uuid.UUID) -> Dict[str, uuid.UUID]:
    rows = {
        "tuition": FeeComponent(
            id=uuid.uuid4(), tenant_id=tenant_id, name="Tuition", component_type=FeeComponentType.TUITION.value
        ),
        "transport": FeeComponent(
            id=uuid.uuid4(), tenant_id=tenant_id, name="Transport", component_type=FeeComponentType.TRANSPORT.value
        ),
        "lab": FeeComponent(
            id=uuid.uuid4(), tenant_id=tenant_id, name="Lab", component_type=FeeComponentType.LAB.value
        ),
    }
    await _add(db_session, *rows.values())
    return {key: fc.id for key, fc in rows.items()}
