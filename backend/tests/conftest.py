"""
CareNotes Backend - Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets a fresh in-memory SQLite database (aiosqlite) with the
       full schema created from the ORM metadata, so services run against
       real SQL instead of mocks.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── engine / session_factory: In-memory database with all tables
    ├── db_session: AsyncSession for service-level tests
    ├── make_child / make_organisation: Factories for common records
    ├── temp_storage: Temporary directory for receipt files
    ├── sample_png_bytes / sample_pdf_bytes: Upload content
    ├── auth_headers: Bearer token for a staff member
    └── client: HTTPX AsyncClient bound to the FastAPI app
"""

import os
import tempfile
from datetime import date
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Must happen BEFORE any carenotes import: settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="carenotes_test_")
os.environ["AUTH_ENABLED"] = "true"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["GEOCODING_ENABLED"] = "false"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import carenotes.models  # noqa: E402,F401
from carenotes.database import Base, get_db_session  # noqa: E402
from carenotes.models.child import Child, Gender, Jurisdiction, RiskLevel  # noqa: E402
from carenotes.models.organisation import CareOrganisation  # noqa: E402

TEST_ACTOR = "test.manager"


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine():
    """
    In-memory SQLite engine with every table created.

    StaticPool keeps the single connection alive so the database survives
    between sessions of the same test.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Provides an AsyncSession for service tests.

    Services only flush; the test sees its own uncommitted writes, and the
    database is thrown away with the engine.
    """
    async with session_factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# Record Factories
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def child_fields():
    """Keyword arguments for a 12-year-old child with no additional needs."""
    return {
        "first_name": "Amara",
        "last_name": "Okafor",
        "date_of_birth": date(2012, 5, 14),
        "gender": Gender.FEMALE,
        "jurisdiction": Jurisdiction.ENGLAND,
        "local_authority": "Leeds City Council",
        "behavioural_risk_level": RiskLevel.LOW,
        "medical_needs": [],
        "education_needs": [],
        "accessibility_needs": [],
        "cultural_needs": [],
    }


@pytest.fixture
def organisation_fields():
    """Keyword arguments for a four-bed home taking 8-17 year olds."""
    return {
        "name": "Willow House",
        "postcode": "LS6 2AB",
        "registered_capacity": 4,
        "current_occupancy": 1,
        "min_age": 8,
        "max_age": 17,
        "accepted_genders": [],
        "specialisms": [],
        "cultural_provisions": [],
        "medical_capabilities": [],
        "education_provisions": [],
        "accessibility_features": [],
        "behavioural_capability": RiskLevel.MEDIUM,
        "is_active": True,
    }


@pytest.fixture
def make_child(db_session, child_fields):
    """
    Factory that persists a Child.

    Usage:
        child = await make_child(gender=Gender.MALE)
    """
    async def _make(**overrides) -> Child:
        child = Child(**{**child_fields, **overrides}, created_by=TEST_ACTOR)
        db_session.add(child)
        await db_session.flush()
        return child

    return _make


@pytest.fixture
def make_organisation(db_session, organisation_fields):
    """Factory that persists a CareOrganisation."""
    async def _make(**overrides) -> CareOrganisation:
        organisation = CareOrganisation(**{**organisation_fields, **overrides}, created_by=TEST_ACTOR)
        db_session.add(organisation)
        await db_session.flush()
        return organisation

    return _make


# ══════════════════════════════════════════════════════════════════════════
# Files
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def temp_storage(tmp_path):
    """A fresh storage directory per test (pytest cleans tmp_path up)."""
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def sample_png_bytes():
    """PNG signature followed by an IHDR chunk header; enough for libmagic."""
    return (
        b"\x89PNG\r\n\x1a\n"
        b"\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x02\x00\x00\x00"
        b"\x90wS\xde"
    )


@pytest.fixture
def sample_pdf_bytes():
    return b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"


# ══════════════════════════════════════════════════════════════════════════
# API Client
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def auth_headers():
    from carenotes.auth import create_access_token

    return {"Authorization": f"Bearer {create_access_token(TEST_ACTOR)}"}


@pytest_asyncio.fixture
async def client(session_factory):
    """
    HTTPX AsyncClient talking to the FastAPI app through ASGITransport.

    get_db_session is overridden so requests use the test database; each
    request commits on success and rolls back on error, as in production.

    Usage:
        async def test_health(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    from carenotes.main import app

    async def override_get_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()
