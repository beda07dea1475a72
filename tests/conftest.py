"""
Test configuration and fixtures.

Provides:
- In-memory document store seeded with clinics, dentists, and patients
- Actor fixtures for each role family
- An approved case ready for lab orders
- HTTPX AsyncClient bound to the app with the store overridden
"""
import os
from datetime import date
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

# Disable rate limits and keep the health check off disk
os.environ["TESTING"] = "1"
os.environ.setdefault("DATABASE_URL", "sqlite://")

from orthoflow.core.deps import get_store
from orthoflow.db.enums import Role
from orthoflow.main import app
from orthoflow.schemas.auth import Actor
from orthoflow.schemas.case import Case
from orthoflow.services.document_store import InMemoryDocumentStore

from helpers import TODAY, create_approved_case, seed_state


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(seed_state())


@pytest.fixture
def today() -> date:
    return TODAY


# =============================================================================
# Actor Fixtures
# =============================================================================

@pytest.fixture
def admin() -> Actor:
    return Actor(role=Role.MASTER_ADMIN, user_id="user_admin")


@pytest.fixture
def lab_tech() -> Actor:
    return Actor(role=Role.LAB_TECH, user_id="user_lab")


@pytest.fixture
def dentist_ana() -> Actor:
    return Actor(role=Role.DENTIST_CLIENT, dentist_id="dentist_ana")


@pytest.fixture
def dentist_bruno() -> Actor:
    return Actor(role=Role.DENTIST_CLIENT, dentist_id="dentist_bruno")


@pytest.fixture
def clinic_sorriso() -> Actor:
    return Actor(role=Role.CLINIC_CLIENT, clinic_id="clinic_sorriso")


@pytest.fixture
def approved_case(store) -> Case:
    return create_approved_case(store)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(store: InMemoryDocumentStore) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient with the document store overridden; actor headers are per request."""
    app.dependency_overrides[get_store] = lambda: store

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
