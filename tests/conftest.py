"""
Pytest configuration and fixtures for async database testing.

Each test gets a fresh schema in a file-backed SQLite database under the
test's tmp_path (set TEST_DATABASE_URL to run against Postgres instead).
The API client opens a NEW session per request, like production, so
concurrent requests really use separate connections.
"""
import os

# Settings are cached on first import; configure them before importing the app.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./storefront-test.db")
os.environ.setdefault("AUTH_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("BASE_DOMAIN", "storefront.test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ALLOW_PLAIN_CREDENTIALS", "false")

from decimal import Decimal
from types import SimpleNamespace
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from storefront.core.db import Base, get_session
from storefront.core.passwords import hash_password
from storefront.core.principal import Role, issue_credential
from storefront.models import Category, Client, Product, Staff, StaffRole, Tenant
from storefront.tenancy.context import clear_tenant_cache

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

CLIENT_PASSWORD = "s3cret-pass"
STAFF_PASSWORD = "staff-pass-9"


@pytest.fixture(scope="function")
async def async_engine(tmp_path):
    """
    Engine with a freshly created schema.

    SQLite connections wait on each other's write locks (busy timeout)
    instead of failing immediately.
    """
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}"
    connect_args = {"timeout": 30} if url.startswith("sqlite") else {}
    engine = create_async_engine(url, echo=False, connect_args=connect_args)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    if not url.startswith("sqlite"):
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def async_session(session_factory):
    """Session for arranging data and asserting on it."""
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def _fresh_tenant_cache():
    clear_tenant_cache()
    yield
    clear_tenant_cache()


# ────────────────────────────────────────────────────────────────
# Seed Data
# ────────────────────────────────────────────────────────────────

async def seed_storefront(session: AsyncSession) -> SimpleNamespace:
    """
    Two tenants with catalogues, clients and staff.

    acme:   P1 "Rabies vaccine" 10.00 x3, "Dog food" 25.50 x10,
            "Flea collar" 7.25 x0, "Old shampoo" unavailable
    globex: "Cat food" 99.99 x5
    """
    acme = Tenant(slug="acme", name="Acme Vet")
    globex = Tenant(slug="globex", name="Globex Pets")
    session.add_all([acme, globex])
    await session.flush()

    vaccines = Category(tenant_id=acme.id, name="Vaccines", sort_order=1)
    food = Category(tenant_id=acme.id, name="Food", sort_order=0)
    globex_food = Category(tenant_id=globex.id, name="Food", sort_order=0)
    session.add_all([vaccines, food, globex_food])
    await session.flush()

    p1 = Product(
        tenant_id=acme.id, category_id=vaccines.id, name="Rabies vaccine",
        description="Single dose", price=Decimal("10.00"), stock=3, image_url="/img/rabies.png",
    )
    dog_food = Product(
        tenant_id=acme.id, category_id=food.id, name="Dog food",
        description="Adult dry food 5kg", price=Decimal("25.50"), stock=10,
    )
    collar = Product(
        tenant_id=acme.id, category_id=None, name="Flea collar",
        price=Decimal("7.25"), stock=0,
    )
    shampoo = Product(
        tenant_id=acme.id, category_id=None, name="Old shampoo",
        price=Decimal("4.00"), stock=5, is_available=False,
    )
    cat_food = Product(
        tenant_id=globex.id, category_id=globex_food.id, name="Cat food",
        price=Decimal("99.99"), stock=5,
    )
    session.add_all([p1, dog_food, collar, shampoo, cat_food])

    password_hash = hash_password(CLIENT_PASSWORD)
    alice = Client(tenant_id=acme.id, name="Alice", email="alice@example.com", password_hash=password_hash)
    bob = Client(tenant_id=acme.id, name="Bob", email="bob@example.com", password_hash=password_hash)
    carol = Client(tenant_id=globex.id, name="Carol", email="carol@example.com", password_hash=password_hash)
    session.add_all([alice, bob, carol])

    staff_hash = hash_password(STAFF_PASSWORD)
    acme_admin = Staff(
        tenant_id=acme.id, name="Ana Admin", email="ana@acme.test", password_hash=staff_hash, role=StaffRole.ADMIN,
    )
    acme_doctor = Staff(
        tenant_id=acme.id, name="Dr. Diaz", email="diaz@acme.test", password_hash=staff_hash, role=StaffRole.DOCTOR,
    )
    globex_admin = Staff(
        tenant_id=globex.id, name="Gus Admin", email="gus@globex.test", password_hash=staff_hash, role=StaffRole.ADMIN,
    )
    session.add_all([acme_admin, acme_doctor, globex_admin])

    await session.commit()

    return SimpleNamespace(
        acme=acme,
        globex=globex,
        vaccines=vaccines,
        food=food,
        p1=p1,
        dog_food=dog_food,
        collar=collar,
        shampoo=shampoo,
        cat_food=cat_food,
        alice=alice,
        bob=bob,
        carol=carol,
        acme_admin=acme_admin,
        acme_doctor=acme_doctor,
        globex_admin=globex_admin,
    )


@pytest.fixture(scope="function")
async def seed(async_session):
    return await seed_storefront(async_session)


async def get_stock(session_factory, product_id: int) -> int:
    """Read stock through a fresh session so no identity map is involved."""
    async with session_factory() as session:
        product = await session.get(Product, product_id)
        return product.stock


# ────────────────────────────────────────────────────────────────
# HTTP Client
# ────────────────────────────────────────────────────────────────

@pytest.fixture(scope="function")
async def client(session_factory):
    """
    FastAPI AsyncClient with the database dependency pointed at the test engine.
    """
    from storefront.main import app

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers(
    token_tenant: str,
    role: Role,
    subject_id: Optional[int] = None,
    *,
    tenant: Optional[str] = None,
) -> dict:
    """
    Headers for a request signed by ``token_tenant`` and aimed at ``tenant``
    (defaults to the same tenant).
    """
    token = issue_credential(token_tenant, role, subject_id)
    return {
        "Authorization": f"Bearer {token}",
        "X-Tenant-ID": tenant or token_tenant,
    }
