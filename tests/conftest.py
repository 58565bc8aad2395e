import os
import uuid
from types import SimpleNamespace

# Settings are read at import time; point them at throwaway values first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SERVICE_TOKEN", "test-service-token")
os.environ.setdefault("APP_ENV", "test")

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from menurate.database import get_db
from menurate.main import app
from menurate.models import Base, MenuCategory, MenuItem, Restaurant, Review, User
from menurate.services.realtime import hub

SERVICE_TOKEN = os.environ["SERVICE_TOKEN"]


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_hub():
    """The realtime hub is process-wide; start every test with no subscribers."""
    hub._topics.clear()
    hub._sockets.clear()
    yield
    hub._topics.clear()
    hub._sockets.clear()


@pytest.fixture
async def seed(db):
    """
    One restaurant with two categories and three dishes, an owner,
    an admin and four regular users.
    """
    owner = User(uid=uuid.uuid4(), name="Olivia Owner", role="OWNER")
    admin = User(uid=uuid.uuid4(), name="Ada Admin", role="ADMIN")
    users = [User(uid=uuid.uuid4(), name=f"Diner {i}", role="USER") for i in range(4)]
    db.add_all([owner, admin, *users])
    await db.flush()

    restaurant = Restaurant(name="Bloor Street Kitchen", city="Toronto", owner_id=owner.uid)
    db.add(restaurant)
    await db.flush()

    mains = MenuCategory(restaurant_id=restaurant.id, name="Mains", sort_order=0)
    desserts = MenuCategory(restaurant_id=restaurant.id, name="Desserts", sort_order=1)
    db.add_all([mains, desserts])
    await db.flush()

    bibimbap = MenuItem(category_id=mains.id, name="Bibimbap")
    bulgogi = MenuItem(category_id=mains.id, name="Bulgogi")
    bingsu = MenuItem(category_id=desserts.id, name="Bingsu")
    db.add_all([bibimbap, bulgogi, bingsu])
    await db.commit()

    return SimpleNamespace(
        owner=owner,
        admin=admin,
        users=users,
        restaurant=restaurant,
        items=[bibimbap, bulgogi, bingsu],
    )


async def add_review(db, user, item, rating, visible=True, **sub_ratings) -> Review:
    """Insert a review row directly, without triggering any recompute."""
    review = Review(
        user_id=user.uid,
        menu_item_id=item.id,
        rating=rating,
        content="Written for the test suite, long enough.",
        is_visible=visible,
        **sub_ratings,
    )
    db.add(review)
    await db.commit()
    return review


@pytest.fixture
def review_factory(db):
    async def _add(user, item, rating, visible=True, **sub_ratings):
        return await add_review(db, user, item, rating, visible=visible, **sub_ratings)

    return _add


@pytest.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-Service-Token": SERVICE_TOKEN}


@pytest.fixture
def headers_for():
    def _headers(user) -> dict:
        return {"X-User-ID": str(user.uid)}

    return _headers
