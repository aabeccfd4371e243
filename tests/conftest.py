import asyncio
import os

os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from freshcart import models  # noqa: F401
from freshcart.cart import CartStore, cart_repository
from freshcart.database import Base, get_session
from freshcart.main import app
from freshcart.notifications import Notifier
from freshcart.storage import MemoryStorage
from freshcart.wishlist import WishlistStore, wishlist_repository


@pytest.fixture
def session_maker(tmp_path):
    # NullPool: TestClient runs every request on its own event loop
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())
    yield sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    asyncio.run(engine.dispose())


@pytest.fixture
def client(session_maker):
    async def override_get_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def cart(storage, notifier):
    return CartStore(cart_repository(storage), notifier)


@pytest.fixture
def wishlist(storage, notifier):
    return WishlistStore(wishlist_repository(storage), notifier)
