"""Shared fixtures for catalog tests."""

import os

# Settings are read at import time; configure before importing the app.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")

import threading
import uuid
from collections.abc import Callable, Iterator
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.core.auth import get_current_user
from app.core.exceptions import UpstreamError
from app.core.storage_utils import get_image_store
from app.database import get_session
from app.main import app
from app.models.product import Category, Gender, Product
from app.models.user import User, UserRole
from app.repositories.product_repo import ProductRepository
from app.services.product_service import ProductService

CDN = "https://cdn.test/storage/v1/object/public/catalog/products"

# Upload payload that FakeImageStore refuses.
BROKEN_IMAGE = b"broken-image"


class FakeImageStore:
    """In-memory image store that records every call."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.uploads: list[str] = []
        self.destroyed: list[str] = []
        self.failing_destroys: set[str] = set()
        self._lock = threading.Lock()

    def upload(self, file_bytes: bytes, content_type: str) -> str:
        if file_bytes == BROKEN_IMAGE:
            raise UpstreamError("Image upload failed")
        object_id = uuid.uuid4().hex
        url = f"{CDN}/{object_id}"
        with self._lock:
            self.objects[object_id] = file_bytes
            self.uploads.append(url)
        return url

    def destroy(self, object_id: str) -> None:
        self.destroyed.append(object_id)
        if object_id in self.failing_destroys:
            raise UpstreamError("Image delete failed")
        self.objects.pop(object_id, None)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine) -> Iterator[Session]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def image_store() -> FakeImageStore:
    return FakeImageStore()


@pytest.fixture
def repo() -> ProductRepository:
    return ProductRepository()


@pytest.fixture
def service(repo: ProductRepository, image_store: FakeImageStore) -> ProductService:
    return ProductService(
        repo,
        image_store,
        upload_concurrency=4,
        default_limit=10,
        max_limit=100,
    )


@pytest.fixture
def admin() -> User:
    return User(id=uuid.uuid4(), email="admin@shop.test", role=UserRole.ADMIN)


@pytest.fixture
def customer() -> User:
    return User(id=uuid.uuid4(), email="customer@shop.test", role=UserRole.USER)


@pytest.fixture
def make_product(session: Session) -> Callable[..., Product]:
    """Insert a product directly; each call is one minute newer than the last."""
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    counter = {"n": 0}

    def _make(**overrides) -> Product:
        counter["n"] += 1
        n = counter["n"]
        fields = {
            "title": f"Product {n}",
            "gender": Gender.UNISEX,
            "category": Category.TSHIRT,
            "size": "M",
            "price": 19.99,
            "stock": 3,
            "image_urls": [f"{CDN}/seed{n}a.png", f"{CDN}/seed{n}b.jpg"],
            "created_at": base + timedelta(minutes=n),
        }
        fields.update(overrides)
        product = Product(**fields)
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return _make


@pytest.fixture
def client_as(engine, image_store: FakeImageStore) -> Iterator[Callable[..., TestClient]]:
    """
    Build a TestClient acting as the given user (None = anonymous).

    Database and image store are the test fixtures.
    """

    def _session_override():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_image_store] = lambda: image_store

    def _client(user: User | None = None, **kwargs) -> TestClient:
        app.dependency_overrides[get_current_user] = lambda: user
        return TestClient(app, **kwargs)

    yield _client
    app.dependency_overrides.clear()


@pytest.fixture
def client(client_as) -> TestClient:
    return client_as(None)


@pytest.fixture
def admin_client(client_as, admin: User) -> TestClient:
    return client_as(admin)


@pytest.fixture
def customer_client(client_as, customer: User) -> TestClient:
    return client_as(customer)
