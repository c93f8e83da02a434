import os
import tempfile
from decimal import Decimal
from pathlib import Path

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("RUN_MIGRATIONS", "false")
os.environ.setdefault("JWT_SECRET", "storefront-test-secret-with-enough-length-for-hs256")
os.environ.setdefault("MEDIA_ROOT", tempfile.mkdtemp(prefix="storefront-media-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.api.deps import get_media_store, get_notifier
from storefront.application.address_store import AddressStore
from storefront.application.category_service import CategoryService
from storefront.application.errors import UploadFailed
from storefront.application.order_service import OrderService
from storefront.application.product_service import ProductService
from storefront.domain.models import Base, Category, Product, User
from storefront.domain.status import Role
from storefront.infrastructure.auth_tokens import create_access_token
from storefront.infrastructure.db import get_db
from storefront.infrastructure.storage import MediaStoreError, Upload
from storefront.main import app


class InMemoryMediaStore:
    """Media store double that records every upload and removal in order."""

    def __init__(self):
        self.files = {}
        self.events = []
        self.fail_uploads = False
        self.fail_removals = False
        self._counter = 0

    def upload(self, upload: Upload) -> str:
        if self.fail_uploads or not upload.content:
            raise UploadFailed()
        self._counter += 1
        filename = f"img-{self._counter}{Path(upload.filename).suffix}"
        self.files[filename] = upload.content
        self.events.append(("upload", filename))
        return filename

    def remove(self, filename):
        if not filename:
            return
        if self.fail_removals:
            raise MediaStoreError(f"Failed to remove {filename}")
        self.files.pop(filename, None)
        self.events.append(("remove", filename))

    def url_for(self, filename):
        return f"http://media.test/{filename}" if filename else None


class RecordingNotifier:
    def __init__(self):
        self.placed = []

    def order_placed(self, order):
        self.placed.append(order.tracking_number)


def image(name: str = "photo.jpg", content: bytes = b"\xff\xd8fake-jpeg") -> Upload:
    return Upload(filename=name, content_type="image/jpeg", content=content)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def media():
    return InMemoryMediaStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(session_factory, media, notifier):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_media_store] = lambda: media
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def category_service(db, media):
    return CategoryService(db, media)


@pytest.fixture
def product_service(db, media):
    return ProductService(db, media)


@pytest.fixture
def order_service(db, media, notifier, product_service):
    return OrderService(db, AddressStore(db), product_service, media, notifier)


@pytest.fixture
def admin(db):
    user = User(name="Ada Admin", email="admin@example.com", role=Role.ADMIN.value, is_email_verified=True)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def customer(db):
    user = User(name="Carl Customer", email="carl@example.com", role=Role.USER.value)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def make_category(db):
    def _make(name="Shoes", slug=None, parent=None, image_name="shoes.png"):
        category = Category(
            name=name,
            slug=slug or name.lower().replace(" ", "-"),
            image=image_name,
            parent_category_id=parent.id if parent else None,
        )
        db.add(category)
        db.commit()
        return category
    return _make


@pytest.fixture
def make_product(db, make_category):
    def _make(name="Runner", price="10.00", category=None, images=None, stock=5):
        product = Product(
            name=name,
            description=f"{name} description",
            price=Decimal(price),
            stock=stock,
            images=images if images is not None else [f"{name.lower()}-1.jpg", f"{name.lower()}-2.jpg"],
            category_id=(category or make_category(name=f"{name} category")).id,
        )
        db.add(product)
        db.commit()
        return product
    return _make
