"""Shared test fixtures for Mod Garage."""

import sys
from datetime import date
from io import BytesIO
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from apps.auth.deps import get_current_user
from apps.auth.models import SubscriptionTier, User
from apps.core.storage import LocalStorage, set_storage
from apps.garage.models import PartCategory, PartForm, VehicleForm
from database import get_session
from main import app


@pytest.fixture
def engine():
    """In-memory SQLite shared by every connection in the test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def user(session) -> User:
    user = User(email="driver@example.com", external_id="auth0|driver", name="Sam Driver")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def premium_user(session) -> User:
    user = User(email="pro@example.com", external_id="auth0|pro", subscription=SubscriptionTier.PREMIUM)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def storage(tmp_path):
    """Local bucket storage under a temp dir, installed as the app-wide backend."""
    storage = LocalStorage(root=tmp_path / "uploads", public_url="/static/uploads")
    storage.ensure_buckets()
    set_storage(storage)
    yield storage
    set_storage(None)


@pytest.fixture
def vehicle_form() -> VehicleForm:
    return VehicleForm(name="Project Civic", make="Honda", model="Civic Si", year=2008, color="Black", mileage=98000)


@pytest.fixture
def make_part_form():
    def _make(vehicle_id: int, **overrides) -> PartForm:
        data = {
            "vehicle_id": vehicle_id,
            "name": "Cold Air Intake",
            "category": PartCategory.ENGINE,
            "brand": "K&N",
            "cost": 300,
            "installation_cost": 50,
            "mileage": 98100,
            "date": date(2024, 3, 15),
        }
        data.update(overrides)
        return PartForm(**data)
    return _make


@pytest.fixture
def png_bytes():
    """Return a function producing PNG bytes of the given size."""
    def _make(width: int = 64, height: int = 48, color: str = "red") -> bytes:
        buffer = BytesIO()
        Image.new("RGB", (width, height), color).save(buffer, format="PNG")
        return buffer.getvalue()
    return _make


def _client_for(session, current_user):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_current_user] = lambda: current_user
    # No context manager: the lifespan (real database + bucket setup) stays off
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def client(session, user, storage):
    yield _client_for(session, user)
    app.dependency_overrides.clear()


@pytest.fixture
def anon_client(session, storage):
    yield _client_for(session, None)
    app.dependency_overrides.clear()


@pytest.fixture
def noisy_png():
    """PNG bytes that compress poorly, so JPEG re-encoding visibly shrinks them."""
    def _make(width: int = 800, height: int = 600) -> bytes:
        buffer = BytesIO()
        Image.effect_noise((width, height), 64).convert("RGB").save(buffer, format="PNG")
        return buffer.getvalue()
    return _make
