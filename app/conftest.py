import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api_endpoints import app, get_db
from config import Settings, get_settings
import models_sqlalchemy as models
import models_pydantic as schemas
import users
from test_helpers import create_user_dict

# ---------- TEST FIXTURES ----------

# Use in-memory SQLite for test isolation
TEST_DATABASE_URL = "sqlite://"

@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=engine)
    yield engine
    models.Base.metadata.drop_all(bind=engine)
    engine.dispose()

@pytest.fixture(scope="function")
def db_session(engine):
    """A new DB session on a fresh database for each test."""
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = Session()
    yield session
    session.close()

@pytest.fixture(scope="function")
def test_settings(tmp_path):
    return Settings(upload_dir=str(tmp_path / "uploads"), booking_number_prefix="MTT")

@pytest.fixture(scope="function")
def client(db_session, test_settings):
    """Override get_db and settings dependencies for FastAPI TestClient."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()

@pytest.fixture(scope="function")
def auth_client(client):
    """A client with a registered, logged-in user."""
    r = client.post("/register", json=create_user_dict())
    assert r.status_code == 201
    return client

@pytest.fixture(scope="function")
def user(db_session):
    return users.register_user(db_session, schemas.UserCreate(**create_user_dict()))

@pytest.fixture(scope="function")
def make_package(db_session):
    def _make(**overrides):
        data = {
            "title": "Hunza Valley Tour",
            "description": "Five days in the valley",
            "image_url": "/uploads/hunza.jpg",
            "gallery": [{"url": "/uploads/hunza-1.jpg", "caption": "Lake", "alt": "lake"}],
            "stars": 4,
            "reviews": 0,
            "price": 650.0,
            "duration": "5 days",
            "location": "Hunza",
            "highlights": "Attabad Lake,Passu Cones",
            "featured": False,
            "active": True,
        }
        data.update(overrides)
        package = models.TourPackage(**data)
        db_session.add(package)
        db_session.commit()
        db_session.refresh(package)
        return package
    return _make

@pytest.fixture(scope="function")
def make_hiking(db_session):
    def _make(**overrides):
        data = {
            "title": "Rakaposhi Base Camp",
            "description": "Day hike to the base camp",
            "image_url": "",
            "gallery": [],
            "stars": 5,
            "reviews": 0,
            "price": 120.0,
            "duration": "1 day",
            "location": "Nagar",
            "difficulty": "moderate",
            "activity": "hiking",
            "features": "Glacier views,Meadows",
            "featured": False,
            "active": True,
        }
        data.update(overrides)
        trail = models.HikingTrail(**data)
        db_session.add(trail)
        db_session.commit()
        db_session.refresh(trail)
        return trail
    return _make

