"""
Pytest configuration for Tours API tests.

Sets up the test environment and the shared fixtures: mocked repositories
injected through app.dependency_overrides and a TestClient.
"""
import os
from unittest.mock import MagicMock

import pytest
from bson import ObjectId

# Disable config validation during tests
# This allows tests to run without requiring real environment variables
os.environ["VALIDATE_CONFIG"] = "false"

# Set test environment variables (before tours_api.config is imported)
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-with-at-least-32-bytes!")
os.environ.setdefault("LOG_LEVEL", "WARNING")
# The whole suite shares one client IP
os.environ.setdefault("RATE_LIMIT_MAX", "100000")

from fastapi.testclient import TestClient  # noqa: E402

from tours_api.db.repositories import TourRepository, UserRepository  # noqa: E402
from tours_api.dependencies import get_tour_repository, get_user_repository  # noqa: E402
from tours_api.main import app  # noqa: E402


@pytest.fixture
def tour_repo():
    """
    Mock TourRepository. Async methods are AsyncMocks (spec'd from the class).
    Defaults: a count of one so page 1 exists; every other lookup comes back empty.
    """
    repo = MagicMock(spec=TourRepository)
    repo.find.return_value = []
    repo.count.return_value = 1
    repo.find_by_id.return_value = None
    repo.aggregate.return_value = []
    repo.delete.return_value = False
    return repo


@pytest.fixture
def user_repo():
    """Mock UserRepository; by default no user exists."""
    repo = MagicMock(spec=UserRepository)
    repo.find_all.return_value = []
    repo.find_by_id.return_value = None
    repo.find_by_email.return_value = None
    repo.find_by_reset_token.return_value = None
    repo.delete.return_value = False
    return repo


@pytest.fixture
def client(tour_repo, user_repo):
    """TestClient with both repositories overridden."""
    app.dependency_overrides[get_tour_repository] = lambda: tour_repo
    app.dependency_overrides[get_user_repository] = lambda: user_repo
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def tour_doc():
    """A stored tour document as MongoDB returns it."""
    return {
        "_id": ObjectId("5c88fa8cf4afda39709c2955"),
        "name": "The Sea Explorer",
        "slug": "the-sea-explorer",
        "duration": 7,
        "maxGroupSize": 15,
        "difficulty": "medium",
        "ratingsAverage": 4.8,
        "ratingsQuantity": 23,
        "price": 497,
        "priceDiscount": 0,
        "summary": "Exploring the jaw-dropping US east coast by foot and by boat",
        "imageCover": "tour-2-cover.jpg",
        "images": [],
        "startDates": [],
        "secretTour": False,
    }
