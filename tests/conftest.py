"""
Test configuration and fixtures for the DevEvent API.
"""

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import ConnectionManager
from main import create_app

TEST_DATABASE_URL = "mongodb://localhost:27017/devevent_test"


class FakeUploader:
    """Stands in for CloudinaryUploader and remembers what it was sent."""

    def __init__(self):
        self.uploads = []

    def upload(self, data: bytes, filename=None) -> str:
        self.uploads.append((filename, data))
        return f"https://res.cloudinary.com/demo/image/upload/DevEvent/{filename}"


@pytest.fixture
def mongo_client():
    return mongomock.MongoClient()


@pytest.fixture
def connections(mongo_client):
    return ConnectionManager(
        TEST_DATABASE_URL,
        "devevent_test",
        client_factory=lambda url, **kwargs: mongo_client,
    )


@pytest.fixture
def db(connections):
    return connections.acquire()


@pytest.fixture
def settings():
    return Settings(
        database_url=TEST_DATABASE_URL,
        database_name="devevent_test",
        cloudinary_cloud_name="demo",
        cloudinary_api_key="key",
        cloudinary_api_secret="secret",
    )


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def client(settings, connections, uploader):
    app = create_app(settings=settings, connections=connections, uploader=uploader)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sample_event_data():
    """A valid event draft as it would arrive from the create form."""
    return {
        "title": "Next.js Conf 2025",
        "description": "A full day of talks about the React framework for the web.",
        "overview": "The yearly Next.js conference.",
        "image": "https://res.cloudinary.com/demo/image/upload/DevEvent/nextjs.png",
        "venue": "Online",
        "location": "San Francisco, CA",
        "date": "2999-10-22",
        "time": "10:00 AM",
        "mode": "hybrid",
        "audience": "Frontend developers",
        "agenda": ["Keynote", "Workshops"],
        "organizer": "Vercel",
        "tags": ["nextjs", "react"],
    }
