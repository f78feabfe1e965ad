"""
Shared fixtures.

Service tests run on a fresh in-memory SQLite database per test; HTTP and
WebSocket tests drive a full application through ``TestClient``.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from pairchat.config import Settings
from pairchat.database import Database
from pairchat.main import create_app
from pairchat.mailer import EmailSender
from pairchat.repositories.user_repository import UserRepository
from pairchat.schemas.user import UserCreate
from pairchat.websocket_manager import ConnectionManager

TEST_DATABASE_URL = "sqlite+aiosqlite://"


class RecordingRelay(ConnectionManager):
    """Relay that remembers every published event."""

    def __init__(self):
        super().__init__()
        self.published = []

    async def publish(self, chat_id: int, event: dict):
        self.published.append((chat_id, event))
        await super().publish(chat_id, event)


class RecordingEmailSender(EmailSender):
    def __init__(self):
        self.sent = []

    async def send(self, to: str, subject: str, html: str) -> None:
        self.sent.append((to, subject, html))


async def create_user(session, username: str, password: str = "secret") -> int:
    user = await UserRepository(session).create(UserCreate(
        username=username,
        email=f"{username}@example.com",
        password=password,
        name=username.capitalize(),
        surname="Tester",
    ))
    return user.id


async def count_rows(session, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


@pytest.fixture
async def db_session():
    database = Database(TEST_DATABASE_URL)
    await database.create_tables()
    async with database.session() as session:
        yield session
    await database.dispose()


@pytest.fixture
async def users(db_session):
    """Ids of alice, bob and carol"""
    return {
        name: await create_user(db_session, name)
        for name in ("alice", "bob", "carol")
    }


@pytest.fixture
def relay():
    return RecordingRelay()


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def client(email_sender):
    app = create_app(
        Settings(DATABASE_URL=TEST_DATABASE_URL, RELAY_BACKEND="memory", LOG_LEVEL="WARNING"),
        email_sender=email_sender,
    )
    with TestClient(app) as test_client:
        yield test_client


def register(client, username: str, password: str) -> dict:
    response = client.post("/api/v1/auth/register", json={
        "username": username,
        "email": f"{username}@example.com",
        "password": password,
        "name": username.capitalize(),
        "surname": "Tester",
    })
    assert response.status_code == 201, response.text
    return response.json()


def login(client, username: str, password: str) -> dict:
    response = client.post("/api/v1/auth/login-json", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def alice(client):
    user = register(client, "alice", "pw1")
    return {"id": user["id"], "headers": login(client, "alice", "pw1")}


@pytest.fixture
def bob(client):
    user = register(client, "bob", "pw2")
    return {"id": user["id"], "headers": login(client, "bob", "pw2")}


@pytest.fixture
def carol(client):
    user = register(client, "carol", "pw3")
    return {"id": user["id"], "headers": login(client, "carol", "pw3")}
