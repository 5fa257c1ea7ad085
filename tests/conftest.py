import os

os.environ["APP_ENV"] = "test"
os.environ["JWT_SECRET"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SMTP_HOST"] = ""
os.environ["EMAIL_RETRY_DELAY_SECONDS"] = "0"

import mongomock
import pytest
import requests
from fastapi.testclient import TestClient
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

from finance_tracker import database, emails
from finance_tracker.main import app

PASSWORD = "Secret@123"
API = "/api/v1"


@pytest.fixture
def db():
    database.init_db(mongomock.MongoClient())
    yield database.get_db()
    database.close_db()


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def outbox(monkeypatch):
    sent = []
    monkeypatch.setattr(emails, "_deliver", sent.append)
    return sent


def register(client, email="jane@example.com", password=PASSWORD, first_name="Jane", last_name="Doe"):
    return client.post(f"{API}/auth/register", json={
        "email": email,
        "password": password,
        "profile": {"firstName": first_name, "lastName": last_name},
    })


def activate(email):
    database.get_db()["user"].update_one(
        {"email": email}, {"$set": {"status": "active", "email_verified": True}}
    )


def login(client, email="jane@example.com", password=PASSWORD):
    response = client.post(f"{API}/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["data"]["token"]


def signed_in(client, email="jane@example.com"):
    """Register, activate and log in; returns bearer headers."""
    assert register(client, email=email).status_code == 201
    activate(email)
    return {"Authorization": f"Bearer {login(client, email)}"}


@pytest.fixture
def auth_headers(client, outbox):
    return signed_in(client)


@pytest.fixture
def categories(client, auth_headers):
    """Default categories keyed by name."""
    body = client.get(f"{API}/categories", headers=auth_headers).json()
    return {c["name"]: c for c in body["data"]}


class TestClientAdapter(BaseAdapter):
    """Route `requests` traffic to the in-process app."""

    def __init__(self, test_client):
        super().__init__()
        self.test_client = test_client

    def send(self, request, **kwargs):
        result = self.test_client.request(
            request.method,
            request.url,
            headers=dict(request.headers),
            content=request.body,
        )
        response = requests.Response()
        response.status_code = result.status_code
        response._content = result.content
        response.headers = CaseInsensitiveDict(result.headers)
        response.url = request.url
        response.reason = result.reason_phrase
        response.encoding = "utf-8"
        response.request = request
        return response

    def close(self):
        pass


@pytest.fixture
def http_session(client):
    session = requests.Session()
    session.mount("http://testserver", TestClientAdapter(client))
    return session
