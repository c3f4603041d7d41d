import json
import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AVATAR_DIR"] = tempfile.mkdtemp(prefix="nolie-avatars-")
os.environ["GEMINI_API_KEY"] = ""
os.environ["PUBLIC_BASE_URL"] = "http://testserver"

import pytest
from fastapi.testclient import TestClient

from nolie.db import Base, engine
from nolie.llm import UpstreamAnalysisError, get_completion, get_summary_completion
from nolie.main import app


class FakeCompletion:
    """Returns scripted replies in order and records every prompt."""

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.prompts = []

    def queue(self, *replies):
        for reply in replies:
            if isinstance(reply, dict):
                reply = json.dumps(reply)
            self.replies.append(reply)

    def complete(self, prompt):
        self.prompts.append(prompt)
        if not self.replies:
            raise UpstreamAnalysisError("no scripted reply")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def make_results(score=0.0, forgery=False, entities=None):
    entities = entities or []
    return {
        "plagiarism": {"score": score, "matches": [], "status": "completed"},
        "forgery": {"detected": forgery, "confidence": 0.9 if forgery else 0.1, "areas": [], "techniques": []},
        "privacy": {"detected": bool(entities), "entities": entities},
    }


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def completion():
    fake = FakeCompletion()
    app.dependency_overrides[get_completion] = lambda: fake
    app.dependency_overrides[get_summary_completion] = lambda: fake
    yield fake
    app.dependency_overrides.clear()


@pytest.fixture
def client(completion):
    with TestClient(app) as test_client:
        yield test_client


def register(client, email="ada@example.com", password="secret123"):
    response = client.post(
        "/auth/register", json={"email": email, "password": password, "full_name": "Ada"}
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def auth_headers(client):
    return register(client)
