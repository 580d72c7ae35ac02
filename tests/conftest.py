import os
import tempfile

# 必须在导入应用之前设置：config.py 在导入时读取环境变量
_tmpdir = tempfile.mkdtemp(prefix="journal-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmpdir, 'test.db')}"
os.environ["GEMINI_API_KEY"] = ""
os.environ["JWT_SECRET"] = "tests-secret-key"
os.environ["ENVIRONMENT"] = "test"

import pytest
from fastapi.testclient import TestClient

import models
from database import SessionLocal, engine
from errors import UpstreamError
from llm import get_llm
from main import app
from security import get_password_hash


class FakeLLM:
    """替代 GeminiClient：文本为 None 时模拟外部调用失败。"""

    def __init__(self):
        self.analysis_text = None
        self.chat_text = None
        self.calls = []

    def analyze_entry(self, title, content, mood):
        self.calls.append(("analyze", title, content, mood))
        if self.analysis_text is None:
            raise UpstreamError("AI disabled in tests")
        return self.analysis_text

    def chat_reply(self, history, user_name):
        self.calls.append(("chat", list(history), user_name))
        if self.chat_text is None:
            raise UpstreamError("AI disabled in tests")
        return self.chat_text


@pytest.fixture(autouse=True)
def reset_db():
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_llm():
    fake = FakeLLM()
    app.dependency_overrides[get_llm] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_llm, None)


@pytest.fixture
def client(fake_llm):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def user(db):
    u = models.User(name="Ada", email="ada@example.com", hashed_password=get_password_hash("secret123"))
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def make_entry(db, user):
    def _make(title="Test", content="I feel happy and grateful today", mood="happy", analysis=None, owner=None):
        entry = models.JournalEntry(
            user_id=(owner or user).id,
            title=title,
            content=content,
            mood=mood,
            analysis=analysis,
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry

    return _make


@pytest.fixture
def auth_headers(client):
    resp = client.post(
        "/api/auth/register",
        json={"name": "Grace", "email": "grace@example.com", "password": "hopper123"},
    )
    assert resp.status_code == 201
    return {"Authorization": f"Bearer {resp.json()['token']}"}
