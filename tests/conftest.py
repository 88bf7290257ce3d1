from typing import List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from chat.core.memory import ChatStore, Message
from config.settings import Settings


class StubUpstream:
    """Stands in for UpstreamClient; records every history it is sent."""

    def __init__(self, reply: str = "hello", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: List[List[Message]] = []

    async def complete(self, messages: Sequence[Message]) -> str:
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        if callable(self.reply):
            return self.reply(messages)
        return self.reply


@pytest.fixture
def settings(monkeypatch, tmp_path):
    static_dir = tmp_path / "public"
    static_dir.mkdir()
    (static_dir / "index.html").write_text("<h1>chat</h1>", encoding="utf-8")

    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("GOOGLE_API_KEY", "test-key")
    monkeypatch.setenv("MAX_TURNS", "20")
    monkeypatch.setenv("SYSTEM_PROMPT", "You are a test bot.")
    monkeypatch.setenv("FALLBACK_REPLY", "no answer")
    monkeypatch.setenv("ROLLBACK_ON_FAILURE", "true")
    monkeypatch.setenv("STATIC_DIR", str(static_dir))
    return Settings()


@pytest.fixture
def store(settings):
    return ChatStore(settings.system_prompt, settings.max_turns)


@pytest.fixture
def upstream():
    return StubUpstream()


@pytest.fixture
def client(settings, store, upstream):
    app = create_app(settings=settings, store=store, upstream=upstream)
    with TestClient(app) as test_client:
        yield test_client
