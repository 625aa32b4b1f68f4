"""
Shared test fixtures and configuration.
"""

import asyncio
import os
from typing import List, Optional

import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOCAL_STORAGE_PATH", "/tmp/companion_test_data")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from companion.config import settings  # noqa: E402
from companion.core.server_context import build_server_context  # noqa: E402
from companion.llm.base import LLMProvider, LLMResponse, LLMStreamEvent  # noqa: E402
from companion.storage import LocalStorage  # noqa: E402
from companion.utils.auth import create_access_token  # noqa: E402


class FakeProvider(LLMProvider):
    """
    Scripted provider.

    Streams ``fragments`` one at a time, yielding to the loop between them.
    ``pause_after`` blocks the stream after that many fragments until
    ``resume`` is set. ``fail_after`` raises ``error`` after that many.
    """

    name = "fake"

    def __init__(
        self,
        fragments: Optional[List[str]] = None,
        greeting: str = "Hey! Ready when you are.",
        fail_after: Optional[int] = None,
        error: Optional[Exception] = None,
        pause_after: Optional[int] = None,
    ):
        super().__init__(api_key="fake-key", model="fake-model")
        self.fragments = fragments if fragments is not None else ["Let's ", "get ", "started."]
        self.greeting = greeting
        self.fail_after = fail_after
        self.error = error or RuntimeError("provider exploded")
        self.pause_after = pause_after
        self.paused = asyncio.Event()
        self.resume = asyncio.Event()
        self.stream_calls = []
        self.complete_calls = []
        self.finished_streams = 0

    async def chat_completion(self, messages, temperature=None, max_tokens=None) -> LLMResponse:
        self.complete_calls.append(messages)
        if self.fail_after == 0:
            raise self.error
        return LLMResponse(content=self.greeting, model=self.model)

    async def chat_completion_stream(self, messages, temperature=None, max_tokens=None):
        self.stream_calls.append(messages)
        for index, fragment in enumerate(self.fragments):
            if self.fail_after is not None and index == self.fail_after:
                raise self.error
            if self.pause_after is not None and index == self.pause_after:
                self.paused.set()
                await self.resume.wait()
            await asyncio.sleep(0)
            yield LLMStreamEvent.delta(fragment)
        if self.fail_after is not None and self.fail_after >= len(self.fragments):
            raise self.error
        self.finished_streams += 1
        yield LLMStreamEvent.done(model=self.model, usage={"output_tokens": len(self.fragments)})


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path))


@pytest.fixture
def context(storage, fake_provider):
    return build_server_context(settings, storage=storage, provider=fake_provider)


@pytest.fixture
async def owner(context):
    return await context.user_store.create_user(
        name="Ada",
        email="ada@example.com",
        work_context="Maintains a data pipeline",
        interests=["climbing", "synths"],
    )


@pytest.fixture
async def other_owner(context):
    return await context.user_store.create_user(name="Grace", email="grace@example.com")


@pytest.fixture
def token_for():
    def _token(user_id: str) -> str:
        return create_access_token({"sub": user_id})
    return _token
