from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from chat_relay.core.settings import Settings, get_settings
from chat_relay.llm.completion import get_completion_service
from chat_relay.main import app


class StubCompletionService:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def create(self, messages, model, **params):
        self.calls.append({"messages": messages, "model": model, "params": params})
        if self.error is not None:
            raise self.error
        return self.response


def make_settings(**overrides):
    values = {"openai_api_key": "sk-test", "environment": "production"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def completion(content="Hi there!", model="gpt-3.5-turbo-0125", usage=None):
    return {
        "id": "chatcmpl-1",
        "model": model,
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": usage if usage is not None else {"prompt_tokens": 25, "completion_tokens": 3, "total_tokens": 28},
    }


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def service():
    return StubCompletionService(response=completion())


@pytest.fixture
def client(settings, service):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_completion_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


class FakeCompletion:
    def __init__(self, data):
        self.data = data

    def model_dump(self):
        return self.data


def fake_client(result=None, error=None):
    """Stand-in for `AsyncOpenAI` exposing only `chat.completions.create`."""
    calls = []

    async def create(**kwargs):
        calls.append(kwargs)
        if error is not None:
            raise error
        return FakeCompletion(result)

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return client, calls
