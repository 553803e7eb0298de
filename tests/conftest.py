import httpx
import pytest

from batch_ai.providers.anthropic import AnthropicLanguageModel
from batch_ai.providers.openai import OpenAILanguageModel
from tests.mocks.anthropic_api import FakeAnthropicAPI, make_anthropic_transport
from tests.mocks.openai_api import FakeOpenAIAPI, make_openai_transport


@pytest.fixture(autouse=True)
def test_set_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")


@pytest.fixture
def fake_openai_api() -> FakeOpenAIAPI:
    return FakeOpenAIAPI()


@pytest.fixture
def fake_anthropic_api() -> FakeAnthropicAPI:
    return FakeAnthropicAPI()


@pytest.fixture
def openai_model(fake_openai_api: FakeOpenAIAPI) -> OpenAILanguageModel:
    """
    Create an OpenAI language model wired to the fake OpenAI API.
    """
    transport = make_openai_transport(fake_openai_api)
    return OpenAILanguageModel(
        "gpt-4o-mini",
        client_factory=lambda: httpx.AsyncClient(transport=transport),
    )


@pytest.fixture
def anthropic_model(fake_anthropic_api: FakeAnthropicAPI) -> AnthropicLanguageModel:
    """
    Create an Anthropic language model wired to the fake Anthropic API.
    """
    transport = make_anthropic_transport(fake_anthropic_api)
    return AnthropicLanguageModel(
        "claude-3-5-haiku-latest",
        client_factory=lambda: httpx.AsyncClient(transport=transport),
    )
