import pytest

from kpi_narrator.errors import (
    AuthOrQuotaError,
    LLMConfigurationError,
    LLMDisabledError,
    TransientRequestError,
)
from kpi_narrator.narrative.llm import LLMClient, classify_error


class FakeStatusError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(Exception):
    pass


def test_disabled_client_refuses_to_generate():
    client = LLMClient({"enabled": False})

    with pytest.raises(LLMDisabledError):
        client.generate("hi", temperature=0, max_output_tokens=10)


def test_missing_api_key_is_configuration_error(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(LLMConfigurationError):
        LLMClient({"enabled": True, "provider": "openai"})


def test_provider_default_models():
    assert LLMClient({"provider": "gemini"}).model == "gemini-1.5-flash-latest"
    assert LLMClient({}).model == "gpt-4o-mini"


@pytest.mark.parametrize(
    "exc",
    [
        TimeoutError("read timed out"),
        FakeStatusError("server exploded", 503),
        FakeStatusError("slow down", 429),
        RateLimitError("Quota exceeded for requests per minute"),
    ],
)
def test_transient_failures(exc):
    assert isinstance(classify_error(exc), TransientRequestError)


@pytest.mark.parametrize(
    "exc",
    [
        FakeStatusError("bad key", 401),
        FakeStatusError("bad request", 400),
        FakeStatusError("You exceeded your current quota: insufficient_quota", 429),
    ],
)
def test_fatal_failures(exc):
    assert isinstance(classify_error(exc), AuthOrQuotaError)
