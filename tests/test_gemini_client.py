from types import SimpleNamespace

import pytest
from google.genai import errors

from autoaudit.clients import gemini_client
from autoaudit.clients.gemini_client import generate_content_with_retry, is_retryable, key_fingerprint

API_KEY = "AIza-test-key-1234"


def api_error(kind, code, status):
    return kind(code, {"error": {"code": code, "message": f"{status.lower()} from service", "status": status}})


class ScriptedModels:
    """Raises the queued errors in order, then answers"""

    def __init__(self, failures):
        self.failures = list(failures)
        self.calls = 0

    def generate_content(self, **kwargs):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return SimpleNamespace(text="{}")


@pytest.fixture
def scripted_client(monkeypatch):
    def install(*failures):
        client = SimpleNamespace(models=ScriptedModels(failures))
        monkeypatch.setattr(gemini_client, "_clients", {API_KEY: client})
        return client

    monkeypatch.setattr(gemini_client.time, "sleep", lambda seconds: None)
    return install


def test_overload_is_retried(scripted_client, capsys):
    client = scripted_client(
        api_error(errors.ServerError, 503, "UNAVAILABLE"),
        api_error(errors.ClientError, 429, "RESOURCE_EXHAUSTED"),
    )

    response = generate_content_with_retry(API_KEY, "model", ["x"], source="override")

    assert response.text == "{}"
    assert client.models.calls == 3
    out = capsys.readouterr().out
    assert "override key ...1234" in out
    assert API_KEY not in out


def test_bad_request_fails_fast(scripted_client):
    client = scripted_client(api_error(errors.ClientError, 400, "INVALID_ARGUMENT"))

    with pytest.raises(errors.ClientError):
        generate_content_with_retry(API_KEY, "model", ["x"])
    assert client.models.calls == 1


def test_retries_are_bounded(scripted_client):
    busy = [api_error(errors.ServerError, 503, "UNAVAILABLE") for _ in range(3)]
    client = scripted_client(*busy)

    with pytest.raises(errors.ServerError):
        generate_content_with_retry(API_KEY, "model", ["x"], retries=3)
    assert client.models.calls == 3


def test_rejected_key_is_dropped_from_client_cache(scripted_client):
    scripted_client(api_error(errors.ClientError, 401, "UNAUTHENTICATED"))

    with pytest.raises(errors.ClientError):
        generate_content_with_retry(API_KEY, "model", ["x"], source="environment")
    assert API_KEY not in gemini_client._clients


def test_untyped_transport_errors_match_on_message():
    assert is_retryable(RuntimeError("503 UNAVAILABLE"))
    assert not is_retryable(RuntimeError("connection reset"))


def test_key_fingerprint_hides_the_key():
    assert key_fingerprint(API_KEY) == "...1234"
    assert key_fingerprint("short") == "***"
