import json

import pytest

from autoaudit.config import CredentialStore
from autoaudit.errors import ConfigurationError


def test_override_takes_precedence(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"CUSTOM_GEMINI_KEY": "user-key", "theme": "dark"}), encoding="utf-8")

    store = CredentialStore(str(path), default_key="env-key")
    assert store.resolve() == "env-key"

    store.load()
    assert store.has_override
    assert store.resolve() == "user-key"


def test_save_persists_and_keeps_other_settings(tmp_path):
    path = tmp_path / "nested" / "settings.json"
    path.parent.mkdir()
    path.write_text(json.dumps({"theme": "dark"}), encoding="utf-8")

    CredentialStore(str(path)).save("  new-key ")

    assert json.loads(path.read_text(encoding="utf-8")) == {"theme": "dark", "CUSTOM_GEMINI_KEY": "new-key"}
    reloaded = CredentialStore(str(path))
    assert reloaded.load() == "new-key"


def test_empty_save_clears_override(tmp_path):
    store = CredentialStore(str(tmp_path / "settings.json"), default_key="env-key")
    store.save("user-key")
    assert store.source == "override"
    store.save("")

    assert not store.has_override
    assert store.source == "environment"
    assert store.resolve() == "env-key"
    assert "CUSTOM_GEMINI_KEY" not in json.loads((tmp_path / "settings.json").read_text(encoding="utf-8"))


def test_missing_credentials_raise(tmp_path):
    store = CredentialStore(str(tmp_path / "settings.json"))
    store.load()
    with pytest.raises(ConfigurationError) as exc:
        store.resolve()
    assert "API Key" in exc.value.user_message


def test_unreadable_settings_are_ignored(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    store = CredentialStore(str(path), default_key="env-key")

    assert store.load() is None
    assert store.resolve() == "env-key"
