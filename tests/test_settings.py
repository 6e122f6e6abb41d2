from pathlib import Path

import pytest

from wqlrun.errors import ConfigError
from wqlrun.settings import Settings


def test_defaults(monkeypatch):
    for var in ("CLIENT_ID", "SESSION_TTL_SECONDS", "READ_MAX_BYTES"):
        monkeypatch.delenv(var, raising=False)
    s = Settings(_env_file=None)
    assert s.client_id == "client1"
    assert s.session_ttl_seconds == 3600
    assert s.session_file == Path("session.json")
    assert s.read_max_bytes is None
    assert s.client_key.get_secret_value() == "test_key_1"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("CLIENT_ID", "client7")
    monkeypatch.setenv("CONNECT_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("READ_MAX_BYTES", "1048576")
    s = Settings(_env_file=None)
    assert s.client_id == "client7"
    assert s.connect_max_attempts == 5
    assert s.read_max_bytes == 1048576


def test_secrets_not_in_repr():
    s = Settings(_env_file=None, client_key="very-secret")
    assert "very-secret" not in repr(s)


def test_inventory_credentials(monkeypatch):
    monkeypatch.setenv("WAZUH_URL", "https://wazuh.test:55000")
    monkeypatch.setenv("WAZUH_USERNAME", "wazuh")
    monkeypatch.setenv("WAZUH_PASSWORD", "pw")
    assert Settings(_env_file=None).require_inventory_credentials() == ("https://wazuh.test:55000", "wazuh", "pw")


def test_missing_password_is_named(monkeypatch):
    monkeypatch.setenv("WAZUH_URL", "https://wazuh.test:55000")
    monkeypatch.setenv("WAZUH_USERNAME", "wazuh")
    monkeypatch.delenv("WAZUH_PASSWORD", raising=False)
    with pytest.raises(ConfigError) as exc_info:
        Settings(_env_file=None).require_inventory_credentials()
    assert exc_info.value.message.startswith("WAZUH_PASSWORD")
