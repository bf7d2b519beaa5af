"""
Tests for settings resolution: environment > .env > JSON file > defaults.
"""
import json

import pytest

from yomitan_local.core.config import HostSettings, load_settings, read_config_file, require_database
from yomitan_local.core.errors import ConfigurationError

from conftest import HOST_ENV_VARS


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Run each test in an empty directory with no host variables set."""
    for name in HOST_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def write_config(path, values):
    path.write_text(json.dumps(values), encoding="utf-8")
    return path


def test_defaults_without_config_file():
    settings = load_settings()

    assert settings.port == 3000
    assert settings.host == "0.0.0.0"
    assert settings.data_dir == "./data"
    assert settings.database_path == "./data/yomitan-audio.db"
    assert settings.router is None
    assert settings.cors_origin_list == ["*"]
    assert settings.authentication_enabled is False
    assert settings.api_keys == ""


def test_config_file_overrides_defaults(tmp_path):
    write_config(tmp_path / "local.config.json", {"port": 4000, "dataDir": "/srv/audio", "databasePath": "/srv/a.db"})

    settings = load_settings()

    assert settings.port == 4000
    assert settings.data_dir == "/srv/audio"
    assert settings.database_path == "/srv/a.db"


def test_environment_overrides_config_file(tmp_path, monkeypatch):
    write_config(tmp_path / "local.config.json", {"port": 4000, "dataDir": "/srv/audio"})
    monkeypatch.setenv("PORT", "5000")

    settings = load_settings()

    assert settings.port == 5000
    assert settings.data_dir == "/srv/audio"


def test_dotenv_is_read(tmp_path):
    (tmp_path / ".env").write_text("AWS_POLLY_ENABLED=true\nAPI_KEYS=a,b\n", encoding="utf-8")

    settings = load_settings()

    assert settings.aws_polly_enabled is True
    assert settings.api_keys == "a,b"


def test_overrides_win(tmp_path, monkeypatch):
    monkeypatch.setenv("PORT", "5000")

    settings = load_settings(port=6000, host=None)

    assert settings.port == 6000
    assert settings.host == "0.0.0.0"


def test_explicit_config_path_and_env_path(tmp_path, monkeypatch):
    custom = write_config(tmp_path / "custom.json", {"port": 7000})
    other = write_config(tmp_path / "other.json", {"port": 7100})
    monkeypatch.setenv("LOCAL_CONFIG_PATH", str(other))

    assert load_settings(custom).port == 7000
    assert load_settings().port == 7100


def test_flags_from_environment(monkeypatch):
    monkeypatch.setenv("AUTHENTICATION_ENABLED", "true")
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIA")

    settings = load_settings()

    assert settings.authentication_enabled is True
    assert settings.aws_access_key_id == "AKIA"


@pytest.mark.parametrize("raw,expected", [("true", True), ("enabled", False), ("1", False), ("TRUE", False), ("", False)])
def test_flags_enable_only_on_exact_true(monkeypatch, raw, expected):
    monkeypatch.setenv("AWS_POLLY_ENABLED", raw)

    assert load_settings().aws_polly_enabled is expected


def test_cors_origins_list_in_file(tmp_path):
    write_config(tmp_path / "local.config.json", {"corsOrigins": ["http://a.test", "http://b.test"]})

    assert load_settings().cors_origin_list == ["http://a.test", "http://b.test"]


def test_settings_are_frozen():
    settings = load_settings()

    with pytest.raises(Exception):
        settings.port = 1


def test_malformed_config_file(tmp_path):
    (tmp_path / "local.config.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="Could not read config file"):
        load_settings()


def test_config_file_must_be_object(tmp_path):
    path = write_config(tmp_path / "list.json", [1, 2])

    with pytest.raises(ConfigurationError, match="JSON object"):
        read_config_file(path)


def test_invalid_value(tmp_path):
    write_config(tmp_path / "local.config.json", {"port": "not-a-port"})

    with pytest.raises(ConfigurationError, match="Invalid configuration"):
        load_settings()


def test_require_database(tmp_path):
    db = tmp_path / "a.db"
    settings = HostSettings(databasePath=str(db))

    with pytest.raises(ConfigurationError) as exc_info:
        require_database(settings)
    assert "one-time import" in exc_info.value.remediation
    assert not db.exists()

    db.write_bytes(b"")
    assert require_database(settings) == db.resolve()
