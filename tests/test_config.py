"""Tests for client settings loading."""

import pytest
from pydantic import ValidationError

from ubntkit.config import ClientSettings, load_settings


def test_defaults():
    """Test the defaults used when no settings file is given."""
    settings = ClientSettings()
    assert settings.timeout == 30.0
    assert settings.buffer_size == 8192
    assert settings.chunk_size == 2048
    assert settings.config_path == "/tmp/system.cfg"
    assert settings.username == "ubnt"
    assert settings.port == 22


def test_load_settings_with_env_interpolation(tmp_path, monkeypatch):
    """Test loading a YAML settings file that references the environment."""
    monkeypatch.setenv("UBNT_TEST_USER", "admin")
    settings_file = tmp_path / "settings.yaml"
    settings_file.write_text(
        "username: ${oc.env:UBNT_TEST_USER}\n"
        "timeout: 5\n"
        "chunk_size: 1024\n"
        "config_path: /var/tmp/system.cfg\n"
    )

    settings = load_settings(settings_file)

    assert settings.username == "admin"
    assert settings.timeout == 5.0
    assert settings.chunk_size == 1024
    assert settings.config_path == "/var/tmp/system.cfg"
    assert settings.buffer_size == 8192


def test_load_settings_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "missing.yaml")


def test_load_settings_rejects_non_mapping(tmp_path):
    settings_file = tmp_path / "settings.yaml"
    settings_file.write_text("- timeout\n- 5\n")
    with pytest.raises(ValueError):
        load_settings(settings_file)


def test_load_settings_validates_values(tmp_path):
    settings_file = tmp_path / "settings.yaml"
    settings_file.write_text("chunk_size: 0\n")
    with pytest.raises(ValidationError):
        load_settings(settings_file)
