"""Tests for YAML configuration loading and validation."""

import pytest

from heart_monitor.config import AppConfig, load_config, validate_config


def write(tmp_path, text):
    path = tmp_path / "monitor.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_defaults():
    config = AppConfig()
    assert config.scan.adapter == "hci0"
    assert config.scan.timeout_sec is None
    assert config.session.release_handler_on_reject is True
    assert config.logging.verbose_whitelist == []


def test_load_sections(tmp_path):
    path = write(tmp_path, """
scan:
  adapter: hci1
  timeout_sec: 12.5
session:
  poll_interval_sec: 0.2
  release_handler_on_reject: false
logging:
  dir: {dir}
  mode: verbose
  verbose_whitelist:
    measurement: true
""".format(dir=tmp_path / "logs"))

    config = load_config(path)

    assert config.scan.adapter == "hci1"
    assert config.scan.timeout_sec == 12.5
    assert config.session.poll_interval_sec == 0.2
    assert config.session.connect_timeout_sec == 10.0
    assert config.session.release_handler_on_reject is False
    assert config.logging.mode == "verbose"
    assert config.logging.verbose_whitelist == ["measurement"]
    assert validate_config(config) == []


def test_env_substitution(tmp_path, monkeypatch):
    monkeypatch.setenv("HR_ADAPTER", "hci7")
    path = write(tmp_path, "scan:\n  adapter: ${HR_ADAPTER}\nlogging:\n  verbose_whitelist: ['${HR_ADAPTER}']\n")

    config = load_config(path)

    assert config.scan.adapter == "hci7"
    assert config.logging.verbose_whitelist == ["hci7"]


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))


def test_empty_file(tmp_path):
    with pytest.raises(ValueError):
        load_config(write(tmp_path, ""))


def test_unknown_key_rejected(tmp_path):
    with pytest.raises(TypeError):
        load_config(write(tmp_path, "scan:\n  radio: on\n"))


def test_validation_errors(tmp_path):
    config = AppConfig()
    config.scan.adapter = ""
    config.scan.timeout_sec = 0
    config.session.connect_timeout_sec = -1
    config.session.poll_interval_sec = 0
    config.logging.mode = "chatty"
    config.logging.dir = str(tmp_path / "logs")

    errors = validate_config(config)

    assert len(errors) == 5
    assert any("adapter" in e for e in errors)
    assert any("chatty" in e for e in errors)
