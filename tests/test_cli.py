"""Tests for command line handling."""

import pytest

from heart_monitor.cli import build_parser, main, resolve_config


def test_overrides_applied_to_defaults():
    args = build_parser().parse_args(["--adapter", "hci2", "--scan-timeout", "5"])
    config = resolve_config(args)

    assert config.scan.adapter == "hci2"
    assert config.scan.timeout_sec == 5.0


def test_overrides_applied_to_file(tmp_path):
    path = tmp_path / "monitor.yaml"
    path.write_text("scan:\n  adapter: hci1\n  timeout_sec: 3\n", encoding="utf-8")

    config = resolve_config(build_parser().parse_args(["--config", str(path)]))

    assert config.scan.adapter == "hci1"
    assert config.scan.timeout_sec == 3


def test_missing_config_exits(tmp_path):
    with pytest.raises(SystemExit) as exc:
        main(["--config", str(tmp_path / "missing.yaml")])
    assert exc.value.code == 1


def test_invalid_config_exits(tmp_path, capsys):
    path = tmp_path / "monitor.yaml"
    path.write_text("session:\n  poll_interval_sec: 0\nlogging:\n  enabled: false\n", encoding="utf-8")

    with pytest.raises(SystemExit) as exc:
        main(["--config", str(path)])

    assert exc.value.code == 1
    assert "poll_interval_sec" in capsys.readouterr().err


def test_wrongly_typed_value_reported_as_invalid(tmp_path, capsys):
    path = tmp_path / "monitor.yaml"
    path.write_text("scan:\n  timeout_sec: abc\nlogging:\n  enabled: false\n", encoding="utf-8")

    with pytest.raises(SystemExit) as exc:
        main(["--config", str(path)])

    assert exc.value.code == 1
    assert "Invalid configuration" in capsys.readouterr().err
