from __future__ import annotations

from pathlib import Path

import pytest

from ghostctl.core.errors import ConfigLoadError, ConfigValidationError
from ghostctl.core.model import EngineSettings
from ghostctl.core.settings import load_settings, user_settings_path


def _write_user_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, text: str) -> Path:
    config_root = tmp_path / "cfg"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_root))
    path = config_root / "ghostctl" / "config.yaml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_packaged_defaults_match_engine_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "empty"))
    loaded = load_settings()
    assert loaded.settings == EngineSettings()
    assert loaded.warnings == ()


def test_user_config_overrides_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write_user_config(tmp_path, monkeypatch, "port: /dev/ttyACM0\nchunk_size: 2048\n")
    assert user_settings_path() == path

    loaded = load_settings()
    assert loaded.settings.port == "/dev/ttyACM0"
    assert loaded.settings.chunk_size == 2048
    assert loaded.settings.baud_rate == 115200
    assert len(loaded.warnings) == 1
    assert "chunk_size, port" in loaded.warnings[0]


def test_empty_user_config_adds_no_warning(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_user_config(tmp_path, monkeypatch, "")
    assert load_settings().warnings == ()


@pytest.mark.parametrize(
    "text",
    [
        "chunk_size: 0\n",
        "baud_rate: 12345\n",
        "unknown_key: 1\n",
        "port: /dev/a\nport: /dev/b\n",
        "- not\n- a mapping\n",
        "port: [unclosed\n",
    ],
)
def test_invalid_user_config_is_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, text: str) -> None:
    _write_user_config(tmp_path, monkeypatch, text)
    with pytest.raises(ConfigValidationError):
        load_settings()


def test_explicit_missing_path_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError):
        load_settings(tmp_path / "missing.yaml")


def test_explicit_path_is_used(tmp_path: Path) -> None:
    path = tmp_path / "bench.yaml"
    path.write_text("port: COM3\nstop_settle_s: 0.5\n", encoding="utf-8")
    loaded = load_settings(path)
    assert loaded.settings.port == "COM3"
    assert loaded.settings.stop_settle_s == 0.5
