from __future__ import annotations

import json
from pathlib import Path

import pytest

import lecture_quiz.config as config_module
from lecture_quiz.bootstrap import Bootstrapper, BootstrapError, initialize_app
from lecture_quiz.config import AppConfig, ConfigError, load_config


def test_from_mapping_applies_defaults(tmp_path: Path) -> None:
    config = AppConfig.from_mapping({}, base_path=tmp_path)

    assert config.storage_root == (tmp_path / "storage").resolve()
    assert config.api_base_url == "http://localhost:3000/api"
    assert config.poll_interval_seconds == 5.0
    assert config.request_timeout_seconds is None
    assert config.progress_scale == "percent"
    assert config.exports_root == (tmp_path / "storage" / "exports").resolve()


def test_storage_root_falls_back_when_preferred_is_unusable(tmp_path: Path, monkeypatch) -> None:
    home_dir = tmp_path / "home"
    monkeypatch.setattr(config_module.Path, "home", lambda: home_dir)
    (tmp_path / "storage").write_text("not a directory", encoding="utf-8")

    config = AppConfig.from_mapping({"storage_root": "storage"}, base_path=tmp_path)

    expected = (home_dir / ".lecture_quiz" / "storage").resolve()
    assert config.storage_root == expected
    assert expected.is_dir()


@pytest.mark.parametrize(
    "mapping",
    [
        {"poll_interval_seconds": 0},
        {"poll_interval_seconds": "fast"},
        {"request_timeout_seconds": -1},
        {"progress_scale": "ratio"},
    ],
)
def test_invalid_values_are_rejected(tmp_path: Path, mapping) -> None:
    with pytest.raises(ConfigError):
        AppConfig.from_mapping(mapping, base_path=tmp_path)


def test_load_config_reads_file_and_environment(tmp_path: Path, monkeypatch) -> None:
    config_file = tmp_path / "settings.json"
    config_file.write_text(
        json.dumps(
            {
                "storage_root": "data",
                "api_base_url": "http://backend:3000/api/",
                "poll_interval_seconds": 2,
                "request_timeout_seconds": 10,
                "progress_scale": "fraction",
            }
        ),
        encoding="utf-8",
    )
    monkeypatch.delenv("LECTURE_QUIZ_API_URL", raising=False)

    config = load_config(config_file)

    assert config.storage_root == (tmp_path / "data").resolve()
    assert config.api_base_url == "http://backend:3000/api"
    assert config.poll_interval_seconds == 2.0
    assert config.request_timeout_seconds == 10.0
    assert config.progress_scale == "fraction"

    monkeypatch.setenv("LECTURE_QUIZ_API_URL", "https://quiz.example/api/")
    assert load_config(config_file).api_base_url == "https://quiz.example/api"


def test_missing_config_file_uses_defaults(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("LECTURE_QUIZ_API_URL", raising=False)

    config = load_config(tmp_path / "absent.json")

    assert config.api_base_url == "http://localhost:3000/api"


def test_with_api_url_ignores_empty_override(temp_config: AppConfig) -> None:
    assert temp_config.with_api_url(None) is temp_config
    assert temp_config.with_api_url("http://x/api/").api_base_url == "http://x/api"


def test_bootstrap_creates_runtime_directories(temp_config: AppConfig) -> None:
    assert temp_config.storage_root.is_dir()
    assert temp_config.exports_root.is_dir()


def test_bootstrap_reports_unusable_exports_directory(temp_config: AppConfig) -> None:
    temp_config.exports_root.rmdir()
    temp_config.exports_root.write_text("occupied", encoding="utf-8")

    with pytest.raises(BootstrapError):
        Bootstrapper(temp_config).initialize()


def test_initialize_app_uses_given_config_path(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("LECTURE_QUIZ_API_URL", raising=False)
    config_file = tmp_path / "default.json"
    config_file.write_text('{"storage_root": "runtime"}', encoding="utf-8")

    config = initialize_app(config_file)

    assert (tmp_path / "runtime" / "exports").is_dir()
    assert config.storage_root == (tmp_path / "runtime").resolve()
