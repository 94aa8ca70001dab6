"""Tests for layered configuration loading (defaults < YAML < ENV < CLI)."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from sourcerr.domain.entities.streams import SortOrder, SourceMode
from sourcerr.infrastructure.config import AppConfig, ConfigSettingsStore, load_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("SOURCERR_"):
            monkeypatch.delenv(key)


def _write_yaml(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestDefaults:
    def test_defaults(self) -> None:
        config = load_config()

        assert config.app_name == "sourcerr"
        assert config.log_format == "console"
        assert config.fetch.proxies == []
        assert config.sources.aggregator_name == "Torrentio"
        assert config.sources.dmm_name == "Zilean"
        assert config.sources.request_deadline_seconds is None
        assert config.ranking.default_sort is SortOrder.HIGH_TO_LOW
        assert config.settings.debrid_api_key is None
        assert config.cache.directory == Path("./.cache/sourcerr")

    def test_prod_defaults_to_json_logs(self) -> None:
        assert load_config(cli_overrides={"environment": "prod"}).log_format == "json"


class TestLayers:
    def test_yaml_overrides_defaults(self, tmp_path: Path) -> None:
        path = _write_yaml(
            tmp_path,
            "sources:\n"
            "  request_deadline_seconds: 20\n"
            "settings:\n"
            "  third_party_enabled: true\n"
            "logging:\n"
            "  level: DEBUG\n",
        )
        config = load_config(config_path=path)

        assert config.sources.request_deadline_seconds == 20
        assert config.sources.provider_timeout_seconds == 60.0
        assert config.settings.third_party_enabled is True
        assert config.log_level == "DEBUG"

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = _write_yaml(tmp_path, "settings:\n  third_party_enabled: true\n")
        monkeypatch.setenv("SOURCERR_THIRD_PARTY_ENABLED", "false")
        monkeypatch.setenv("SOURCERR_FETCH_PROXIES", '["https://proxy.example/?url="]')
        monkeypatch.setenv("SOURCERR_DEBRID_API_KEY", "tb-key")

        config = load_config(config_path=path)

        assert config.settings.third_party_enabled is False
        assert config.fetch.proxies == ["https://proxy.example/?url="]
        assert config.settings.debrid_api_key == "tb-key"

    def test_cli_overrides_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SOURCERR_LOG_LEVEL", "WARNING")
        config = load_config(cli_overrides={"log_level": "ERROR", "log_format": "json"})
        assert config.log_level == "ERROR"
        assert config.log_format == "json"

    def test_dotenv_participates_as_env(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        # register the key so monkeypatch removes what load_dotenv sets
        monkeypatch.setenv("SOURCERR_ACTIVE_SOURCE", "placeholder")
        monkeypatch.delenv("SOURCERR_ACTIVE_SOURCE")
        dotenv = tmp_path / ".env"
        dotenv.write_text("SOURCERR_ACTIVE_SOURCE=dmm_cache\n", encoding="utf-8")

        config = load_config(dotenv_path=dotenv)

        assert config.settings.active_source == "dmm_cache"

    def test_blank_api_key_is_none(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SOURCERR_DEBRID_API_KEY", "   ")
        assert load_config().settings.debrid_api_key is None


class TestErrors:
    def test_missing_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(config_path=tmp_path / "absent.yaml")

    def test_missing_dotenv(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(dotenv_path=tmp_path / ".env")

    def test_yaml_must_be_mapping(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="mapping"):
            load_config(config_path=_write_yaml(tmp_path, "- a\n- b\n"))

    def test_non_positive_deadline(self) -> None:
        with pytest.raises(ValidationError):
            load_config(cli_overrides={"request_deadline_seconds": 0})

    def test_unknown_active_source(self) -> None:
        with pytest.raises(ValidationError):
            load_config(cli_overrides={"active_source": "usenet"})


class TestSectionedDump:
    def test_api_key_masked(self) -> None:
        config = AppConfig.model_validate({"settings": {"debrid_api_key": "secret"}})
        dumped = config.to_sectioned_dict()

        assert dumped["settings"]["debrid_api_key"] == "***"
        assert dumped["cache"]["dir"] == ".cache/sourcerr"
        assert dumped["ranking"]["default_sort"] == "high_to_low"


class TestSettingsStore:
    async def test_snapshot(self) -> None:
        config = AppConfig.model_validate(
            {"settings": {"active_source": "dmm_cache", "debrid_api_key": "k"}}
        )
        snapshot = await ConfigSettingsStore(config.settings).snapshot()

        assert snapshot.active_source is SourceMode.DMM_CACHE
        assert snapshot.third_party_enabled is False
        assert snapshot.debrid_credential == "k"
