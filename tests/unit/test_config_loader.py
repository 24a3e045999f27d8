"""Unit tests for the YAML config loader and Settings helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from ragengine.config.loader import load_config, load_settings
from ragengine.config.settings import Settings
from ragengine.utils.errors import ConfigurationError

_ENV_VARS = (
    "CHUNK_SIZE",
    "CHUNK_OVERLAP",
    "EMBEDDING_PROVIDER",
    "EMBEDDING_MAX_ATTEMPTS",
    "VECTOR_STORE_BACKENDS",
    "MAX_SOURCES",
    "APP_PORT",
)


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # No stray .env or exported variables from the developer's shell.
    monkeypatch.chdir(tmp_path)
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _write(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(body)
    return path


class TestLoadSettings:
    def test_sections_are_flattened(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path,
            "embedding:\n"
            "  max_attempts: 7\n"
            "chunking:\n"
            "  chunk_size: 800\n"
            "  chunk_overlap: 100\n"
            "app:\n"
            "  port: 9001\n"
            "vector_store:\n"
            "  backends: 'memory, chroma'\n",
        )

        settings = load_settings(path)

        assert settings.embedding_max_attempts == 7
        assert settings.chunk_size == 800
        assert settings.chunk_overlap == 100
        assert settings.app_port == 9001
        assert settings.get_vector_store_backends() == ["memory", "chroma"]

    def test_top_level_scalar_keys(self, tmp_path: Path) -> None:
        settings = load_settings(_write(tmp_path, "max_sources: 3\n"))

        assert settings.max_sources == 3

    def test_unknown_keys_are_ignored(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "retrieval:\n  shiny_new_knob: 1\n  top_k: 4\nmystery: true\n")

        settings = load_settings(path)

        assert settings.retrieval_top_k == 4
        assert not hasattr(settings, "shiny_new_knob")

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        settings = load_settings(tmp_path / "nope.yaml")

        assert settings.chunk_size == 1000
        assert settings.embedding_provider == "hashing"

    def test_environment_beats_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHUNK_SIZE", "1500")
        path = _write(tmp_path, "chunking:\n  chunk_size: 800\n")

        assert load_settings(path).chunk_size == 1500

    def test_overrides_beat_everything(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MAX_SOURCES", "8")
        path = _write(tmp_path, "retrieval:\n  max_sources: 6\n")

        assert load_settings(path, max_sources=2).max_sources == 2

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Malformed YAML"):
            load_settings(_write(tmp_path, "chunking: [unclosed\n"))

    def test_non_mapping_top_level(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            load_settings(_write(tmp_path, "- one\n- two\n"))

    def test_invalid_values(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "chunking:\n  chunk_size: 100\n  chunk_overlap: 100\n")

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_settings(path)

    def test_load_config_returns_dict(self, tmp_path: Path) -> None:
        config = load_config(_write(tmp_path, "retrieval:\n  max_sources: 4\n"))

        assert isinstance(config, dict)
        assert config["max_sources"] == 4

    def test_repository_config_file_loads(self, project_root: Path) -> None:
        settings = load_settings(project_root / "config" / "config.yaml")

        assert settings.memory_persist_path == "data/vectors.json"
        assert settings.synthesis_mode == "extractive"


class TestSettingsHelpers:
    def test_backends_are_normalized(self) -> None:
        settings = Settings(_env_file=None, vector_store_backends=" Memory ,weaviate,, memory ")

        assert settings.get_vector_store_backends() == ["memory", "weaviate"]

    def test_available_llm_providers(self) -> None:
        settings = Settings(_env_file=None, openai_api_key="", anthropic_api_key="ak")

        assert settings.get_available_llm_providers() == ["anthropic"]

    def test_overlap_must_be_smaller_than_size(self) -> None:
        with pytest.raises(ValueError):
            Settings(_env_file=None, chunk_size=200, chunk_overlap=250)
