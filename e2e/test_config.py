"""Configuration loading tests."""

import pathlib

import pytest
from pydantic import ValidationError

from config import DEFAULT_CONFIG_PATH, RunConfig, TrackedProgram, load_config
from core.errors import ConfigError
from schemas.signal import Category


def write(tmp_path: pathlib.Path, text: str) -> pathlib.Path:
    path = tmp_path / "config.toml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_shipped_config_loads(self):
        config = load_config(DEFAULT_CONFIG_PATH)
        assert ("jupiter", "raydium") in config.ratio_pairs
        assert config.timeout_for("solana_rpc") == 45.0
        assert any(p.category == Category.DEPIN for p in config.solana.tracked_programs)

    def test_partial_file_keeps_defaults(self, tmp_path):
        config = load_config(write(tmp_path, "synthesis_retries = 0\n"))
        assert config.synthesis_retries == 0
        assert config.llm.provider == "openrouter"
        assert config.github.queries == ["solana"]

    def test_missing_explicit_file_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.toml")

    def test_invalid_toml_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(write(tmp_path, "ratio_pairs = [[\n"))

    def test_unknown_key_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(write(tmp_path, "retries = 3\n"))

    def test_unknown_provider_raises(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(write(tmp_path, '[llm]\nprovider = "cohere"\n'))

    def test_unknown_keyword_category_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="Memecoins"):
            load_config(write(tmp_path, '[category_keywords]\nMemecoins = ["bonk"]\n'))

    def test_non_positive_timeout_raises(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(write(tmp_path, "[source_timeouts]\ngithub = 0\n"))


class TestRunConfig:
    def test_frozen(self):
        config = RunConfig()
        with pytest.raises(ValidationError):
            config.synthesis_retries = 5

    def test_timeout_falls_back_to_default(self):
        config = RunConfig(fetch_timeout_seconds=12.0, source_timeouts={"blog": 3.0})
        assert config.timeout_for("blog") == 3.0
        assert config.timeout_for("github") == 12.0

    def test_tracked_program_name_slugged(self):
        program = TrackedProgram(name="Drift Protocol", address="dRift", category="derivatives")
        assert program.name == "drift_protocol"
        assert program.category == Category.DEFI

    def test_github_token_from_environment(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "from-env")
        assert RunConfig().github.token == "from-env"
