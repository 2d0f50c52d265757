"""Tests for configuration loading and validation."""

import pytest

from utils.config import PROVIDER_ENV_VARS, is_test_mode, load_config, validate_config

pytestmark = pytest.mark.unit

TUNING_VARS = (
    "IMAGE_GEN_TIMEOUT",
    "IMAGE_GEN_CACHE_ENABLED",
    "IMAGE_GEN_CACHE_TTL",
    "IMAGE_GEN_RATE_LIMIT",
    "IMAGE_GEN_RATE_WINDOW",
    "LOG_LEVEL",
    "LOG_JSON",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in (*PROVIDER_ENV_VARS.values(), *TUNING_VARS):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self, clean_env):
        config = load_config()

        assert config["api_keys"] == {name: "" for name in PROVIDER_ENV_VARS}
        assert config["timeout_seconds"] == 30.0
        assert config["cache_enabled"] is True
        assert config["cache_ttl_seconds"] == 300.0
        assert config["rate_limit_requests"] == 10
        assert config["rate_limit_window_seconds"] == 60.0
        assert config["log_level"] == "INFO"
        assert config["log_json"] is False

    def test_reads_environment(self, clean_env):
        clean_env.setenv("OPENAI_API_KEY", "sk-openai-123456")
        clean_env.setenv("REPLICATE_API_TOKEN", "r8_token_123456")
        clean_env.setenv("IMAGE_GEN_CACHE_ENABLED", "False")
        clean_env.setenv("IMAGE_GEN_RATE_LIMIT", "3")
        clean_env.setenv("LOG_JSON", "true")

        config = load_config()

        assert config["api_keys"]["OPENAI"] == "sk-openai-123456"
        assert config["api_keys"]["REPLICATE"] == "r8_token_123456"
        assert config["cache_enabled"] is False
        assert config["rate_limit_requests"] == 3
        assert config["log_json"] is True

    def test_env_file_does_not_override_environment(self, clean_env, temp_dir):
        clean_env.setenv("BFL_API_KEY", "bfl-from-environment")
        clean_env.setenv("GEMINI_API_KEY", "unset")
        clean_env.delenv("GEMINI_API_KEY")
        env_file = temp_dir / ".env"
        env_file.write_text("BFL_API_KEY=bfl-from-file\nGEMINI_API_KEY=gemini-from-file\n")

        config = load_config(env_file=str(env_file))

        assert config["api_keys"]["BFL"] == "bfl-from-environment"
        assert config["api_keys"]["GEMINI"] == "gemini-from-file"


class TestValidateConfig:
    """Tests for validate_config."""

    def test_valid(self, clean_env):
        clean_env.setenv("FAL_KEY", "fal-key-123456")
        assert validate_config(load_config()) == []

    def test_no_keys(self, clean_env):
        errors = validate_config(load_config())
        assert len(errors) == 1
        assert "No provider API keys set" in errors[0]
        assert "FAL_KEY" in errors[0]

    def test_bad_numbers(self):
        errors = validate_config(
            {
                "api_keys": {"OPENAI": "sk-openai-123456"},
                "timeout_seconds": 0,
                "cache_ttl_seconds": -1,
                "rate_limit_requests": 0,
                "rate_limit_window_seconds": 0,
            }
        )
        assert len(errors) == 4


class TestTestMode:
    """Tests for is_test_mode."""

    def test_true_under_pytest(self):
        assert is_test_mode() is True

    def test_explicit_env(self, monkeypatch):
        monkeypatch.delenv("PYTEST_CURRENT_TEST")
        monkeypatch.setenv("IMAGE_GEN_ENV", "test")
        assert is_test_mode() is True

    def test_false_otherwise(self, monkeypatch):
        monkeypatch.delenv("PYTEST_CURRENT_TEST")
        monkeypatch.delenv("IMAGE_GEN_ENV", raising=False)
        assert is_test_mode() is False
