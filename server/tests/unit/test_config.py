"""
Unit tests for configuration
"""

import json
import pytest

from core.config import (
    Config,
    EnvironmentType,
    GenerationConfig,
    LogLevel,
    get_config,
    load_config_from_file,
    reset_config,
    set_config,
)


class TestConfig:
    """Environment-driven configuration"""

    def test_generation_reads_environment(self, monkeypatch):
        monkeypatch.setenv("HEALTH_LLM_BASE_URL", "http://localhost:1234/v1")
        monkeypatch.setenv("HEALTH_LLM_MODEL", "local-model")
        monkeypatch.setenv("HEALTH_LLM_TIMEOUT_S", "15")

        config = GenerationConfig()

        assert config.base_url == "http://localhost:1234/v1"
        assert config.model == "local-model"
        assert config.timeout_s == 15.0
        assert config.is_configured

    def test_generation_falls_back_to_openai_variables(self, monkeypatch):
        monkeypatch.delenv("HEALTH_LLM_BASE_URL", raising=False)
        monkeypatch.delenv("HEALTH_LLM_API_KEY", raising=False)
        monkeypatch.setenv("OPENAI_BASE_URL", "http://openai.test/v1")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        config = GenerationConfig()

        assert config.base_url == "http://openai.test/v1"
        assert config.api_key == "sk-test"

    def test_unconfigured_without_base_url(self, monkeypatch):
        monkeypatch.delenv("HEALTH_LLM_BASE_URL", raising=False)
        monkeypatch.delenv("OPENAI_BASE_URL", raising=False)

        assert not GenerationConfig().is_configured

    def test_naming_flag_from_environment(self, monkeypatch):
        monkeypatch.setenv("HEALTH_NAMING_AFFECTS_SCORE", "true")
        monkeypatch.setenv("HEALTH_LANGUAGE", "es")

        config = Config()

        assert config.analysis.naming_affects_health_score is True
        assert config.analysis.language == "es"

    def test_validation_rejects_unknown_language(self):
        config = Config(validate_on_init=False)
        config.analysis.language = "de"

        with pytest.raises(ValueError, match="Language"):
            config.validate()

    def test_validation_rejects_non_positive_ttl(self):
        config = Config(validate_on_init=False)
        config.analysis.language = "en"
        config.analysis.cache_ttl_days = 0

        with pytest.raises(ValueError, match="Cache TTL"):
            config.validate()

    def test_to_dict_redacts_api_key(self):
        config = Config(validate_on_init=False)
        config.generation.api_key = "secret"

        data = config.to_dict()

        assert data["generation"]["api_key"] == "***"
        assert isinstance(data["logging"]["log_level"], str)

    def test_from_dict_and_file(self, temp_dir):
        payload = {
            "environment": "testing",
            "analysis": {"language": "it", "cache_ttl_days": 3},
            "logging": {"log_level": "debug"},
        }
        path = temp_dir / "config.json"
        path.write_text(json.dumps(payload))

        config = load_config_from_file(str(path))

        assert config.environment == EnvironmentType.TESTING
        assert config.analysis.language == "it"
        assert config.analysis.cache_ttl_days == 3
        assert config.logging.log_level == LogLevel.DEBUG

    def test_global_instance(self):
        reset_config()
        custom = Config(validate_on_init=False)
        set_config(custom)

        assert get_config() is custom

        reset_config()
        assert get_config() is not custom
        reset_config()
