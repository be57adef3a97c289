"""
Centralized configuration for the project health engine
All configuration values should be defined here
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Any, Optional
from pathlib import Path
from enum import Enum

from dotenv import load_dotenv

# Get base directory
BASE_DIR = Path(__file__).resolve().parent.parent

# Load env from server/.env when present; real environment wins
load_dotenv(BASE_DIR / ".env", override=False)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class LogLevel(Enum):
    """Log levels for the application"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class EnvironmentType(Enum):
    """Environment types"""
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


SUPPORTED_LANGUAGES = {
    "en": "English",
    "it": "Italian",
    "es": "Spanish",
}


@dataclass
class GenerationConfig:
    """External text-generation service (OpenAI-compatible chat completions)"""
    base_url: str = field(default_factory=lambda: os.getenv("HEALTH_LLM_BASE_URL") or os.getenv("OPENAI_BASE_URL", ""))
    api_key: str = field(default_factory=lambda: os.getenv("HEALTH_LLM_API_KEY") or os.getenv("OPENAI_API_KEY", ""))
    model: str = field(default_factory=lambda: os.getenv("HEALTH_LLM_MODEL", "gpt-4o-mini"))
    max_tokens: int = field(default_factory=lambda: int(os.getenv("HEALTH_LLM_MAX_TOKENS", "4096")))
    temperature: float = 0.3
    timeout_s: float = field(default_factory=lambda: float(os.getenv("HEALTH_LLM_TIMEOUT_S", "60")))

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)


@dataclass
class StorageConfig:
    """Cache and history database configuration"""
    sqlite_path: str = field(default_factory=lambda: os.getenv("HEALTH_SQLITE_PATH", str(BASE_DIR / "health.db")))
    snapshot_dir: str = field(default_factory=lambda: os.getenv("HEALTH_SNAPSHOT_DIR", str(BASE_DIR / "snapshots")))


@dataclass
class AnalysisConfig:
    """Scoring and recommendation settings"""
    language: str = field(default_factory=lambda: os.getenv("HEALTH_LANGUAGE", "en"))
    naming_affects_health_score: bool = field(default_factory=lambda: _env_flag("HEALTH_NAMING_AFFECTS_SCORE"))
    cache_ttl_days: int = field(default_factory=lambda: int(os.getenv("HEALTH_CACHE_TTL_DAYS", "7")))

    # Prompt bounds
    unused_tag_sample: int = 50
    worst_routines: int = 20
    top_tags: int = 10
    routine_summaries: int = 30
    version_summaries: int = 5
    previous_runs: int = 3
    top_violated_rules: int = 5

    # Token estimate used when the service does not report usage
    estimated_tokens: int = 2000


@dataclass
class LoggingConfig:
    """Logging configuration"""
    log_level: LogLevel = field(default_factory=lambda: LogLevel(os.getenv("LOG_LEVEL", "INFO").upper()))
    log_file: Optional[str] = field(default_factory=lambda: os.getenv("LOG_FILE"))
    rotation: str = "10 MB"
    retention: str = "10 days"


@dataclass
class Config:
    """Main configuration class combining all settings"""
    environment: EnvironmentType = field(default_factory=lambda: EnvironmentType(os.getenv("ENVIRONMENT", "development")))
    base_dir: Path = BASE_DIR

    generation: GenerationConfig = field(default_factory=GenerationConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    validate_on_init: bool = True

    def __post_init__(self):
        """Validate configuration after initialization"""
        if self.validate_on_init:
            self.validate()

    def validate(self):
        """Validate configuration values"""
        errors = []

        if not self.storage.sqlite_path:
            errors.append("SQLite path cannot be empty")

        if self.analysis.language not in SUPPORTED_LANGUAGES:
            errors.append(
                f"Language must be one of {', '.join(sorted(SUPPORTED_LANGUAGES))}, got {self.analysis.language!r}"
            )

        if self.analysis.cache_ttl_days <= 0:
            errors.append("Cache TTL must be positive")

        if self.generation.timeout_s <= 0:
            errors.append("Generation timeout must be positive")

        if self.generation.max_tokens <= 0:
            errors.append("Generation max tokens must be positive")

        if errors:
            raise ValueError("Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in errors))

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary (API key redacted)"""
        result: Dict[str, Any] = {}
        for key, value in self.__dict__.items():
            if isinstance(value, (GenerationConfig, StorageConfig, AnalysisConfig, LoggingConfig)):
                section = dict(value.__dict__)
                if "api_key" in section and section["api_key"]:
                    section["api_key"] = "***"
                if isinstance(section.get("log_level"), Enum):
                    section["log_level"] = section["log_level"].value
                result[key] = section
            elif isinstance(value, Enum):
                result[key] = value.value
            elif isinstance(value, Path):
                result[key] = str(value)
            else:
                result[key] = value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create configuration from dictionary"""
        config = cls(validate_on_init=False)

        for key, value in data.items():
            if not hasattr(config, key):
                continue
            current = getattr(config, key)
            if isinstance(current, (GenerationConfig, StorageConfig, AnalysisConfig, LoggingConfig)):
                for nested_key, nested_value in value.items():
                    if nested_key == "log_level":
                        nested_value = LogLevel(str(nested_value).upper())
                    if hasattr(current, nested_key):
                        setattr(current, nested_key, nested_value)
            elif key == "environment":
                config.environment = EnvironmentType(str(value).lower())
            else:
                setattr(config, key, value)

        config.validate()
        return config


# Global configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance"""
    global _config
    if _config is None:
        _config = Config()
    return _config


def set_config(config: Config):
    """Set the global configuration instance"""
    global _config
    _config = config


def reset_config():
    """Reset the global configuration instance (for testing)"""
    global _config
    _config = None


def load_config_from_file(file_path: str) -> Config:
    """Load configuration from a JSON file"""
    import json

    with open(file_path, 'r') as f:
        data = json.load(f)

    return Config.from_dict(data)
