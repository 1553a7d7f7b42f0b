"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class SchedulerConfig(BaseModel):
    """Closed-market polling."""

    interval_ms: int = Field(default=30000, gt=0)


class ResolutionConfig(BaseModel):
    """Outcome acceptance policy."""

    confidence_threshold: float = Field(default=0.6, ge=0.0, le=1.0)


class ResolverConfig(BaseModel):
    """AI resolver model parameters."""

    model: str = "x-ai/grok-4.1-fast"
    web_search: bool = True  # OpenRouter ":online" variant
    max_web_results: int = 10
    temperature: float = 0.4
    max_tokens: int = 4096
    output_retries: int = 1
    timeout_seconds: float = 120.0


class ApiConfig(BaseModel):
    """HTTP server parameters."""

    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:3001"]
    )


class Settings(BaseSettings):
    """Main configuration class."""

    # Paths
    data_dir: Path = Path("data")

    # API Keys
    openrouter_api_key: str = ""
    logfire_token: str = ""

    log_level: str = "INFO"

    # Nested configuration sections
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    resolution: ResolutionConfig = Field(default_factory=ResolutionConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("data_dir", mode="after")
    @classmethod
    def resolve_data_dir(cls, v: Path) -> Path:
        """Resolve data directory to absolute path."""
        return v.resolve()

    @property
    def markets_path(self) -> Path:
        return self.data_dir / "markets.yaml"

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration."""
        config_path = self.data_dir / "config.yaml"

        if not config_path.exists():
            logger.warning(
                f"Config file not found: {config_path}. "
                "Using defaults. Run 'python -m arbiter init' to create it."
            )
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in ["scheduler", "resolution", "resolver", "api"]:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    yaml_section = yaml_config[section_name] or {}

                    section_dict = section.model_dump()
                    section_dict.update(yaml_section)

                    new_section = section.__class__(**section_dict)
                    setattr(self, section_name, new_section)

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to load config: {e}")
            raise


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings
