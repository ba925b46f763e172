"""Application configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


def _find_project_root() -> Path:
    """Find project root by locating pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path.cwd()


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from config/settings.yaml."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        """Not used - we implement __call__ instead."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        """Load settings from YAML file."""
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        # Flatten nested structure to match Settings field names
        flattened = {}
        if "server" in data:
            flattened["host"] = data["server"].get("host")
            flattened["port"] = data["server"].get("port")
            flattened["allowed_origins"] = data["server"].get("allowed_origins")
        if "llm" in data:
            llm = data["llm"]
            flattened["generation_model"] = llm.get("model")
            flattened["llm_base_url"] = llm.get("base_url")
            flattened["llm_temperature"] = llm.get("temperature")
            flattened["llm_max_tokens"] = llm.get("max_tokens")
            flattened["llm_timeout_seconds"] = llm.get("timeout_seconds")
            flattened["llm_max_retries"] = llm.get("max_retries")
        if "store" in data:
            flattened["store_backend"] = data["store"].get("backend")
            flattened["store_path"] = data["store"].get("path")
        if "curriculum" in data:
            curriculum = data["curriculum"]
            flattened["max_stage"] = curriculum.get("max_stage")
            flattened["recent_quiz_limit"] = curriculum.get("recent_quiz_limit")
            flattened["submission_max_attempts"] = curriculum.get("submission_max_attempts")
        if "auth" in data:
            flattened["jwt_algorithm"] = data["auth"].get("jwt_algorithm")
            flattened["access_token_expire_minutes"] = (
                data["auth"].get("access_token_expire_minutes")
            )

        # Remove None values
        return {k: v for k, v in flattened.items() if v is not None}


class Settings(BaseSettings):
    """Application settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # LLM (any OpenAI-compatible endpoint; None base_url means api.openai.com)
    openai_api_key: str | None = Field(default=None, description="LLM API key")
    llm_base_url: str | None = Field(default=None)
    generation_model: str = Field(default="gpt-4o-mini")
    llm_temperature: float = Field(default=0.7)
    llm_max_tokens: int = Field(default=2048)
    llm_timeout_seconds: float = Field(default=60.0)
    llm_max_retries: int = Field(default=0)

    # Authentication
    jwt_secret_key: str = Field(default="change-me")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=120)

    # Key-value store: "memory" or "file"
    store_backend: str = Field(default="file")
    store_path: Path | None = Field(default=None)

    # Curriculum
    max_stage: int = Field(default=5, ge=1)
    recent_quiz_limit: int = Field(default=10, ge=1)
    submission_max_attempts: int = Field(default=5, ge=1)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    allowed_origins: str = Field(default="http://localhost:5173,http://127.0.0.1:5173")

    # Paths
    project_root: Path = Field(default_factory=_find_project_root)

    @property
    def data_dir(self) -> Path:
        d = self.project_root / "data"
        d.mkdir(parents=True, exist_ok=True)
        return d

    @property
    def resolved_store_path(self) -> Path:
        return self.store_path or self.data_dir / "kv_store.json"

    @property
    def origins(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings sources to include YAML file.

        Priority order (highest to lowest):
        1. init_settings (arguments passed to Settings())
        2. env_settings (environment variables)
        3. dotenv_settings (.env file)
        4. YamlSettingsSource (settings.yaml)
        5. file_secret_settings
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()
