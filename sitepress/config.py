import os
import re
from functools import lru_cache
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env early so provider tokens are available for YAML interpolation
_env_file = Path(__file__).parent.parent / ".env"
load_dotenv(_env_file)

# Pattern to match $VAR_NAME environment variable references
ENV_VAR_PATTERN = re.compile(r"\$([A-Z_][A-Z0-9_]*)")


def interpolate_env_vars(value):
    """Recursively replace $VAR_NAME with os.environ values."""
    if isinstance(value, str):

        def replace(match):
            var = match.group(1)
            val = os.environ.get(var)
            if val is None:
                raise ValueError(f"Environment variable ${var} not set")
            return val

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: interpolate_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]
    return value


def get_config_path() -> Path:
    """Return the app.yaml path, honouring SITEPRESS_CONFIG when set."""
    override = os.environ.get("SITEPRESS_CONFIG")
    if override:
        return Path(override)
    return Path.cwd() / "app.yaml"


def load_app_config() -> dict:
    """Load and parse app.yaml with environment variable interpolation."""
    config_path = get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(f"app.yaml not found at {config_path}")

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    return interpolate_env_vars(config)


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = "sqlite+aiosqlite:///./app.db"
    pool_size: int = 5
    pool_overflow: int = 10
    pool_timeout: int = 30
    pool_pre_ping: bool = False
    echo: bool = False


class ProviderConfig(BaseModel):
    """A single hosting provider entry.

    ``backend`` is ``vercel``, ``netlify`` or a ``module:ClassName`` spec for a
    custom provider class.
    """

    backend: str = "vercel"
    token: str = ""
    team_id: str | None = None
    api_url: str | None = None
    framework: str = "nextjs"
    timeout: float = 30.0


class DeployConfig(BaseModel):
    """Deployment orchestration configuration."""

    default_provider: str = "vercel"
    providers: dict[str, ProviderConfig] = {}
    poll_interval: float = 5.0
    poll_max_attempts: int = 60
    fail_on_poll_timeout: bool = False


class ExportSettings(BaseModel):
    """Defaults applied to every static-site export."""

    typescript: bool = True
    tailwind: bool = True
    include_env_example: bool = True
    include_docker: bool = False
    section_naming: str = "positional"
    author: str | None = None


class LogfireConfig(BaseModel):
    """Pydantic Logfire observability configuration."""

    enabled: bool = False
    service_name: str = "sitepress"
    environment: str | None = None
    sample_rate: float = 1.0
    console: bool = False


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SITEPRESS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Application
    debug: bool = False
    log_level: str = "INFO"

    # Sections loaded from app.yaml
    db: DatabaseConfig = DatabaseConfig()
    deploy: DeployConfig = DeployConfig()
    export: ExportSettings = ExportSettings()
    logfire: LogfireConfig = LogfireConfig()


@lru_cache
def get_settings() -> Settings:
    """Load settings from .env and app.yaml."""
    base_settings = Settings()

    try:
        app_config = load_app_config()
    except FileNotFoundError:
        return base_settings

    updates = {}

    if "db" in app_config:
        updates["db"] = DatabaseConfig(**app_config["db"])

    if "deploy" in app_config:
        updates["deploy"] = DeployConfig(**app_config["deploy"])

    if "export" in app_config:
        updates["export"] = ExportSettings(**app_config["export"])

    if "logfire" in app_config:
        updates["logfire"] = LogfireConfig(**app_config["logfire"])

    if "log_level" in app_config:
        updates["log_level"] = str(app_config["log_level"])

    if updates:
        return base_settings.model_copy(update=updates)

    return base_settings
