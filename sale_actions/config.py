"""
Configuration loading.

Reads a YAML file and validates it into typed settings. Secrets may be left
out of the file and supplied through the environment (a ``.env`` file next
to the working directory is loaded first).

Expected YAML format:
```yaml
general:
  check_delay: 60
  metrics_port: 9108
  pipelines: [purchases, renewals]

email:
  base_url: https://connect.mailerlite.com/api
  api_key: ...
  ar_group_id: "112233"
  batch_size: 50
  batch_requests: false

database:
  host: localhost
  name: sales
  user: sale_actions
  password: ...
  join_strategy: native

store:
  backend: postgres

watchtower:
  enabled: true
  endpoint: https://api.watchtower.example/service/add_message
  app_id: sale-actions
  token: ...
  types: {info: info, warning: warning, severe: severe}

logging:
  level: INFO
  format: json
```
"""

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from sale_actions.utils.validation import validate_batch_size

ENV_API_KEY = "SALE_ACTIONS_API_KEY"
ENV_DB_PASSWORD = "DB_PASSWORD"
ENV_WATCHTOWER_TOKEN = "WATCHTOWER_TOKEN"


class ConfigError(Exception):
    """Raised when the configuration file is missing, unreadable or invalid."""

    def __init__(self, path: str | Path, message: str):
        super().__init__(f"{path}: {message}")
        self.path = str(path)


class GeneralSettings(BaseModel):
    check_delay: int = Field(..., gt=0, description="Seconds between passes")
    metrics_port: int | None = Field(None, ge=1, le=65535)
    pipelines: list[Literal["purchases", "renewals"]] = Field(
        default_factory=lambda: ["purchases", "renewals"], min_length=1
    )


class EmailSettings(BaseModel):
    base_url: str = Field(..., min_length=1)
    api_key: str = ""
    ar_group_id: str = Field(..., min_length=1)
    batch_size: int = 1
    batch_requests: bool = False
    timeout_seconds: float = Field(10.0, gt=0)

    @field_validator("ar_group_id", mode="before")
    @classmethod
    def coerce_group_id(cls, v: Any) -> Any:
        """Group ids are numeric in YAML more often than not."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("batch_size")
    @classmethod
    def check_batch_size(cls, v: int) -> int:
        return validate_batch_size(v, "email.batch_size")


class DatabaseSettings(BaseModel):
    host: str = "localhost"
    port: int = 5432
    name: str = "sales"
    user: str = "sale_actions"
    password: str = ""
    connection_string: str | None = None
    join_strategy: Literal["native", "sequential"] = "native"


class StoreSettings(BaseModel):
    backend: Literal["postgres", "memory"] = "postgres"


class WatchtowerSettings(BaseModel):
    enabled: bool = False
    endpoint: str = ""
    app_id: str = ""
    token: str = ""
    types: dict[str, str] = Field(
        default_factory=lambda: {"info": "info", "warning": "warning", "severe": "severe"}
    )


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "text"] = "json"

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class Settings(BaseModel):
    """Complete worker configuration."""

    general: GeneralSettings
    email: EmailSettings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    watchtower: WatchtowerSettings = Field(default_factory=WatchtowerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """
    Overlay secrets found in the environment onto the raw configuration.

    Args:
        raw: Parsed YAML mapping (modified in place)

    Returns:
        The same mapping
    """
    overrides = {
        ENV_API_KEY: ("email", "api_key"),
        ENV_DB_PASSWORD: ("database", "password"),
        ENV_WATCHTOWER_TOKEN: ("watchtower", "token"),
    }
    for env_var, (section, key) in overrides.items():
        value = os.getenv(env_var)
        if value:
            section_values = raw.get(section)
            if section_values is None:
                section_values = raw[section] = {}
            if isinstance(section_values, dict):
                section_values[key] = value
    return raw


def load_config(config_path: str | Path, env_file: str | Path | None = None) -> Settings:
    """
    Load and validate the configuration file.

    Args:
        config_path: Path to the YAML configuration file
        env_file: Optional .env file (defaults to ``.env`` in the working
            directory)

    Returns:
        Validated Settings

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    path = Path(config_path)
    # existing environment variables win over the .env file
    load_dotenv(env_file or Path.cwd() / ".env")

    if not path.exists():
        raise ConfigError(path, "configuration file not found")

    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(path, f"cannot read configuration file: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(path, f"invalid YAML: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(path, "configuration must be a mapping of sections")

    try:
        return Settings.model_validate(apply_env_overrides(raw))
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(path, f"invalid configuration: {problems}") from e
