"""
Host configuration.

Values are resolved once at startup with this precedence:
process environment > .env file > JSON config file > built-in defaults.
The resulting HostSettings is frozen and handed to each component.
"""
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from yomitan_local.core.errors import ConfigurationError

DEFAULT_CONFIG_FILE = "local.config.json"
CONFIG_PATH_ENV = "LOCAL_CONFIG_PATH"

IMPORT_HINT = "Please run the one-time import step to build the database (see README)."


class HostSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # Server
    port: int = Field(3000, validation_alias=AliasChoices("PORT", "port"))
    host: str = Field("0.0.0.0", validation_alias=AliasChoices("HOST", "host"))
    cors_origins: str = Field("*", validation_alias=AliasChoices("CORS_ORIGINS", "corsOrigins"))

    @field_validator("cors_origins", mode="before")
    @classmethod
    def join_cors_origins(cls, v: Union[str, List[str]]) -> str:
        if isinstance(v, (list, tuple)):
            return ",".join(str(i).strip() for i in v)
        return v

    # Storage
    data_dir: str = Field("./data", validation_alias=AliasChoices("DATA_DIR", "dataDir"))
    database_path: str = Field(
        "./data/yomitan-audio.db",
        validation_alias=AliasChoices("DATABASE_PATH", "databasePath"),
    )

    # Router import string, "package.module:attribute"
    router: Optional[str] = Field(None, validation_alias=AliasChoices("ROUTER", "router"))

    # Logging
    log_level: str = Field("INFO", validation_alias=AliasChoices("LOG_LEVEL", "logLevel"))
    log_file: Optional[str] = Field(None, validation_alias=AliasChoices("LOG_FILE", "logFile"))

    # Shutdown
    shutdown_grace_seconds: float = Field(
        5.0, validation_alias=AliasChoices("SHUTDOWN_GRACE_SECONDS", "shutdownGraceSeconds")
    )

    # Worker flags, passed through to the router untouched
    authentication_enabled: bool = Field(False, validation_alias="AUTHENTICATION_ENABLED")
    aws_polly_enabled: bool = Field(False, validation_alias="AWS_POLLY_ENABLED")
    api_keys: str = Field("", validation_alias="API_KEYS")
    aws_access_key_id: str = Field("", validation_alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str = Field("", validation_alias="AWS_SECRET_ACCESS_KEY")

    @field_validator("authentication_enabled", "aws_polly_enabled", mode="before")
    @classmethod
    def parse_worker_flag(cls, v: Any) -> Any:
        # Only the exact string "true" enables a flag; any other text disables it
        if isinstance(v, str):
            return v == "true"
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Init kwargs carry the JSON config file, which ranks below the environment
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser().resolve()

    @property
    def database_file(self) -> Path:
        return Path(self.database_path).expanduser().resolve()


def read_config_file(path: Path) -> Dict[str, Any]:
    """
    Read the JSON config file.

    A missing file yields an empty mapping; unreadable or malformed content
    is a ConfigurationError.
    """
    if not path.exists():
        return {}

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(
            f"Could not read config file {path}: {e}",
            remediation="Fix or remove the config file.",
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {path} must contain a JSON object",
            remediation="Fix or remove the config file.",
        )
    return data


def load_settings(config_path: Optional[Union[str, Path]] = None, **overrides: Any) -> HostSettings:
    """
    Build the immutable settings value.

    Args:
        config_path: JSON config file. Falls back to $LOCAL_CONFIG_PATH, then
            local.config.json in the working directory.
        **overrides: Highest-precedence values (command line flags). None
            values are ignored.

    Returns:
        HostSettings

    Raises:
        ConfigurationError: If the file or any value is invalid
    """
    path = Path(config_path or os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_FILE)
    file_values = read_config_file(path)

    try:
        settings = HostSettings(**file_values)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration: {e}",
            remediation=f"Check {path} and the environment variables.",
        ) from e

    updates = {k: v for k, v in overrides.items() if v is not None}
    if updates:
        settings = settings.model_copy(update=updates)
    return settings


def require_database(settings: HostSettings) -> Path:
    """
    Return the resolved database path, or fail if the file is absent.

    The store is never created here.
    """
    db_file = settings.database_file
    if not db_file.is_file():
        raise ConfigurationError(f"Database not found at {db_file}", remediation=IMPORT_HINT)
    return db_file
