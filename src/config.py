import os
from dataclasses import dataclass
from typing import Any

import yaml
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CONFIG_YAML = """\
# Campus asset bot configuration

inventory:
  # JSON file holding departments, assets and maintenance records
  data_path: data/inventory.json

confirmation:
  # Label of the button that closes a confirmation without acting
  cancel_label: Cancel
"""


@dataclass
class InventoryConfig:
    """Configuration for the inventory store."""

    data_path: str = "data/inventory.json"

    @classmethod
    def from_dict(cls, data: dict) -> "InventoryConfig":
        """Create InventoryConfig from YAML dict."""
        return cls(data_path=data.get("data_path", "data/inventory.json"))


@dataclass
class ConfirmationConfig:
    """Configuration for confirmation prompts."""

    cancel_label: str = "Cancel"

    @classmethod
    def from_dict(cls, data: dict) -> "ConfirmationConfig":
        """Create ConfirmationConfig from YAML dict."""
        return cls(cancel_label=data.get("cancel_label", "Cancel"))


def load_yaml_config(path: str) -> dict[str, Any]:
    """Load YAML configuration file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Dictionary with configuration values, or empty dict if file doesn't exist.
    """
    if not os.path.exists(path):
        return {}

    with open(path, encoding="utf-8") as f:
        content = f.read()
        if not content.strip():
            return {}
        return yaml.safe_load(content) or {}


def generate_default_config(path: str) -> bool:
    """Write the default config file if none exists.

    Returns:
        True if a file was created (first run).
    """
    if os.path.exists(path):
        return False

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(DEFAULT_CONFIG_YAML)
    return True


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    telegram_bot_token: str
    telegram_allowed_users: list[int] | str  # Accept string, convert to list
    config_path: str = "config/config.yaml"
    log_level: str = "INFO"

    @field_validator("telegram_bot_token", mode="before")
    @classmethod
    def require_bot_token(cls, v: Any) -> str:
        """Strip the token and reject empty values."""
        value = v.strip() if isinstance(v, str) else v
        if not value:
            raise ValueError(
                "Environment variable TELEGRAM_BOT_TOKEN is missing or empty. Please check your .env file."
            )
        return value

    @field_validator("telegram_allowed_users", mode="before")
    @classmethod
    def parse_allowed_users(cls, v: Any) -> list[int]:
        """Parse comma-separated string of user IDs into list of integers."""
        if isinstance(v, int):
            return [v]
        if isinstance(v, list):
            return [int(x) for x in v]
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("TELEGRAM_ALLOWED_USERS cannot be empty")
            try:
                return [int(x.strip()) for x in v.split(",") if x.strip()]
            except ValueError:
                raise ValueError(
                    f"TELEGRAM_ALLOWED_USERS must be comma-separated integers, got: {v}"
                )
        raise ValueError(f"TELEGRAM_ALLOWED_USERS must be a string or list, got: {type(v)}")


class AppConfig:
    """Application configuration combining Settings (env) and YAML config."""

    def __init__(self, settings: Settings):
        """Initialize AppConfig with Settings and load YAML config.

        Args:
            settings: Pydantic Settings instance with environment variables.
        """
        self._settings = settings
        self._yaml_config = load_yaml_config(settings.config_path)

    @property
    def settings(self) -> Settings:
        """Get the underlying Settings object."""
        return self._settings

    @property
    def telegram_bot_token(self) -> str:
        """Get Telegram bot token."""
        return self._settings.telegram_bot_token

    @property
    def telegram_allowed_users(self) -> list[int]:
        """Get list of allowed Telegram user IDs."""
        return self._settings.telegram_allowed_users  # type: ignore

    @property
    def log_level(self) -> str:
        """Get log level."""
        return self._settings.log_level

    @property
    def inventory(self) -> InventoryConfig:
        """Get inventory configuration."""
        return InventoryConfig.from_dict(self._yaml_config.get("inventory", {}) or {})

    @property
    def confirmation(self) -> ConfirmationConfig:
        """Get confirmation prompt configuration."""
        return ConfirmationConfig.from_dict(self._yaml_config.get("confirmation", {}) or {})
