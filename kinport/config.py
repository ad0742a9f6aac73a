"""
Configuration management for kinport.

Loads config.yaml from the kinport home directory (KINPORT_HOME, default
~/.config/kinport). An optional env_file is loaded first so the API token can
live outside the YAML file; KINPORT_* environment variables override the
file's values.

Required keys: subdomain, app_id, api_token.
"""

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from kinport.errors import ConfigError
from kinport.query_builder import INCREMENTAL_FIELD, MAX_BATCH_SIZE
from kinport.schema import DEFAULT_EXCLUDE_FIELDS

REQUIRED_KEYS = ("subdomain", "app_id", "api_token")

ENV_OVERRIDES = {
    "subdomain": "KINPORT_SUBDOMAIN",
    "app_id": "KINPORT_APP_ID",
    "api_token": "KINPORT_API_TOKEN",
}


def get_kinport_home() -> Path:
    """Directory holding config.yaml and .env."""
    home = os.environ.get("KINPORT_HOME")
    if home:
        return Path(home).expanduser()
    return Path("~/.config/kinport").expanduser()


@dataclass
class ExportConfig:
    """
    Settings for one app -> sheet export.

    Attributes:
        subdomain: Tenant subdomain (https://<subdomain>.cybozu.com)
        app_id: App whose records are exported
        api_token: Static API token with record read permission
        sheet_name: Destination sheet
        batch_size: Records per page (1..500)
        sleep_ms: Pause between consecutive page requests
        enable_styling: Style the header row after writing
        exclude_fields: Field codes never exported
        base_url: Overrides the origin derived from subdomain
        timeout_s: Per-request HTTP timeout
        updated_at_field: Update-timestamp field code used by incremental exports
    """
    subdomain: str = ""
    app_id: str = ""
    api_token: str = ""
    sheet_name: str = "data"
    batch_size: int = MAX_BATCH_SIZE
    sleep_ms: int = 100
    enable_styling: bool = True
    exclude_fields: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_FIELDS))
    base_url: Optional[str] = None
    timeout_s: float = 30
    updated_at_field: str = INCREMENTAL_FIELD

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExportConfig":
        """Build from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and v is not None}
        if "app_id" in values:
            values["app_id"] = str(values["app_id"])
        if "exclude_fields" in values:
            values["exclude_fields"] = list(values["exclude_fields"])
        return cls(**values)

    @property
    def origin(self) -> str:
        """Service origin used for API calls."""
        if self.base_url:
            return self.base_url.rstrip("/")
        return f"https://{self.subdomain}.cybozu.com"

    def validate(self) -> None:
        """
        Validate the configuration.

        Raises:
            ConfigError: Missing required keys (all named) or out-of-range options
        """
        missing = [key for key in REQUIRED_KEYS if not str(getattr(self, key) or "").strip()]
        if missing:
            raise ConfigError(f"Missing required config: {', '.join(missing)}", missing=missing)

        if not 1 <= int(self.batch_size) <= MAX_BATCH_SIZE:
            raise ConfigError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {self.batch_size}")
        if int(self.sleep_ms) < 0:
            raise ConfigError(f"sleep_ms must be >= 0, got {self.sleep_ms}")
        if not str(self.sheet_name).strip():
            raise ConfigError("sheet_name must not be empty")
        if not str(self.updated_at_field).strip():
            raise ConfigError("updated_at_field must not be empty")

    def masked(self) -> dict[str, Any]:
        """Config as a dict with the API token masked."""
        data = asdict(self)
        token = data.get("api_token") or ""
        data["api_token"] = f"{token[:4]}****" if len(token) > 4 else ("****" if token else "")
        data["origin"] = self.origin
        return data


def load_config(config_path: Optional[Path] = None) -> ExportConfig:
    """
    Load export configuration from YAML.

    Args:
        config_path: Path to config file. Defaults to <kinport home>/config.yaml

    Returns:
        ExportConfig (not yet validated)

    Raises:
        ConfigError: If the file is missing, empty or not valid YAML
    """
    if config_path is None:
        config_path = get_kinport_home() / "config.yaml"
    config_path = Path(config_path).expanduser()

    if not config_path.exists():
        raise ConfigError(f"kinport config.yaml not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax: {e}") from e

    if not raw:
        raise ConfigError("Configuration file is empty")
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration must be a mapping, got {type(raw).__name__}")

    env_file = raw.pop("env_file", None)
    if env_file:
        load_dotenv(Path(env_file).expanduser(), override=False)

    for key, env_var in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            raw[key] = value

    return ExportConfig.from_dict(raw)
