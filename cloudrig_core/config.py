"""Connection settings management for cloudrig drivers."""

from __future__ import annotations

import configparser
import os
from abc import abstractmethod
from contextlib import suppress
from pathlib import Path
from typing import Any, ClassVar, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from .exceptions import InvalidConfigurationError


class BackendSettings(BaseModel):
    """Base schema for settings of a single backend resolved at runtime."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    SECTION: ClassVar[str] = ""
    ENV_VARS: ClassVar[Mapping[str, str]] = {}
    SENSITIVE_FIELDS: ClassVar[frozenset[str]] = frozenset()

    @classmethod
    def from_env(cls) -> "BackendSettings":
        """Load settings from environment variables."""

        return cls._validated({field: _get_env(var) for field, var in cls.ENV_VARS.items()})

    @classmethod
    def from_sources(cls, *, ini_path: Path | None = None) -> "BackendSettings":
        """Load settings from an ini file and environment variables.

        Environment values take precedence over the ini file.
        """

        merged: dict[str, Optional[str]] = {}
        if ini_path and ini_path.exists():
            merged.update(_load_ini_values(cls, ini_path))

        for field, value in cls.from_env().model_dump().items():
            if value is not None:
                merged[field] = value
        return cls._validated(merged)

    @classmethod
    def _validated(cls, values: Mapping[str, Any]) -> "BackendSettings":
        try:
            return cls.model_validate(dict(values))
        except ValidationError as exc:
            fields = [".".join(str(part) for part in error["loc"]) for error in exc.errors()]
            raise InvalidConfigurationError(f"{cls.SECTION} settings", fields) from exc

    @abstractmethod
    def to_connection_parameters(self) -> dict[str, Any]:
        """Return the nested connection parameter mapping expected by a driver."""


class OpenStackSettings(BackendSettings):
    """Settings required to open an OpenStack compute session."""

    SECTION: ClassVar[str] = "openstack"
    ENV_VARS: ClassVar[Mapping[str, str]] = {
        "region": "OS_REGION_NAME",
        "identity_api_endpoint": "OS_AUTH_URL",
        "username": "OS_USERNAME",
        "secret": "OS_PASSWORD",
    }
    SENSITIVE_FIELDS: ClassVar[frozenset[str]] = frozenset({"secret"})

    region: Optional[str] = None
    identity_api_endpoint: Optional[str] = None
    username: Optional[str] = None
    secret: Optional[str] = None

    def to_connection_parameters(self) -> dict[str, Any]:
        params: dict[str, Any] = _present(
            region=self.region,
            identityApiEndpoint=self.identity_api_endpoint,
        )
        credentials = _present(username=self.username, secret=self.secret)
        if credentials:
            params["credentials"] = credentials
        return params


class HetznerSettings(BackendSettings):
    """Settings required to talk to the Hetzner Cloud API."""

    SECTION: ClassVar[str] = "hetzner"
    ENV_VARS: ClassVar[Mapping[str, str]] = {
        "token": "HCLOUD_TOKEN",
        "location": "HCLOUD_LOCATION",
        "endpoint": "HCLOUD_ENDPOINT",
    }
    SENSITIVE_FIELDS: ClassVar[frozenset[str]] = frozenset({"token"})

    token: Optional[str] = None
    location: Optional[str] = None
    endpoint: Optional[str] = None

    def to_connection_parameters(self) -> dict[str, Any]:
        params: dict[str, Any] = _present(location=self.location, endpoint=self.endpoint)
        if self.token:
            params["credentials"] = {"token": self.token}
        return params


def resolve_default_config_path() -> Path:
    """Return path to default configuration file location."""

    return Path("~/.config/cloudrig/config.ini").expanduser()


def resolve_config_path() -> Path:
    """Resolve configuration file path, honoring environment overrides."""

    override = os.getenv("CLOUDRIG_CONFIG_PATH")
    if override:
        return Path(override).expanduser()
    return resolve_default_config_path()


def save_settings_to_ini(settings: BackendSettings, path: Path) -> None:
    """Persist backend settings to an ini file, separating secrets.

    Sections belonging to other backends are preserved.
    """

    parser = _new_parser()
    if path.exists():
        parser.read(path, encoding="utf-8")

    general: dict[str, str] = {}
    secrets: dict[str, str] = {}
    for field, value in settings.model_dump().items():
        if not value:
            continue
        target = secrets if field in settings.SENSITIVE_FIELDS else general
        target[field] = value

    secrets_section = _secrets_section(settings.SECTION)
    parser[settings.SECTION] = general
    if secrets:
        parser[secrets_section] = secrets
    else:
        parser.remove_section(secrets_section)

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        parser.write(handle)

    with suppress(PermissionError, NotImplementedError):
        os.chmod(path, 0o600)


def _get_env(key: str) -> Optional[str]:
    """Return environment variable value with blank strings normalized to None."""
    value = os.getenv(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _present(**values: Optional[str]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def _secrets_section(section: str) -> str:
    return f"{section}.secrets"


def _new_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str  # Preserve field case
    return parser


def _load_ini_values(settings_cls: type[BackendSettings], path: Path) -> dict[str, Optional[str]]:
    parser = _new_parser()
    if not parser.read(path, encoding="utf-8"):
        return {}

    values: dict[str, Optional[str]] = {}
    for field in settings_cls.ENV_VARS:
        if field in settings_cls.SENSITIVE_FIELDS:
            section = _secrets_section(settings_cls.SECTION)
        else:
            section = settings_cls.SECTION
        if parser.has_option(section, field):
            raw = parser.get(section, field)
            values[field] = raw.strip() or None
    return values
