"""Core helpers shared by cloudrig infrastructure drivers."""

from .config import (
    BackendSettings,
    HetznerSettings,
    OpenStackSettings,
    resolve_config_path,
    resolve_default_config_path,
    save_settings_to_ini,
)
from .exceptions import (
    DriverError,
    InvalidConfigurationError,
    OperationTimeoutError,
    UnsupportedOperationError,
)
from .schema import missing_keys, validate_structure
from .status import StatusNormalizer
from .wait import wait_for_status

__all__ = [
    "BackendSettings",
    "DriverError",
    "HetznerSettings",
    "InvalidConfigurationError",
    "OpenStackSettings",
    "OperationTimeoutError",
    "StatusNormalizer",
    "UnsupportedOperationError",
    "missing_keys",
    "resolve_config_path",
    "resolve_default_config_path",
    "save_settings_to_ini",
    "validate_structure",
    "wait_for_status",
]
