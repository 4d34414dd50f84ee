"""Factory helpers for constructing drivers from configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from cloudrig_core import HetznerSettings, OpenStackSettings, resolve_config_path
from drivers.hetzner import HetznerCloudDriver
from drivers.openstack import OpenStackDriver


def build_openstack_driver(
    settings: Optional[OpenStackSettings] = None,
    *,
    ini_path: Path | None = None,
    **driver_kwargs: Any,
) -> OpenStackDriver:
    """Instantiate an OpenStack driver from settings, the ini file or the environment."""

    if settings is None:
        settings = OpenStackSettings.from_sources(ini_path=ini_path or resolve_config_path())
    return OpenStackDriver(settings.to_connection_parameters(), **driver_kwargs)


def build_hetzner_driver(
    settings: Optional[HetznerSettings] = None,
    *,
    ini_path: Path | None = None,
    **driver_kwargs: Any,
) -> HetznerCloudDriver:
    """Instantiate a Hetzner driver from settings, the ini file or the environment."""

    if settings is None:
        settings = HetznerSettings.from_sources(ini_path=ini_path or resolve_config_path())
    return HetznerCloudDriver(settings.to_connection_parameters(), **driver_kwargs)
