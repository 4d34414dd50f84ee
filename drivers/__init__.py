"""Infrastructure drivers exposing a provider-neutral server lifecycle API."""

from .base import (
    FlavorInfo,
    ImageInfo,
    ImageSchedule,
    InfrastructureDriver,
    IPAddressSet,
    ServerHandle,
    ServerSpec,
    ServerSummary,
)
from .hetzner import HetznerCloudDriver
from .openstack import OpenStackDriver
from .providers import build_hetzner_driver, build_openstack_driver

__all__ = [
    "FlavorInfo",
    "HetznerCloudDriver",
    "IPAddressSet",
    "ImageInfo",
    "ImageSchedule",
    "InfrastructureDriver",
    "OpenStackDriver",
    "ServerHandle",
    "ServerSpec",
    "ServerSummary",
    "build_hetzner_driver",
    "build_openstack_driver",
]
