"""Provider-neutral contract implemented by every infrastructure driver.

Concrete backends live in dedicated modules (for example ``drivers.openstack``)
and translate these operations into calls on their provider SDK.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, ClassVar, Mapping, Optional, Sequence

from cloudrig_core.exceptions import InvalidConfigurationError, UnsupportedOperationError
from cloudrig_core.schema import missing_keys
from cloudrig_core.wait import DEFAULT_POLL_INTERVAL, wait_for_status

logger = logging.getLogger(__name__)

ServerHandle = str
IPAddressSet = dict[str, dict[int, str]]

DEFAULT_TIMEOUT = 600
REBOOT_TIMEOUT = 300

_DEVICE_ATTRIBUTES_TEMPLATE: Mapping[str, Any] = {
    "dns.external.fqdn": "",
    "implementation.image_id": "",
    "implementation.flavor_id": "",
}


@dataclass(frozen=True, slots=True)
class ServerSpec:
    """Describes the server a driver should create."""

    name: str
    image: str
    flavor: str
    networks: tuple[str, ...] = ()

    @classmethod
    def from_attributes(
        cls,
        device_attributes: Mapping[str, Any],
        implementation_attributes: Optional[Mapping[str, Any]] = None,
    ) -> "ServerSpec":
        """Build a spec from device and implementation attribute bundles."""

        missing = missing_keys(_DEVICE_ATTRIBUTES_TEMPLATE, device_attributes)
        if missing:
            raise InvalidConfigurationError("device attributes", missing)

        implementation_attributes = implementation_attributes or {}
        networks: tuple[str, ...] = ()
        if implementation_attributes.get("default_cloud_network"):
            networks = (str(implementation_attributes["default_cloud_network"]),)
        return cls(
            name=str(device_attributes["dns.external.fqdn"]),
            image=str(device_attributes["implementation.image_id"]),
            flavor=str(device_attributes["implementation.flavor_id"]),
            networks=networks,
        )


@dataclass(slots=True)
class ServerSummary:
    """Inventory entry for a server."""

    identifier: str
    name: str
    status: str


@dataclass(slots=True)
class ImageInfo:
    """Represents an operating system image available for provisioning."""

    identifier: str
    name: str


@dataclass(slots=True)
class FlavorInfo:
    """Describes a server flavor offered by the infrastructure provider."""

    identifier: str
    name: str


@dataclass(slots=True)
class ImageSchedule:
    """Scheduled snapshot settings of a server. ``retention`` is ``None`` when disabled."""

    retention: Optional[int]
    window: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return self.retention is not None


class InfrastructureDriver(ABC):
    """Operations required from any infrastructure backend.

    The driver validates its connection parameters before connecting, keeps a
    single provider connection for its whole lifetime and re-resolves server
    handles on every call.
    """

    BACKEND: ClassVar[str] = "generic"
    CONNECTION_TEMPLATE: ClassVar[Mapping[str, Any]] = {}
    # interface -> network name holding its addresses, None when not exposed
    IP_INTERFACES: ClassVar[Mapping[tuple[str, int], Optional[str]]] = {}

    def __init__(
        self,
        connection_parameters: Mapping[str, Any],
        *,
        connection: Any = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        missing = missing_keys(self.CONNECTION_TEMPLATE, connection_parameters)
        if missing:
            raise InvalidConfigurationError(f"{self.BACKEND} connection parameters", missing)

        self._parameters = MappingProxyType(dict(connection_parameters))
        self._parse_connection_parameters(self._parameters)
        self._poll_interval = poll_interval
        self._connection = connection if connection is not None else self._connect()

    @abstractmethod
    def _parse_connection_parameters(self, params: Mapping[str, Any]) -> None:
        """Store the validated parameters needed by ``_connect``."""

    @abstractmethod
    def _connect(self) -> Any:
        """Open the provider session used for the driver's lifetime."""

    @abstractmethod
    def _poll_status(self, server_id: ServerHandle) -> str:
        """Return the generic status, reporting a vanished server as ``deleted``."""

    def _wait_for(self, server_id: ServerHandle, target: str, timeout: float) -> None:
        wait_for_status(
            lambda: self._poll_status(server_id),
            target,
            timeout,
            interval=self._poll_interval,
            description=f"{self.BACKEND} server {server_id}",
        )

    # lifecycle

    @abstractmethod
    def create_server(self, spec: ServerSpec, *, wait: bool = False, timeout: float = DEFAULT_TIMEOUT) -> ServerHandle:
        """Provision a new server, optionally blocking until it is active."""

    @abstractmethod
    def resize_server(
        self, server_id: ServerHandle, flavor: str, *, wait: bool = False, timeout: float = DEFAULT_TIMEOUT
    ) -> None:
        """Move the server onto another flavor."""

    @abstractmethod
    def confirm_resize_server(self, server_id: ServerHandle, *, wait: bool = False, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Confirm a pending resize."""

    @abstractmethod
    def revert_resize_server(self, server_id: ServerHandle, *, wait: bool = False, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Roll back a pending resize."""

    @abstractmethod
    def rebuild_server(
        self,
        server_id: ServerHandle,
        flavor: Optional[str] = None,
        image: Optional[str] = None,
        *,
        wait: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Reinstall the server, reusing its current flavor and image when omitted."""

    @abstractmethod
    def delete_server(self, server_id: ServerHandle, *, wait: bool = False, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Destroy the server, optionally blocking until it is gone."""

    @abstractmethod
    def reboot_server(self, server_id: ServerHandle, *, wait: bool = False, timeout: float = REBOOT_TIMEOUT) -> None:
        """Reboot the server, optionally blocking until it is active again."""

    # queries

    @abstractmethod
    def get_server_status(self, server_id: ServerHandle) -> str:
        """Return the generic status of the server."""

    @abstractmethod
    def get_server_flavor(self, server_id: ServerHandle) -> str:
        """Return the flavor identifier the server runs on."""

    @abstractmethod
    def get_server_ips(self, server_id: ServerHandle) -> IPAddressSet:
        """Return addresses keyed by network name and IP version."""

    @abstractmethod
    def get_servers(self, filters: Optional[Mapping[str, Any]] = None) -> Sequence[ServerSummary]:
        """Return servers matching a backend specific filter, in provider order."""

    @abstractmethod
    def get_images(self) -> Sequence[ImageInfo]:
        """Return images available to the account."""

    @abstractmethod
    def get_flavors(self) -> Sequence[FlavorInfo]:
        """Return flavors available to the account."""

    def get_server_public_ipv4_address(self, server_id: ServerHandle) -> Optional[str]:
        return self._get_server_ip(server_id, "public", 4)

    def get_server_private_ipv4_address(self, server_id: ServerHandle) -> Optional[str]:
        return self._get_server_ip(server_id, "private", 4)

    def get_server_public_ipv6_address(self, server_id: ServerHandle) -> Optional[str]:
        return self._get_server_ip(server_id, "public", 6)

    def get_server_private_ipv6_address(self, server_id: ServerHandle) -> Optional[str]:
        return self._get_server_ip(server_id, "private", 6)

    def _get_server_ip(self, server_id: ServerHandle, interface: str, version: int) -> Optional[str]:
        network = self.IP_INTERFACES.get((interface, version))
        if network is None:
            raise UnsupportedOperationError(f"{interface} IPv{version} address lookup", self.BACKEND)
        return self.get_server_ips(server_id).get(network, {}).get(version)

    # snapshot schedules

    @abstractmethod
    def get_image_schedule(self, server_id: ServerHandle) -> ImageSchedule:
        """Return the scheduled snapshot settings of the server."""

    @abstractmethod
    def _set_image_schedule(self, server_id: ServerHandle, retention: Optional[int]) -> None:
        """Apply a retention, ``None`` disabling scheduled snapshots."""

    def create_image_schedule(self, server_id: ServerHandle, retention: int) -> None:
        logger.info("Enabling image schedule", extra={"server_id": server_id, "retention": retention})
        self._set_image_schedule(server_id, retention)

    def update_image_schedule(self, server_id: ServerHandle, retention: int) -> None:
        logger.info("Updating image schedule", extra={"server_id": server_id, "retention": retention})
        self._set_image_schedule(server_id, retention)

    def delete_image_schedule(self, server_id: ServerHandle) -> None:
        logger.info("Disabling image schedule", extra={"server_id": server_id})
        self._set_image_schedule(server_id, None)


__all__ = [
    "FlavorInfo",
    "IPAddressSet",
    "ImageInfo",
    "ImageSchedule",
    "InfrastructureDriver",
    "ServerHandle",
    "ServerSpec",
    "ServerSummary",
]
