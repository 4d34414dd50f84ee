"""Hetzner Cloud implementation of the ``InfrastructureDriver`` contract."""

from __future__ import annotations

import ipaddress
import logging
from typing import Any, Callable, Mapping, Optional, Sequence

from hcloud import APIException, Client
from hcloud.images import Image
from hcloud.locations import Location
from hcloud.networks import Network
from hcloud.server_types import ServerType

from cloudrig_core import status
from cloudrig_core.exceptions import UnsupportedOperationError
from cloudrig_core.status import HETZNER_STATUSES, StatusNormalizer
from drivers.base import (
    DEFAULT_TIMEOUT,
    REBOOT_TIMEOUT,
    FlavorInfo,
    ImageInfo,
    ImageSchedule,
    InfrastructureDriver,
    IPAddressSet,
    ServerHandle,
    ServerSpec,
    ServerSummary,
)


logger = logging.getLogger(__name__)

# Hetzner keeps a fixed number of backup slots per server.
BACKUP_RETENTION = 7
PUBLIC_NETWORK_NAME = "public"

_to_generic_status = StatusNormalizer(HETZNER_STATUSES)


def _by_id_or_name(factory: Callable[..., Any], value: str) -> Any:
    if str(value).isdigit():
        return factory(id=int(value))
    return factory(name=value)


def _primary_ipv6(value: Optional[str]) -> Optional[str]:
    """Return the first host of the /64 Hetzner assigns to a server."""

    if not value:
        return None
    if "/" not in value:
        return value
    return str(ipaddress.ip_network(value, strict=False)[1])


class HetznerCloudDriver(InfrastructureDriver):
    """Drive servers through the Hetzner Cloud API.

    Hetzner has no resize confirmation workflow and changes server types only on
    powered-off servers, so the resize family of operations is unsupported.
    Scheduled images map onto Hetzner's daily backups.
    """

    BACKEND = "Hetzner"
    CONNECTION_TEMPLATE = {
        "credentials": {
            "token": "",
        },
    }
    IP_INTERFACES = {
        ("public", 4): PUBLIC_NETWORK_NAME,
        ("public", 6): PUBLIC_NETWORK_NAME,
        ("private", 6): None,
    }
    APPLICATION_NAME = "cloudrig"

    def _parse_connection_parameters(self, params: Mapping[str, Any]) -> None:
        self._token = params["credentials"]["token"]
        self._location = params.get("location")
        self._endpoint = params.get("endpoint")

    def _connect(self) -> Client:
        kwargs: dict[str, Any] = {"token": self._token, "application_name": self.APPLICATION_NAME}
        if self._endpoint:
            kwargs["api_endpoint"] = self._endpoint
        return Client(**kwargs)

    def _get_server_resource(self, server_id: ServerHandle) -> Any:
        servers = self._connection.servers
        try:
            numeric_id = int(server_id)
        except (TypeError, ValueError):
            server = servers.get_by_name(server_id)
        else:
            server = servers.get_by_id(numeric_id)

        if server is None:
            raise APIException(code="not_found", message=f"Server {server_id} not found", details=None)
        return server

    def _poll_status(self, server_id: ServerHandle) -> str:
        try:
            server = self._get_server_resource(server_id)
        except APIException as exc:
            if exc.code == "not_found":
                return status.DELETED
            raise
        return _to_generic_status(server.status)

    def _mutate(
        self,
        operation: str,
        server_id: Optional[ServerHandle],
        call: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        logger.info("Issuing Hetzner %s", operation, extra={"server_id": server_id})
        try:
            return call(*args, **kwargs)
        except APIException as exc:
            logger.error("Hetzner API error during %s", operation, exc_info=exc, extra={"server_id": server_id})
            raise

    def _network_refs(self, networks: Sequence[str]) -> list[Any]:
        refs = []
        for network in networks:
            if str(network).isdigit():
                refs.append(Network(id=int(network)))
                continue
            resolved = self._connection.networks.get_by_name(network)
            if resolved is None:
                raise APIException(code="not_found", message=f"Network {network} not found", details=None)
            refs.append(resolved)
        return refs

    def create_server(self, spec: ServerSpec, *, wait: bool = False, timeout: float = DEFAULT_TIMEOUT) -> ServerHandle:
        create_kwargs: dict[str, Any] = {
            "name": spec.name,
            "server_type": _by_id_or_name(ServerType, spec.flavor),
            "image": _by_id_or_name(Image, spec.image),
        }
        if spec.networks:
            create_kwargs["networks"] = self._network_refs(spec.networks)
        if self._location:
            create_kwargs["location"] = Location(name=self._location)

        response = self._mutate("server creation", None, self._connection.servers.create, **create_kwargs)
        server_id = str(response.server.id)
        if wait:
            self._wait_for(server_id, status.ACTIVE, timeout)
        return server_id

    def resize_server(
        self, server_id: ServerHandle, flavor: str, *, wait: bool = False, timeout: float = DEFAULT_TIMEOUT
    ) -> None:
        raise UnsupportedOperationError("resize", self.BACKEND, "server types change only while powered off")

    def confirm_resize_server(self, server_id: ServerHandle, *, wait: bool = False, timeout: float = DEFAULT_TIMEOUT) -> None:
        raise UnsupportedOperationError("resize confirmation", self.BACKEND)

    def revert_resize_server(self, server_id: ServerHandle, *, wait: bool = False, timeout: float = DEFAULT_TIMEOUT) -> None:
        raise UnsupportedOperationError("resize revert", self.BACKEND)

    def rebuild_server(
        self,
        server_id: ServerHandle,
        flavor: Optional[str] = None,
        image: Optional[str] = None,
        *,
        wait: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        server = self._get_server_resource(server_id)
        server_type = server.server_type
        if flavor is not None and flavor not in (str(server_type.id), server_type.name):
            raise UnsupportedOperationError(
                "rebuild onto a different flavor",
                self.BACKEND,
                "server types change only while powered off",
            )
        if image is None:
            if server.image is None:
                raise UnsupportedOperationError(
                    "rebuild without an explicit image", self.BACKEND, "the server image no longer exists"
                )
            image = str(server.image.id)

        self._mutate("rebuild", server_id, self._connection.servers.rebuild, server, _by_id_or_name(Image, image))
        if wait:
            self._wait_for(server_id, status.ACTIVE, timeout)

    def delete_server(self, server_id: ServerHandle, *, wait: bool = False, timeout: float = DEFAULT_TIMEOUT) -> None:
        server = self._get_server_resource(server_id)
        self._mutate("deletion", server_id, self._connection.servers.delete, server)
        if wait:
            self._wait_for(server_id, status.DELETED, timeout)

    def reboot_server(self, server_id: ServerHandle, *, wait: bool = False, timeout: float = REBOOT_TIMEOUT) -> None:
        server = self._get_server_resource(server_id)
        self._mutate("reboot", server_id, self._connection.servers.reboot, server)
        if wait:
            self._wait_for(server_id, status.ACTIVE, timeout)

    def get_server_status(self, server_id: ServerHandle) -> str:
        return _to_generic_status(self._get_server_resource(server_id).status)

    def get_server_flavor(self, server_id: ServerHandle) -> str:
        return str(self._get_server_resource(server_id).server_type.id)

    def get_server_ips(self, server_id: ServerHandle) -> IPAddressSet:
        server = self._get_server_resource(server_id)
        ips: IPAddressSet = {}

        public_net = server.public_net
        if public_net is not None:
            public: dict[int, str] = {}
            if public_net.ipv4 is not None and public_net.ipv4.ip:
                public[4] = public_net.ipv4.ip
            if public_net.ipv6 is not None and public_net.ipv6.ip:
                public[6] = _primary_ipv6(public_net.ipv6.ip)
            if public:
                ips[PUBLIC_NETWORK_NAME] = public

        for private in server.private_net or []:
            network_name = private.network.name or str(private.network.id)
            ips.setdefault(network_name.replace(" ", "_"), {})[4] = private.ip
        return ips

    def get_server_private_ipv4_address(self, server_id: ServerHandle) -> Optional[str]:
        # Private addresses live in user-named networks; report the first attached one.
        for network, addresses in self.get_server_ips(server_id).items():
            if network != PUBLIC_NETWORK_NAME and 4 in addresses:
                return addresses[4]
        return None

    def get_servers(self, filters: Optional[Mapping[str, Any]] = None) -> Sequence[ServerSummary]:
        logger.debug("Listing Hetzner servers", extra={"filters": filters})
        return [
            ServerSummary(
                identifier=str(server.id),
                name=server.name,
                status=_to_generic_status(server.status),
            )
            for server in self._connection.servers.get_all(**dict(filters or {}))
        ]

    def get_images(self) -> Sequence[ImageInfo]:
        logger.debug("Listing Hetzner images")
        return [
            ImageInfo(identifier=str(img.id), name=img.name or img.description or str(img.id))
            for img in self._connection.images.get_all()
        ]

    def get_flavors(self) -> Sequence[FlavorInfo]:
        logger.debug("Listing Hetzner server types")
        return [FlavorInfo(identifier=str(st.id), name=st.name) for st in self._connection.server_types.get_all()]

    def get_image_schedule(self, server_id: ServerHandle) -> ImageSchedule:
        window = self._get_server_resource(server_id).backup_window
        if not window:
            return ImageSchedule(retention=None)
        return ImageSchedule(retention=BACKUP_RETENTION, window=window)

    def _set_image_schedule(self, server_id: ServerHandle, retention: Optional[int]) -> None:
        if retention is not None and retention != BACKUP_RETENTION:
            raise UnsupportedOperationError(
                f"image schedule retention {retention}",
                self.BACKEND,
                f"backups always keep {BACKUP_RETENTION} images",
            )
        server = self._get_server_resource(server_id)
        if retention is None:
            self._mutate("backup disable", server_id, self._connection.servers.disable_backup, server)
        else:
            self._mutate("backup enable", server_id, self._connection.servers.enable_backup, server)
