"""OpenStack compute implementation of the ``InfrastructureDriver`` contract."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional, Sequence

import openstack
from openstack import exceptions

from cloudrig_core import status
from cloudrig_core.exceptions import UnsupportedOperationError
from cloudrig_core.status import OPENSTACK_STATUSES, StatusNormalizer
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

PUBLIC_NETWORK = "00000000-0000-0000-0000-000000000000"
PRIVATE_NETWORK = "11111111-1111-1111-1111-111111111111"

_to_generic_status = StatusNormalizer(OPENSTACK_STATUSES)


def _reference_id(reference: Any) -> Optional[str]:
    """Return the identifier of an embedded flavor/image reference."""

    if reference is None:
        return None
    if isinstance(reference, Mapping):
        value = reference.get("id") or reference.get("original_name")
    else:
        value = getattr(reference, "id", None) or getattr(reference, "name", None)
    return str(value) if value is not None else None


def _reference_keys(reference: Any) -> set[str]:
    """Return every id or name an embedded reference can be matched by."""

    if reference is None:
        return set()
    if isinstance(reference, Mapping):
        values = (reference.get("id"), reference.get("name"), reference.get("original_name"))
    else:
        values = (getattr(reference, "id", None), getattr(reference, "name", None), getattr(reference, "original_name", None))
    return {str(value) for value in values if value is not None}


class OpenStackDriver(InfrastructureDriver):
    """Drive servers through the OpenStack compute API.

    Servers are always attached to the public and private service networks in
    addition to the networks listed in the ``ServerSpec``.
    """

    BACKEND = "OpenStack"
    CONNECTION_TEMPLATE = {
        "region": "",
        "identityApiEndpoint": "",
        "credentials": {
            "username": "",
            "secret": "",
        },
    }
    IP_INTERFACES = {
        ("public", 4): "public",
        ("public", 6): "public",
        ("private", 4): "private",
        ("private", 6): None,
    }
    DEFAULT_NETWORKS: tuple[str, ...] = (PUBLIC_NETWORK, PRIVATE_NETWORK)
    IMAGE_SCHEDULE_PATH = "/servers/{server_id}/rax-si-image-schedule"

    def _parse_connection_parameters(self, params: Mapping[str, Any]) -> None:
        credentials = params["credentials"]
        self._region = params["region"]
        self._identity_api_endpoint = params["identityApiEndpoint"]
        self._credentials = {
            "username": credentials["username"],
            "password": credentials["secret"],
        }
        if credentials.get("project"):
            self._credentials["project_name"] = credentials["project"]

    def _connect(self) -> Any:
        logger.debug(
            "Opening OpenStack session",
            extra={"region": self._region, "auth_url": self._identity_api_endpoint},
        )
        return openstack.connect(
            auth_url=self._identity_api_endpoint,
            region_name=self._region,
            **self._credentials,
        )

    @property
    def _compute(self) -> Any:
        return self._connection.compute

    def _get_server(self, server_id: ServerHandle) -> Any:
        return self._compute.get_server(server_id)

    def _poll_status(self, server_id: ServerHandle) -> str:
        server = self._compute.find_server(server_id, ignore_missing=True)
        if server is None:
            return status.DELETED
        return _to_generic_status(server.status)

    def _mutate(
        self,
        operation: str,
        server_id: Optional[ServerHandle],
        call: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        logger.info("Issuing OpenStack %s", operation, extra={"server_id": server_id})
        try:
            return call(*args, **kwargs)
        except exceptions.SDKException as exc:
            logger.error(
                "OpenStack API error during %s",
                operation,
                exc_info=exc,
                extra={"server_id": server_id},
            )
            raise

    def create_server(self, spec: ServerSpec, *, wait: bool = False, timeout: float = DEFAULT_TIMEOUT) -> ServerHandle:
        networks = [{"uuid": network} for network in (*self.DEFAULT_NETWORKS, *spec.networks)]
        server = self._mutate(
            "server creation",
            None,
            self._compute.create_server,
            name=spec.name,
            image_id=spec.image,
            flavor_id=spec.flavor,
            networks=networks,
        )
        server_id = str(server.id)
        if wait:
            self._wait_for(server_id, status.ACTIVE, timeout)
        return server_id

    def resize_server(
        self, server_id: ServerHandle, flavor: str, *, wait: bool = False, timeout: float = DEFAULT_TIMEOUT
    ) -> None:
        server = self._get_server(server_id)
        self._mutate("resize", server_id, self._compute.resize_server, server, flavor)
        if wait:
            self._wait_for(server_id, status.ACTIVE, timeout)

    def confirm_resize_server(self, server_id: ServerHandle, *, wait: bool = False, timeout: float = DEFAULT_TIMEOUT) -> None:
        server = self._get_server(server_id)
        self._mutate("resize confirmation", server_id, self._compute.confirm_server_resize, server)
        if wait:
            self._wait_for(server_id, status.ACTIVE, timeout)

    def revert_resize_server(self, server_id: ServerHandle, *, wait: bool = False, timeout: float = DEFAULT_TIMEOUT) -> None:
        server = self._get_server(server_id)
        self._mutate("resize revert", server_id, self._compute.revert_server_resize, server)
        if wait:
            self._wait_for(server_id, status.ACTIVE, timeout)

    def _is_current_flavor(self, server: Any, flavor: str) -> bool:
        # Compute microversion 2.47+ embeds the flavor by name only.
        current = _reference_keys(server.flavor)
        if flavor in current:
            return True
        requested = self._compute.find_flavor(flavor, ignore_missing=True)
        return bool(_reference_keys(requested) & current)

    def rebuild_server(
        self,
        server_id: ServerHandle,
        flavor: Optional[str] = None,
        image: Optional[str] = None,
        *,
        wait: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        server = self._get_server(server_id)
        if flavor is not None and not self._is_current_flavor(server, flavor):
            raise UnsupportedOperationError(
                "rebuild onto a different flavor",
                self.BACKEND,
                "resize the server before rebuilding it",
            )
        image = image if image is not None else _reference_id(server.image)
        self._mutate(
            "rebuild",
            server_id,
            self._compute.rebuild_server,
            server,
            image=image,
            name=server.name,
        )
        if wait:
            self._wait_for(server_id, status.ACTIVE, timeout)

    def delete_server(self, server_id: ServerHandle, *, wait: bool = False, timeout: float = DEFAULT_TIMEOUT) -> None:
        server = self._get_server(server_id)
        self._mutate("deletion", server_id, self._compute.delete_server, server)
        if wait:
            self._wait_for(server_id, status.DELETED, timeout)

    def reboot_server(self, server_id: ServerHandle, *, wait: bool = False, timeout: float = REBOOT_TIMEOUT) -> None:
        server = self._get_server(server_id)
        self._mutate("reboot", server_id, self._compute.reboot_server, server, "SOFT")
        if wait:
            self._wait_for(server_id, status.ACTIVE, timeout)

    def get_server_status(self, server_id: ServerHandle) -> str:
        return _to_generic_status(self._get_server(server_id).status)

    def get_server_flavor(self, server_id: ServerHandle) -> str:
        return _reference_id(self._get_server(server_id).flavor)

    def get_server_ips(self, server_id: ServerHandle) -> IPAddressSet:
        server = self._get_server(server_id)
        ips: IPAddressSet = {}
        for network, addresses in (server.addresses or {}).items():
            entry = ips.setdefault(network.replace(" ", "_"), {})
            for address in addresses:
                entry[int(address["version"])] = address["addr"]
        return ips

    def get_servers(self, filters: Optional[Mapping[str, Any]] = None) -> Sequence[ServerSummary]:
        logger.debug("Listing OpenStack servers", extra={"filters": filters})
        return [
            ServerSummary(
                identifier=str(server.id),
                name=server.name,
                status=_to_generic_status(server.status),
            )
            for server in self._compute.servers(details=True, **dict(filters or {}))
        ]

    def get_images(self) -> Sequence[ImageInfo]:
        logger.debug("Listing OpenStack images")
        return [ImageInfo(identifier=str(image.id), name=image.name) for image in self._compute.images()]

    def get_flavors(self) -> Sequence[FlavorInfo]:
        logger.debug("Listing OpenStack flavors")
        return [FlavorInfo(identifier=str(flavor.id), name=flavor.name) for flavor in self._compute.flavors()]

    def get_image_schedule(self, server_id: ServerHandle) -> ImageSchedule:
        server = self._get_server(server_id)
        response = self._compute.get(self.IMAGE_SCHEDULE_PATH.format(server_id=server.id))
        if response.status_code == 404:
            return ImageSchedule(retention=None)
        exceptions.raise_from_response(response)
        retention = response.json().get("image_schedule", {}).get("retention")
        return ImageSchedule(retention=int(retention) if retention is not None else None)

    def _set_image_schedule(self, server_id: ServerHandle, retention: Optional[int]) -> None:
        server = self._get_server(server_id)
        path = self.IMAGE_SCHEDULE_PATH.format(server_id=server.id)

        def apply() -> None:
            if retention is None:
                response = self._compute.delete(path)
            else:
                response = self._compute.post(path, json={"image_schedule": {"retention": int(retention)}})
            exceptions.raise_from_response(response)

        self._mutate("image schedule update", server_id, apply)
