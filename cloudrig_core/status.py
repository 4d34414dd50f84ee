"""Provider-neutral server status vocabulary."""

from __future__ import annotations

from typing import Mapping

BUILDING = "building"
ACTIVE = "active"
RESIZING = "resizing"
DELETING = "deleting"
DELETED = "deleted"
REBOOTING = "rebooting"
ERROR = "error"
UNKNOWN = "unknown"

KNOWN_STATUSES = frozenset({BUILDING, ACTIVE, RESIZING, DELETING, DELETED, REBOOTING, ERROR})

OPENSTACK_STATUSES: Mapping[str, str] = {
    "BUILD": BUILDING,
    "RESIZE": RESIZING,
    "DELETED": DELETING,
    "REBOOT": REBOOTING,
}

HETZNER_STATUSES: Mapping[str, str] = {
    "initializing": BUILDING,
    "starting": BUILDING,
    "rebuilding": BUILDING,
    "running": ACTIVE,
    "migrating": RESIZING,
    "deleting": DELETING,
}


class StatusNormalizer:
    """Translate native status tokens into the generic vocabulary.

    Tokens missing from the mapping are lowercased and passed through, so the
    result is always a string and unknown provider states stay visible.
    """

    def __init__(self, mapping: Mapping[str, str]) -> None:
        self._mapping = dict(mapping)

    def __call__(self, native: str | None) -> str:
        if native is None:
            return UNKNOWN
        native = str(native)
        return self._mapping.get(native, native.lower())
