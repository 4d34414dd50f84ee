"""Blocking poll-until-status helper shared by every driver."""

from __future__ import annotations

import logging
import time
from typing import Callable

from .exceptions import OperationTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0


def wait_for_status(
    get_status: Callable[[], str],
    target: str,
    timeout: float,
    *,
    interval: float = DEFAULT_POLL_INTERVAL,
    description: str = "server",
) -> None:
    """Block until ``get_status()`` returns ``target`` or ``timeout`` elapses.

    Args:
        get_status: Callable returning the current generic status.
        target: Status to wait for.
        timeout: Maximum time to wait in seconds.
        interval: Time between polls in seconds.
        description: Description used in log and error messages.

    Raises:
        OperationTimeoutError: If the status still differs from ``target``
            once the deadline has passed.
    """

    deadline = time.monotonic() + timeout
    status = get_status()
    while status != target:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        logger.debug(
            "Waiting for status",
            extra={"description": description, "status": status, "target": target},
        )
        time.sleep(min(interval, remaining))
        status = get_status()

    if status == target:
        return

    # Deadline passed; one last read decides.
    status = get_status()
    if status != target:
        logger.warning(
            "Timed out waiting for status",
            extra={"description": description, "status": status, "target": target, "timeout": timeout},
        )
        raise OperationTimeoutError(target, status, timeout, description=description)
