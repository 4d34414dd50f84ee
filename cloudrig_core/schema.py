"""Structural validation of nested configuration mappings.

A schema template is a nested mapping whose keys describe the required shape
of a candidate mapping. Template values are placeholders: only nested mappings
are inspected, scalar values merely mark a required leaf key. Keys present in
the candidate but absent from the template are accepted.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger(__name__)


def missing_keys(template: Mapping[str, Any], candidate: Any, *, prefix: str = "") -> list[str]:
    """Return dotted paths of template keys that ``candidate`` lacks.

    A path is also reported when the template expects a nested mapping and the
    candidate holds something else at that position.
    """

    if not isinstance(candidate, Mapping):
        return [prefix.rstrip(".") or "<root>"]

    absent = set(template) - set(candidate)
    missing: list[str] = []
    for key, expected in template.items():
        if key in absent:
            missing.append(f"{prefix}{key}")
        elif isinstance(expected, Mapping):
            missing.extend(missing_keys(expected, candidate[key], prefix=f"{prefix}{key}."))
    return missing


def validate_structure(template: Mapping[str, Any], candidate: Any) -> bool:
    """Return ``True`` when ``candidate`` provides every key path of ``template``."""

    missing = missing_keys(template, candidate)
    if missing:
        logger.debug("Structure validation failed", extra={"missing": missing})
        return False
    return True
