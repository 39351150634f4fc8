"""
Crate payload upgrades.

Older payloads are brought up to CURRENT_VERSION by applying pure
``dict -> dict`` steps in order (1 -> 2 -> 3 -> 4). Decoding itself only ever
understands the current layout.
"""

from typing import Any, Callable, Dict
import copy
import logging

logger = logging.getLogger(__name__)

CURRENT_VERSION = 4
OLDEST_VERSION = 1

Payload = Dict[str, Any]


def _v1_to_v2(payload: Payload) -> Payload:
    """Version 1 stored one turbo as a flat dict; wrap it as a single stage."""
    engine = payload["engine"]
    turbo = engine.get("turbo")
    if turbo is not None and "stages" not in turbo:
        engine["turbo"] = {"stages": [turbo], "boost_curve": None}
    return payload


def _percent_to_fraction(diff: Payload) -> None:
    for key in ("power_lock", "coast_lock"):
        diff[key] = diff[key] / 100.0


def _v2_to_v3(payload: Payload) -> Payload:
    """Version 2 stored lock values in percent and had no dimensions."""
    drivetrain = payload["drivetrain"]
    _percent_to_fraction(drivetrain["differential"])
    awd = drivetrain.get("awd")
    if awd is not None:
        for axle in ("front", "centre", "rear"):
            _percent_to_fraction(awd[axle])
    engine = payload["engine"]
    engine.setdefault("dimensions", None)
    return payload


def _v3_to_v4(payload: Payload) -> Payload:
    """Version 3 had no fuel economy."""
    payload["engine"].setdefault("fuel", None)
    return payload


UPGRADES: Dict[int, Callable[[Payload], Payload]] = {
    1: _v1_to_v2,
    2: _v2_to_v3,
    3: _v3_to_v4,
}


def upgrade(payload: Payload, version: int) -> Payload:
    """Upgrade ``payload`` written at ``version`` to CURRENT_VERSION.

    The input is not modified.

    Args:
        payload: Decoded payload data
        version: Format version the payload was written with

    Returns:
        Payload in the current layout
    """
    data = copy.deepcopy(payload)
    while version < CURRENT_VERSION:
        logger.debug(f"Upgrading crate payload v{version} -> v{version + 1}")
        data = UPGRADES[version](data)
        version += 1
    return data
