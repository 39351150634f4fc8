"""
Crate engine codec - versioned, fingerprinted container for one unit.

Artifact layout (little-endian):

    offset  size  field
    0       6     magic b"ECRATE"
    6       2     format version (u16)
    8       32    SHA-256 of the payload
    40      4     payload length (u32)
    44      n     payload (canonical JSON, UTF-8)

Encoding the same unit twice gives identical bytes, so the fingerprint
doubles as a deduplication key.
"""

from dataclasses import dataclass
from typing import Optional
import hmac
import json
import logging
import re
import struct

from enginecrane.crate.payload import (
    canonical_bytes,
    fingerprint_bytes,
    unit_from_dict,
    unit_to_dict,
)
from enginecrane.crate.upgrades import CURRENT_VERSION, OLDEST_VERSION, upgrade
from enginecrane.errors import CorruptArtifact, EngineCraneError, UnsupportedVersion
from enginecrane.model.unit import CanonicalEngineUnit
from enginecrane.units.quantity import kw_to_bhp

logger = logging.getLogger(__name__)

MAGIC = b"ECRATE"
HEADER = struct.Struct("<6sH32sI")
ARTIFACT_SUFFIX = ".eng"


@dataclass(frozen=True)
class ArtifactHeader:
    """Fixed-size artifact header."""
    version: int
    fingerprint: str
    payload_length: int


@dataclass(frozen=True)
class CrateSummary:
    """Human-facing overview of a decoded artifact."""
    name: str
    fingerprint: str
    version: int
    source_tool: str
    source_version: str
    peak_torque_nm: float
    peak_torque_rpm: float
    peak_power_kw: float
    peak_power_rpm: float
    redline: float
    layout: str
    gear_count: int
    turbocharged: bool

    @property
    def peak_power_bhp(self) -> float:
        return kw_to_bhp(self.peak_power_kw)


def build_artifact(payload: bytes, version: int = CURRENT_VERSION) -> bytes:
    """Wrap raw payload bytes in a header for ``version``."""
    header = HEADER.pack(MAGIC, version, fingerprint_bytes(payload), len(payload))
    return header + payload


def encode(unit: CanonicalEngineUnit) -> bytes:
    """Serialize ``unit`` into a crate engine artifact.

    Args:
        unit: Unit to package

    Returns:
        Artifact bytes (deterministic for equal units)
    """
    payload = canonical_bytes(unit_to_dict(unit))
    data = build_artifact(payload)
    logger.info(f"Encoded crate '{unit.name}' ({len(data)} bytes)")
    return data


def read_header(data: bytes) -> ArtifactHeader:
    """Parse and check the fixed header without touching the payload.

    Raises:
        CorruptArtifact: On bad magic or truncated header
        UnsupportedVersion: On a version this decoder does not know
    """
    if len(data) < HEADER.size:
        raise CorruptArtifact(f"artifact truncated: {len(data)} bytes, header needs {HEADER.size}")
    magic, version, digest, length = HEADER.unpack_from(data, 0)
    if magic != MAGIC:
        raise CorruptArtifact(f"bad magic {magic!r}")
    if not OLDEST_VERSION <= version <= CURRENT_VERSION:
        raise UnsupportedVersion(version, CURRENT_VERSION)
    return ArtifactHeader(version=version, fingerprint=digest.hex(), payload_length=length)


def decode(data: bytes) -> CanonicalEngineUnit:
    """Decode and fully re-validate an artifact.

    Args:
        data: Artifact bytes

    Returns:
        The unit stored in the artifact

    Raises:
        UnsupportedVersion: If the artifact is newer than this decoder
        CorruptArtifact: On fingerprint mismatch, broken structure or
            wrongly typed values
        MalformedModel / InvalidQuantity: If the stored model violates
            canonical invariants
    """
    header = read_header(data)
    payload = bytes(data[HEADER.size:])
    if len(payload) != header.payload_length:
        raise CorruptArtifact(
            f"payload is {len(payload)} bytes, header declares {header.payload_length}"
        )
    if not hmac.compare_digest(fingerprint_bytes(payload).hex(), header.fingerprint):
        raise CorruptArtifact("payload fingerprint mismatch")

    try:
        raw = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CorruptArtifact(f"payload is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise CorruptArtifact("payload root must be an object")

    try:
        unit = unit_from_dict(upgrade(raw, header.version))
    except EngineCraneError:
        raise
    except (KeyError, TypeError, ValueError, OverflowError, AttributeError, IndexError) as exc:
        raise CorruptArtifact(f"payload structure invalid: {exc!r}") from exc

    logger.info(f"Decoded crate '{unit.name}' (v{header.version}, {header.fingerprint[:12]})")
    return unit


def inspect(data: bytes) -> CrateSummary:
    """Decode ``data`` and summarise it."""
    header = read_header(data)
    unit = decode(data)
    torque_rpm, torque = unit.engine.peak_torque()
    power_rpm, power = unit.engine.peak_power()
    return CrateSummary(
        name=unit.name,
        fingerprint=header.fingerprint,
        version=header.version,
        source_tool=unit.provenance.source_tool,
        source_version=unit.provenance.source_version,
        peak_torque_nm=torque,
        peak_torque_rpm=torque_rpm,
        peak_power_kw=power,
        peak_power_rpm=power_rpm,
        redline=unit.engine.redline,
        layout=unit.drivetrain.layout.value,
        gear_count=unit.drivetrain.gearbox.gear_count,
        turbocharged=unit.engine.is_turbocharged,
    )


def slugify(name: str) -> str:
    """Lower-case file-name-safe form of an engine name."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "engine"


def artifact_name(unit: CanonicalEngineUnit, fingerprint: Optional[str] = None) -> str:
    """File name ``<slug>-<fingerprint[:12]>.eng`` for a unit."""
    fingerprint = fingerprint or unit.fingerprint
    return f"{slugify(unit.name)}-{fingerprint[:12]}{ARTIFACT_SUFFIX}"
