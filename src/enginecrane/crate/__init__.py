"""
Crate module - portable crate engine artifacts.

This module contains:
- codec: encode / decode / inspect versioned, fingerprinted artifacts
- payload: canonical model <-> plain data mapping
- upgrades: pure upgrade chain for older payload versions
"""

from enginecrane.crate.codec import (
    ArtifactHeader,
    CrateSummary,
    encode,
    decode,
    read_header,
    inspect,
    artifact_name,
)
from enginecrane.crate.upgrades import CURRENT_VERSION

__all__ = [
    "ArtifactHeader",
    "CrateSummary",
    "encode",
    "decode",
    "read_header",
    "inspect",
    "artifact_name",
    "CURRENT_VERSION",
]
