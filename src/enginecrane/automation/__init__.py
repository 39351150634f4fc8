"""
Automation module - import of Automation engine exports.

This module contains:
- SourceBundle / MemoryBundle / ZipBundle: in-memory export files
- AutomationReader: bundle -> CanonicalEngineUnit with warnings
"""

from enginecrane.automation.bundle import (
    SourceBundle,
    ArtifactSink,
    MemoryBundle,
    ZipBundle,
    MemorySink,
)
from enginecrane.automation.reader import AutomationReader, ReadResult, bundle_fingerprint

__all__ = [
    "SourceBundle",
    "ArtifactSink",
    "MemoryBundle",
    "ZipBundle",
    "MemorySink",
    "AutomationReader",
    "ReadResult",
    "bundle_fingerprint",
]
