"""
Errors and advisory records.

Fatal problems are raised as exceptions derived from EngineCraneError.
Non-fatal findings (clamped values, defaulted fields, ignored keys,
implausible-but-legal values) are returned as plain records next to a
successful result.
"""

from dataclasses import dataclass
from enum import Enum


class EngineCraneError(Exception):
    """Base class for all enginecrane errors."""


class InvalidQuantity(EngineCraneError, ValueError):
    """A physical quantity was constructed with an out-of-domain value."""


class UnitMismatch(EngineCraneError, TypeError):
    """Quantities of different units were combined without a conversion."""


class MalformedModel(EngineCraneError, ValueError):
    """A canonical model invariant was violated."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class SourceFormatError(EngineCraneError):
    """An Automation export bundle is structurally invalid."""

    def __init__(self, block: str, field: str, message: str):
        self.block = block
        self.field = field
        super().__init__(f"[{block}] {field}: {message}")


class BundleNotFound(EngineCraneError, KeyError):
    """A byte source could not supply the requested member."""

    def __str__(self) -> str:
        return f"bundle member not found: {self.args[0]}"


class ArtifactError(EngineCraneError):
    """Base class for crate engine decode failures."""


class UnsupportedVersion(ArtifactError):
    """The artifact was written by a newer (or unknown) format version."""

    def __init__(self, version: int, supported: int):
        self.version = version
        self.supported = supported
        super().__init__(
            f"crate format version {version} is not supported (max {supported})"
        )


class CorruptArtifact(ArtifactError):
    """The artifact is truncated, tampered with, or structurally invalid."""


class WarningKind(Enum):
    """Category of a conversion warning."""
    CLAMPED = "clamped"
    DEFAULTED = "defaulted"
    IGNORED = "ignored"
    ADJUSTED = "adjusted"


@dataclass(frozen=True)
class ConversionWarning:
    """A non-fatal event attributed to one section/field."""
    section: str
    field: str
    message: str
    kind: WarningKind = WarningKind.ADJUSTED

    @property
    def location(self) -> str:
        """Dotted ``SECTION.FIELD`` name of the offending value."""
        return f"{self.section}.{self.field}"

    def __str__(self) -> str:
        return f"{self.location}: {self.message}"


@dataclass(frozen=True)
class ValidationIssue:
    """Advisory finding on a structurally valid model."""
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"
