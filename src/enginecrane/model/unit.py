"""
Canonical engine unit - engine + drivetrain + provenance.

A unit is never edited in place. Every edit returns a new unit so the
same value can be handed to several translators at once.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import List

from enginecrane.errors import MalformedModel, ValidationIssue
from enginecrane.model.drivetrain import DrivetrainModel
from enginecrane.model.engine import EngineModel


@dataclass(frozen=True)
class Provenance:
    """Where a unit came from."""
    source_tool: str
    source_version: str
    original_id: str
    created_at: datetime

    def __post_init__(self):
        for name in ("source_tool", "source_version", "original_id"):
            if not isinstance(getattr(self, name), str):
                raise MalformedModel(f"provenance.{name}", "expected a string")
        created = self.created_at
        if not isinstance(created, datetime):
            raise MalformedModel("provenance.created_at", "expected a datetime")
        # Naive timestamps are taken as UTC
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        object.__setattr__(self, "created_at", created.astimezone(timezone.utc))


@dataclass(frozen=True)
class CanonicalEngineUnit:
    """Top-level entity combining engine, drivetrain and provenance."""
    engine: EngineModel
    drivetrain: DrivetrainModel
    provenance: Provenance

    def __post_init__(self):
        for name, kind in (
            ("engine", EngineModel),
            ("drivetrain", DrivetrainModel),
            ("provenance", Provenance),
        ):
            if not isinstance(getattr(self, name), kind):
                raise MalformedModel(name, f"expected {kind.__name__}")

    @property
    def name(self) -> str:
        return self.engine.name

    @property
    def fingerprint(self) -> str:
        """SHA-256 hex digest of the canonical serialized payload."""
        from enginecrane.crate.payload import payload_fingerprint
        return payload_fingerprint(self)

    def with_engine(self, engine: EngineModel) -> "CanonicalEngineUnit":
        return replace(self, engine=engine)

    def with_drivetrain(self, drivetrain: DrivetrainModel) -> "CanonicalEngineUnit":
        return replace(self, drivetrain=drivetrain)

    def validate(self) -> List[ValidationIssue]:
        """Collect advisory issues from the engine, the drivetrain and their pairing."""
        issues = self.engine.validate() + self.drivetrain.validate()
        _, peak_torque = self.engine.peak_torque()
        if peak_torque > self.drivetrain.clutch.max_torque:
            issues.append(ValidationIssue(
                "clutch.max_torque",
                f"peak engine torque {peak_torque:.0f} N·m exceeds clutch capacity "
                f"{self.drivetrain.clutch.max_torque:.0f} N·m",
            ))
        return issues
