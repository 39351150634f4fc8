"""
Pipeline - the calls an outer front end (GUI, CLI, mod manager) makes.

Source bytes come in through a SourceBundle, results go out through an
ArtifactSink. Nothing here touches the file system or global state, so
calls on different units can run concurrently.
"""

from datetime import datetime
from typing import Callable, List, Optional
import logging

from enginecrane.automation.bundle import ArtifactSink, SourceBundle
from enginecrane.automation.reader import AutomationReader, ReadResult
from enginecrane.config import TuningConfig
from enginecrane.crate import codec
from enginecrane.model.unit import CanonicalEngineUnit
from enginecrane.translators import TargetConfigBundle, get_translator

logger = logging.getLogger(__name__)


def import_automation(bundle: SourceBundle, clock: Optional[Callable[[], datetime]] = None) -> ReadResult:
    """Read an Automation export bundle."""
    return AutomationReader(clock=clock).read(bundle)


def translate(unit: CanonicalEngineUnit, target: str, tuning: Optional[TuningConfig] = None) -> TargetConfigBundle:
    """Translate ``unit`` for ``target`` (see translators.available_targets)."""
    return get_translator(target).translate(unit, tuning)


def package(unit: CanonicalEngineUnit) -> bytes:
    """Encode ``unit`` as a crate engine artifact."""
    return codec.encode(unit)


def unpack(data: bytes) -> CanonicalEngineUnit:
    """Decode a crate engine artifact."""
    return codec.decode(data)


def write_bundle(bundle: TargetConfigBundle, sink: ArtifactSink, prefix: str = "") -> List[str]:
    """Hand every file of ``bundle`` to ``sink``.

    Args:
        bundle: Translator output
        sink: Writer collaborator
        prefix: Prepended to each file name (e.g. ``"data/"``)

    Returns:
        Names written, in bundle order
    """
    written = []
    for config_file in bundle.files:
        name = f"{prefix}{config_file.name}"
        sink.write(name, config_file.content)
        written.append(name)
    logger.info(f"Wrote {len(written)} {bundle.target} files")
    return written


def write_crate(unit: CanonicalEngineUnit, sink: ArtifactSink) -> str:
    """Package ``unit`` and hand it to ``sink`` under its content-addressed name."""
    data = codec.encode(unit)
    header = codec.read_header(data)
    name = codec.artifact_name(unit, header.fingerprint)
    sink.write(name, data)
    return name
