"""
Source bundles - already-materialized export files.

The reader never touches the file system; callers hand it a SourceBundle
that maps member names to bytes (a directory listing read elsewhere, or a
zip archive held in memory).
"""

from typing import Dict, Iterable, List, Mapping, Protocol, runtime_checkable
import io
import posixpath
import zipfile

from enginecrane.errors import BundleNotFound, SourceFormatError


@runtime_checkable
class SourceBundle(Protocol):
    """Byte-buffer reader collaborator."""

    def names(self) -> List[str]:
        """Member names available in the bundle."""
        ...

    def read(self, name: str) -> bytes:
        """Raw bytes of ``name``; raises BundleNotFound when absent."""
        ...


@runtime_checkable
class ArtifactSink(Protocol):
    """Byte-buffer writer collaborator."""

    def write(self, name: str, data: bytes) -> None:
        """Persist ``data`` under the logical name ``name``."""
        ...


class MemoryBundle:
    """Bundle backed by a name -> bytes mapping."""

    def __init__(self, members: Mapping[str, bytes] | None = None):
        self._members: Dict[str, bytes] = {}
        for name, data in (members or {}).items():
            if isinstance(data, str):
                data = data.encode("utf-8")
            self._members[name] = bytes(data)

    def names(self) -> List[str]:
        return sorted(self._members)

    def read(self, name: str) -> bytes:
        try:
            return self._members[name]
        except KeyError:
            raise BundleNotFound(name) from None

    def __contains__(self, name: str) -> bool:
        return name in self._members

    def __len__(self) -> int:
        return len(self._members)


class ZipBundle(MemoryBundle):
    """Bundle read from zip archive bytes.

    Members are addressed by their base name; folders inside the archive
    are flattened.
    """

    def __init__(self, archive: bytes):
        try:
            with zipfile.ZipFile(io.BytesIO(archive)) as zf:
                members = {}
                for info in zf.infolist():
                    if info.is_dir():
                        continue
                    name = posixpath.basename(info.filename)
                    if name in members:
                        raise SourceFormatError("bundle", name, "duplicate member in archive")
                    members[name] = zf.read(info)
        except zipfile.BadZipFile as exc:
            raise SourceFormatError("bundle", "archive", f"not a zip archive: {exc}") from exc
        super().__init__(members)


class MemorySink:
    """ArtifactSink that keeps written files in a dict."""

    def __init__(self):
        self.files: Dict[str, bytes] = {}

    def write(self, name: str, data: bytes) -> None:
        self.files[name] = bytes(data)

    def names(self) -> Iterable[str]:
        return list(self.files)
