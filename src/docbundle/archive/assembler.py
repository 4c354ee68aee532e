"""
ZIP archive assembly.

Packs retrieved files into a single in-memory ZIP. Entries staged on disk
are streamed in by path; entries held in memory are written directly.
Nothing is persisted here: the caller decides where the bytes go.
"""

import io
import logging
import zipfile
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath

from ..errors import DocbundleError
from ..schemas.outcome import ArchiveEntry

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_NAME = "documents.zip"


class CollisionPolicy(str, Enum):
    """What to do when two entries share a name."""

    # Later duplicates become "name (1).ext", "name (2).ext", ...
    SUFFIX = "suffix"
    # Later duplicates replace earlier ones (last one wins)
    OVERWRITE = "overwrite"


class AssemblyErrorKind(str, Enum):
    EMPTY = "empty"


class AssemblyError(DocbundleError):
    """The archive could not be assembled."""

    def __init__(self, kind: AssemblyErrorKind, detail: str):
        super().__init__(kind, detail)


@dataclass
class AssembledArchive:
    """A finished archive, ready to be handed to the user."""

    filename: str
    data: bytes
    entry_names: list[str] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.data)


def disambiguate(name: str, taken: set[str]) -> str:
    """Return ``name`` or the first free ``stem (n).ext`` variant."""
    if name not in taken:
        return name

    path = PurePosixPath(name)
    stem, suffix = path.stem, path.suffix
    # Dotfiles such as ".env" have no suffix, keep them whole
    if not stem:
        stem, suffix = name, ""

    counter = 1
    while True:
        candidate = f"{stem} ({counter}){suffix}"
        if candidate not in taken:
            return candidate
        counter += 1


def resolve_names(
    entries: Iterable[ArchiveEntry],
    policy: CollisionPolicy = CollisionPolicy.SUFFIX,
) -> dict[str, ArchiveEntry]:
    """
    Map final archive names to entries according to ``policy``.

    Insertion order follows the input; with OVERWRITE a replaced name keeps
    its original position.
    """
    resolved: dict[str, ArchiveEntry] = {}
    for entry in entries:
        name = entry.name
        if name in resolved:
            if policy == CollisionPolicy.OVERWRITE:
                logger.warning(f"Archive entry {name!r} overwritten by a later file")
            else:
                name = disambiguate(name, set(resolved))
                logger.info(f"Archive entry {entry.name!r} renamed to {name!r}")
        resolved[name] = entry
    return resolved


class ArchiveAssembler:
    """
    Builds ZIP archives from archive entries.

    Usage:
        assembler = ArchiveAssembler()
        archive = assembler.assemble(entries)
    """

    def __init__(
        self,
        output_name: str = DEFAULT_ARCHIVE_NAME,
        collision_policy: CollisionPolicy = CollisionPolicy.SUFFIX,
        compression: int = zipfile.ZIP_DEFLATED,
    ):
        self.output_name = output_name
        self.collision_policy = CollisionPolicy(collision_policy)
        self.compression = compression

    def assemble(self, entries: Iterable[ArchiveEntry]) -> AssembledArchive:
        """
        Pack entries into a ZIP.

        Raises:
            AssemblyError: EMPTY when there is nothing to pack
        """
        resolved = resolve_names(entries, self.collision_policy)
        if not resolved:
            raise AssemblyError(
                AssemblyErrorKind.EMPTY, "No documents to add to the archive"
            )

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=self.compression) as zf:
            for name, entry in resolved.items():
                if entry.payload is None and entry.source_path is not None:
                    zf.write(entry.source_path, arcname=name)
                else:
                    zf.writestr(name, entry.read())

        archive = AssembledArchive(
            filename=self.output_name,
            data=buffer.getvalue(),
            entry_names=list(resolved),
        )
        logger.info(
            f"Assembled {archive.filename} with {len(archive.entry_names)} "
            f"file(s), {archive.size} bytes"
        )
        return archive
