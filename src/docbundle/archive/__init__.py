"""
Archive assembly for bulk exports.

Packs retrieved documents into one ZIP with a deterministic
filename-collision policy.
"""

from .assembler import (
    DEFAULT_ARCHIVE_NAME,
    ArchiveAssembler,
    AssembledArchive,
    AssemblyError,
    AssemblyErrorKind,
    CollisionPolicy,
    disambiguate,
    resolve_names,
)

__all__ = [
    "DEFAULT_ARCHIVE_NAME",
    "ArchiveAssembler",
    "AssembledArchive",
    "AssemblyError",
    "AssemblyErrorKind",
    "CollisionPolicy",
    "disambiguate",
    "resolve_names",
]
