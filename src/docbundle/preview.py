"""Preview strategy selection based on a document's file suffix."""

from enum import Enum
from typing import Optional, Union

from .schemas.document import DocumentRecord, filename_from_path

IMAGE_SUFFIXES = frozenset({"jpg", "jpeg", "png", "gif"})
DOCUMENT_VIEWER_SUFFIXES = frozenset({"pdf"})

UNSUPPORTED_MESSAGE = "Preview not available for this file type"


class PreviewKind(str, Enum):
    """How a document can be shown without downloading it first."""

    IMAGE = "image"
    DOCUMENT_VIEWER = "pdf"
    UNSUPPORTED = "unsupported"


def file_suffix(remote_path: str) -> str:
    """Lower-cased text after the last '.' of the final path segment, or ''."""
    name = filename_from_path(remote_path, fallback="")
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def classify(record: Union[DocumentRecord, str]) -> PreviewKind:
    """Pick a preview strategy. Total: unknown suffixes are UNSUPPORTED."""
    path = record.remote_path if isinstance(record, DocumentRecord) else record
    suffix = file_suffix(path)
    if suffix in IMAGE_SUFFIXES:
        return PreviewKind.IMAGE
    if suffix in DOCUMENT_VIEWER_SUFFIXES:
        return PreviewKind.DOCUMENT_VIEWER
    return PreviewKind.UNSUPPORTED


def preview_message(kind: PreviewKind) -> Optional[str]:
    """Message to show instead of a preview, or None if one is available."""
    if kind == PreviewKind.UNSUPPORTED:
        return UNSUPPORTED_MESSAGE
    return None
