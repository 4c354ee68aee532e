"""
Catalog document record.

DocumentRecord is the only typed view of a search hit. It is built from a
service response by the catalog client and never mutated afterwards.
"""

from dataclasses import dataclass
from typing import Any
from urllib.parse import unquote, urlsplit


class MalformedRecordError(ValueError):
    """A service record is missing required fields or has the wrong shape."""

    pass


# Fields that must be present on every record returned by the service
REQUIRED_FIELDS = ("id", "file_path")


@dataclass(frozen=True)
class DocumentRecord:
    """Document metadata returned by a catalog search."""

    id: str
    remote_path: str  # URL the file bytes are fetched from
    subcategory: str = ""
    document_date: str = ""  # As returned by the service (DD-MM-YYYY)
    remarks: str = ""
    tags: tuple[str, ...] = ()
    category: str = ""

    @classmethod
    def from_api_response(cls, data: Any) -> "DocumentRecord":
        """
        Create from a service search result item.

        Raises:
            MalformedRecordError: if a required field is missing or a field
                has an unexpected type
        """
        if not isinstance(data, dict):
            raise MalformedRecordError(
                f"Expected a JSON object, got {type(data).__name__}"
            )

        missing = [
            name for name in REQUIRED_FIELDS if data.get(name) in (None, "")
        ]
        if missing:
            raise MalformedRecordError(
                f"Record is missing required field(s): {', '.join(missing)}"
            )

        remote_path = data["file_path"]
        if not isinstance(remote_path, str):
            raise MalformedRecordError("file_path must be a string")

        raw_tags = data.get("tags") or []
        if not isinstance(raw_tags, list):
            raise MalformedRecordError("tags must be a list")

        tags = []
        for tag in raw_tags:
            if isinstance(tag, dict) and tag.get("tag_name"):
                tags.append(str(tag["tag_name"]))
            elif isinstance(tag, str) and tag:
                tags.append(tag)
            else:
                raise MalformedRecordError(f"Unrecognized tag entry: {tag!r}")

        return cls(
            id=str(data["id"]),
            remote_path=remote_path,
            subcategory=data.get("minor_head") or "",
            document_date=data.get("document_date") or "",
            remarks=data.get("document_remarks") or "",
            tags=tuple(tags),
            category=data.get("major_head") or "",
        )

    @property
    def filename(self) -> str:
        """Final path segment of remote_path (query and fragment stripped)."""
        return filename_from_path(self.remote_path, fallback=f"document_{self.id}")


def filename_from_path(remote_path: str, fallback: str = "document") -> str:
    """Derive a local filename from the final segment of a URL or path."""
    path = urlsplit(remote_path).path if "://" in remote_path else remote_path
    segment = unquote(path.rstrip("/").rsplit("/", 1)[-1])
    # Decoded separators must not reach the local filesystem
    for char in ("/", "\\", "\x00"):
        segment = segment.replace(char, "_")
    segment = segment.strip()
    if segment in ("", ".", ".."):
        return fallback
    return segment
