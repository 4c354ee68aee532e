"""
Per-item retrieval outcomes and archive entries.

These objects exist only for the duration of one export and are never
cached across invocations.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class OutcomeStatus(str, Enum):
    """Result of one retrieval attempt."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass
class RetrievalOutcome:
    """
    Result of fetching one document.

    Exactly one outcome is produced per requested record. A successful
    outcome holds the bytes either in memory (``payload``) or staged on
    disk (``staged_path``).
    """

    document_id: str
    status: OutcomeStatus
    filename: Optional[str] = None
    payload: Optional[bytes] = None
    staged_path: Optional[Path] = None
    reason: Optional[str] = None
    attempts: int = 1

    @classmethod
    def success(
        cls,
        document_id: str,
        filename: str,
        payload: Optional[bytes] = None,
        staged_path: Optional[Path] = None,
        attempts: int = 1,
    ) -> "RetrievalOutcome":
        return cls(
            document_id=document_id,
            status=OutcomeStatus.SUCCESS,
            filename=filename,
            payload=payload,
            staged_path=staged_path,
            attempts=attempts,
        )

    @classmethod
    def failure(
        cls, document_id: str, reason: str, attempts: int = 1
    ) -> "RetrievalOutcome":
        return cls(
            document_id=document_id,
            status=OutcomeStatus.FAILED,
            reason=reason,
            attempts=attempts,
        )

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    def read_payload(self) -> bytes:
        """Return the retrieved bytes, reading them from staging if needed."""
        if not self.ok:
            raise ValueError(f"Outcome for {self.document_id} is a failure")
        if self.payload is not None:
            return self.payload
        if self.staged_path is not None:
            return self.staged_path.read_bytes()
        return b""

    def to_archive_entry(self) -> "ArchiveEntry":
        """Convert a successful outcome into an archive entry."""
        if not self.ok:
            raise ValueError(f"Outcome for {self.document_id} is a failure")
        return ArchiveEntry(
            name=self.filename or f"document_{self.document_id}",
            payload=self.payload,
            source_path=self.staged_path,
        )


@dataclass(frozen=True)
class ArchiveEntry:
    """A named file destined for the assembled archive."""

    name: str
    payload: Optional[bytes] = None
    source_path: Optional[Path] = None  # Staged file, streamed into the archive

    def read(self) -> bytes:
        if self.payload is not None:
            return self.payload
        if self.source_path is not None:
            return self.source_path.read_bytes()
        return b""


@dataclass(frozen=True)
class SkippedDocument:
    """A document left out of an export, with the reason it failed."""

    document_id: str
    reason: str


def partition_outcomes(
    outcomes: list[RetrievalOutcome],
) -> tuple[list[RetrievalOutcome], list[RetrievalOutcome]]:
    """Split outcomes into (successes, failures), keeping input order."""
    successes = [o for o in outcomes if o.ok]
    failures = [o for o in outcomes if not o.ok]
    return successes, failures
