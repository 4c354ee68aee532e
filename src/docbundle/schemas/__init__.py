"""
Canonical schemas shared across docbundle.

These models are the ONLY representations of filters, records, outcomes
and archive entries used by the client, orchestrator and pipeline.
"""

from .document import DocumentRecord, MalformedRecordError, filename_from_path
from .outcome import (
    ArchiveEntry,
    OutcomeStatus,
    RetrievalOutcome,
    SkippedDocument,
    partition_outcomes,
)
from .search_filter import (
    SUBCATEGORIES,
    WIRE_DATE_FORMAT,
    Category,
    SearchFilter,
    TagSet,
    ValidationError,
    ValidationErrorKind,
    format_wire_date,
    normalize,
    parse_category,
    parse_date,
    subcategories_for,
)
from .upload import UploadEntry, build_upload_entry

__all__ = [
    # Filters
    "SUBCATEGORIES",
    "WIRE_DATE_FORMAT",
    "Category",
    "SearchFilter",
    "TagSet",
    "ValidationError",
    "ValidationErrorKind",
    "format_wire_date",
    "normalize",
    "parse_category",
    "parse_date",
    "subcategories_for",
    # Documents
    "DocumentRecord",
    "MalformedRecordError",
    "filename_from_path",
    # Outcomes
    "ArchiveEntry",
    "OutcomeStatus",
    "RetrievalOutcome",
    "SkippedDocument",
    "partition_outcomes",
    # Uploads
    "UploadEntry",
    "build_upload_entry",
]
