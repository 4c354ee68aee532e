"""
Upload entry metadata.

An upload needs a document date, a category/subcategory pair, at least
one tag and the uploading user's id. Remarks are optional.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Any

from .search_filter import (
    Category,
    SearchFilter,
    TagSet,
    ValidationError,
    ValidationErrorKind,
    format_wire_date,
    parse_category,
    parse_date,
)


@dataclass(frozen=True)
class UploadEntry:
    """Validated metadata sent alongside an uploaded file."""

    document_date: date
    category: Category
    subcategory: str
    tags: tuple[str, ...]
    user_id: str
    remarks: str = ""

    def to_wire(self) -> dict[str, Any]:
        """Convert to the service's ``data`` field shape."""
        return {
            "major_head": self.category.value,
            "minor_head": self.subcategory,
            "document_date": format_wire_date(self.document_date),
            "document_remarks": self.remarks,
            "tags": [{"tag_name": tag} for tag in self.tags],
            "user_id": self.user_id,
        }


def build_upload_entry(
    document_date: date | str | None,
    category: Category | str | None,
    subcategory: str | None,
    tags: Iterable[str],
    user_id: str | int | None,
    remarks: str = "",
) -> UploadEntry:
    """
    Validate upload metadata.

    Raises:
        ValidationError: MISSING_FIELD when a required value is absent, or
            the filter validation kinds for a bad category pair / date
    """
    parsed_date = parse_date(document_date)
    parsed_category = parse_category(category)
    subcategory = (subcategory or "").strip()
    tag_set = TagSet(tags)

    missing = []
    if parsed_date is None:
        missing.append("document_date")
    if parsed_category == Category.UNSET:
        missing.append("category")
    if not subcategory:
        missing.append("subcategory")
    if not len(tag_set):
        missing.append("tags")
    if user_id in (None, ""):
        missing.append("user_id")
    if missing:
        raise ValidationError(
            ValidationErrorKind.MISSING_FIELD,
            f"Missing required field(s): {', '.join(missing)}",
        )

    # Reuse the filter's category/subcategory validation
    SearchFilter(category=parsed_category, subcategory=subcategory)

    return UploadEntry(
        document_date=parsed_date,
        category=parsed_category,
        subcategory=subcategory,
        tags=tag_set.as_tuple(),
        user_id=str(user_id),
        remarks=(remarks or "").strip(),
    )
