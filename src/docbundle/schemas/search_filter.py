"""
Search criteria (SSOT).

This module defines THE canonical search filter. Raw caller input (form
values, CLI arguments, JSON) is normalized here and nowhere else.

Invariants:
- A non-empty subcategory implies a category is set
- The subcategory belongs to the set allowed for its category
- date_from <= date_to when both are present
- Tags are non-empty and unique; order does not affect equality
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from ..errors import DocbundleError

# Wire date format used by the document service (DD-MM-YYYY)
WIRE_DATE_FORMAT = "%d-%m-%Y"

ISO_DATE_FORMAT = "%Y-%m-%d"


class Category(str, Enum):
    """Top-level document category ("major head" on the wire)."""

    PERSONAL = "Personal"
    PROFESSIONAL = "Professional"
    UNSET = ""


# Subcategories ("minor heads") allowed for each category
SUBCATEGORIES: dict[Category, tuple[str, ...]] = {
    Category.PERSONAL: ("John", "Tom", "Emily"),
    Category.PROFESSIONAL: ("Accounts", "HR", "IT", "Finance"),
    Category.UNSET: (),
}


class ValidationErrorKind(str, Enum):
    """Reasons a filter or upload entry can be rejected."""

    UNKNOWN_CATEGORY = "unknown_category"
    INVALID_SUBCATEGORY = "invalid_subcategory"
    SUBCATEGORY_WITHOUT_CATEGORY = "subcategory_without_category"
    INVALID_DATE = "invalid_date"
    INVERTED_DATE_RANGE = "inverted_date_range"
    INVALID_TAG = "invalid_tag"
    MISSING_FIELD = "missing_field"


class ValidationError(DocbundleError):
    """Caller input failed validation. Fix the input; never retried."""

    def __init__(self, kind: ValidationErrorKind, detail: str):
        super().__init__(kind, detail)


def subcategories_for(category: Category) -> tuple[str, ...]:
    """Subcategories a caller may choose for ``category``."""
    return SUBCATEGORIES[category]


def parse_category(value: Category | str | None) -> Category:
    """Parse a category name (case-insensitive). None/"" means unset."""
    if isinstance(value, Category):
        return value
    if value is None or not str(value).strip():
        return Category.UNSET

    wanted = str(value).strip().lower()
    for category in Category:
        if category.value.lower() == wanted:
            return category
    raise ValidationError(
        ValidationErrorKind.UNKNOWN_CATEGORY,
        f"Unknown category: {value!r}",
    )


def parse_date(value: date | str | None) -> date | None:
    """
    Parse a calendar date.

    Accepts ``date``/``datetime`` objects, ISO ``YYYY-MM-DD`` strings and
    wire ``DD-MM-YYYY`` strings. None or an empty string means "no date".
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    for fmt in (ISO_DATE_FORMAT, WIRE_DATE_FORMAT):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValidationError(
        ValidationErrorKind.INVALID_DATE,
        f"Unrecognized date: {value!r} (expected YYYY-MM-DD or DD-MM-YYYY)",
    )


def format_wire_date(value: date | None) -> str:
    """Format a date for the wire; absent dates become an empty string."""
    if value is None:
        return ""
    return value.strftime(WIRE_DATE_FORMAT)


class TagSet:
    """
    Insertion-ordered, duplicate-free tag collection.

    Mirrors how a tag picker behaves: adding an empty or already-present
    tag does nothing.
    """

    def __init__(self, tags: Iterable[str] = ()):
        self._tags: list[str] = []
        for tag in tags:
            self.add(tag)

    def add(self, tag: str) -> bool:
        """Add a tag. Returns True if the set changed."""
        tag = tag.strip() if isinstance(tag, str) else ""
        if not tag or tag in self._tags:
            return False
        self._tags.append(tag)
        return True

    def remove(self, tag: str) -> bool:
        """Remove a tag. Returns True if it was present."""
        if tag in self._tags:
            self._tags.remove(tag)
            return True
        return False

    def as_tuple(self) -> tuple[str, ...]:
        return tuple(self._tags)

    def __contains__(self, tag: object) -> bool:
        return tag in self._tags

    def __iter__(self) -> Iterator[str]:
        return iter(self._tags)

    def __len__(self) -> int:
        return len(self._tags)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, TagSet):
            return set(self._tags) == set(other._tags)
        return NotImplemented

    def __repr__(self) -> str:
        return f"TagSet({self._tags!r})"


@dataclass(frozen=True)
class SearchFilter:
    """
    Canonical, validated search criteria.

    Build with :func:`normalize`; direct construction also validates.
    """

    category: Category = Category.UNSET
    subcategory: str = ""
    date_from: date | None = None
    date_to: date | None = None
    # Insertion order is kept for the wire; equality uses tag_set
    tags: tuple[str, ...] = field(default=(), compare=False)
    tag_set: frozenset[str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", parse_category(self.category))
        object.__setattr__(self, "subcategory", str(self.subcategory or "").strip())
        object.__setattr__(self, "date_from", parse_date(self.date_from))
        object.__setattr__(self, "date_to", parse_date(self.date_to))
        tags = TagSet(self.tags).as_tuple()
        object.__setattr__(self, "tags", tags)
        object.__setattr__(self, "tag_set", frozenset(tags))

        if self.subcategory:
            if self.category == Category.UNSET:
                raise ValidationError(
                    ValidationErrorKind.SUBCATEGORY_WITHOUT_CATEGORY,
                    f"Subcategory {self.subcategory!r} requires a category",
                )
            if self.subcategory not in SUBCATEGORIES[self.category]:
                allowed = ", ".join(SUBCATEGORIES[self.category])
                raise ValidationError(
                    ValidationErrorKind.INVALID_SUBCATEGORY,
                    f"Subcategory {self.subcategory!r} is not valid for "
                    f"{self.category.value} (allowed: {allowed})",
                )

        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValidationError(
                ValidationErrorKind.INVERTED_DATE_RANGE,
                f"From date {self.date_from.isoformat()} is after "
                f"to date {self.date_to.isoformat()}",
            )

    @property
    def is_empty(self) -> bool:
        """True when no criterion is set (matches everything)."""
        return (
            self.category == Category.UNSET
            and not self.date_from
            and not self.date_to
            and not self.tags
        )


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def normalize(raw: Mapping[str, Any]) -> SearchFilter:
    """
    Normalize raw caller input into a SearchFilter.

    Accepted keys (the wire names are accepted as aliases):
    - category / major_head
    - subcategory / minor_head
    - date_from / from_date
    - date_to / to_date
    - tags: iterable of strings or ``{"tag_name": ...}`` objects

    Raises:
        ValidationError: if any criterion is invalid
    """
    category = parse_category(_first(raw, "category", "major_head"))
    subcategory = str(_first(raw, "subcategory", "minor_head") or "").strip()

    raw_tags = _first(raw, "tags") or ()
    if isinstance(raw_tags, str):
        raise ValidationError(
            ValidationErrorKind.INVALID_TAG,
            "tags must be a collection of strings, not a single string",
        )

    tags = TagSet()
    for item in raw_tags:
        if isinstance(item, Mapping):
            item = item.get("tag_name", "")
        if not isinstance(item, str):
            raise ValidationError(
                ValidationErrorKind.INVALID_TAG,
                f"Tag must be a string, got {type(item).__name__}",
            )
        tags.add(item)

    return SearchFilter(
        category=category,
        subcategory=subcategory,
        date_from=parse_date(_first(raw, "date_from", "from_date")),
        date_to=parse_date(_first(raw, "date_to", "to_date")),
        tags=tags.as_tuple(),
    )
