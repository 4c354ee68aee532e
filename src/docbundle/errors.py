"""
Base exception for docbundle.

Every error raised by the library carries a closed ``kind`` enum and a
human-readable ``detail`` so callers can branch on the kind instead of
parsing messages.
"""

from enum import Enum


class DocbundleError(Exception):
    """Base exception for all docbundle errors."""

    def __init__(self, kind: Enum, detail: str):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}")
