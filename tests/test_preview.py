"""Tests for preview classification."""

import pytest

from docbundle.preview import (
    UNSUPPORTED_MESSAGE,
    PreviewKind,
    classify,
    file_suffix,
    preview_message,
)
from docbundle.schemas import DocumentRecord


class TestClassify:
    """Tests for classify()."""

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("a.PNG", PreviewKind.IMAGE),
            ("a.jpg", PreviewKind.IMAGE),
            ("a.JPEG", PreviewKind.IMAGE),
            ("a.gif", PreviewKind.IMAGE),
            ("a.pdf", PreviewKind.DOCUMENT_VIEWER),
            ("a", PreviewKind.UNSUPPORTED),
            ("a.docx", PreviewKind.UNSUPPORTED),
            ("", PreviewKind.UNSUPPORTED),
        ],
    )
    def test_suffixes(self, path, expected):
        assert classify(path) == expected

    def test_uses_last_suffix(self):
        assert classify("archive.pdf.zip") == PreviewKind.UNSUPPORTED
        assert classify("photo.backup.png") == PreviewKind.IMAGE

    def test_url_query_ignored(self):
        assert classify("https://files.test/x/scan.PDF?sig=abc.123") == PreviewKind.DOCUMENT_VIEWER

    def test_dot_in_directory_only(self):
        assert classify("https://files.test/v1.2/readme") == PreviewKind.UNSUPPORTED

    def test_accepts_record(self):
        record = DocumentRecord(id="1", remote_path="https://files.test/a/photo.jpeg")
        assert classify(record) == PreviewKind.IMAGE

    def test_deterministic(self):
        assert all(classify("a.PNG") == PreviewKind.IMAGE for _ in range(5))


class TestPreviewMessage:
    """Tests for the refusal message."""

    def test_unsupported_has_message(self):
        assert preview_message(PreviewKind.UNSUPPORTED) == UNSUPPORTED_MESSAGE

    def test_supported_kinds_have_none(self):
        assert preview_message(PreviewKind.IMAGE) is None
        assert preview_message(PreviewKind.DOCUMENT_VIEWER) is None

    def test_file_suffix(self):
        assert file_suffix("a.Tar.GZ") == "gz"
        assert file_suffix("noext") == ""
