"""Unit tests for Drive content helpers."""

import pytest

from gdrive_mcp.server.content import (
    TRUNCATION_MARKER,
    binary_placeholder,
    export_mime_type,
    format_file_size,
    is_google_apps_file,
    is_text_mime_type,
    truncate_base64_content,
)

PAYLOAD = "iVBORw0KGgo" + "A" * 120


@pytest.mark.unit
class TestExportMimeType:
    """Tests for export format selection."""

    @pytest.mark.parametrize(
        ("mime_type", "expected"),
        [
            ("application/vnd.google-apps.document", "text/markdown"),
            ("application/vnd.google-apps.spreadsheet", "text/csv"),
            ("application/vnd.google-apps.presentation", "text/plain"),
            ("application/vnd.google-apps.drawing", "image/png"),
            ("application/vnd.google-apps.form", "text/plain"),
        ],
    )
    def test_should_map_workspace_types(self, mime_type: str, expected: str) -> None:
        """Verify each Google Workspace type exports to its format."""
        assert export_mime_type(mime_type) == expected

    def test_should_detect_google_apps_files(self) -> None:
        """Verify the Google Apps prefix check."""
        assert is_google_apps_file("application/vnd.google-apps.document") is True
        assert is_google_apps_file("application/pdf") is False
        assert is_google_apps_file(None) is False

    @pytest.mark.parametrize(
        ("mime_type", "expected"),
        [
            ("text/plain", True),
            ("text/csv", True),
            ("application/json", True),
            ("image/png", False),
            ("application/pdf", False),
        ],
    )
    def test_should_classify_text_types(self, mime_type: str, expected: bool) -> None:
        """Verify which content is returned as text."""
        assert is_text_mime_type(mime_type) is expected


@pytest.mark.unit
class TestTruncateBase64Content:
    """Tests for truncate_base64_content()."""

    def test_should_leave_plain_text_alone(self) -> None:
        """Verify text without base64 is unchanged."""
        text = "# Title\n\nJust some notes."

        assert truncate_base64_content(text) == text

    def test_should_return_empty_text_unchanged(self) -> None:
        """Verify empty content passes through."""
        assert truncate_base64_content("") == ""

    def test_should_truncate_markdown_reference_image(self) -> None:
        """Verify reference-style image definitions keep their label."""
        text = f"[image1]: <data:image/png;base64,{PAYLOAD}>"

        result = truncate_base64_content(text)

        assert result == f"[image1]: <data:image/png;base64,{TRUNCATION_MARKER}>"

    def test_should_truncate_img_tag(self) -> None:
        """Verify HTML img tags keep their markup."""
        text = f'<img alt="x" src="data:image/jpeg;base64,{PAYLOAD}">'

        result = truncate_base64_content(text)

        assert PAYLOAD not in result
        assert result.startswith('<img alt="x" src="data:image/jpeg;base64,')
        assert TRUNCATION_MARKER in result

    def test_should_truncate_bare_data_uri(self) -> None:
        """Verify bare data URIs keep a short prefix."""
        text = f"before data:image/gif;base64,{PAYLOAD} after"

        result = truncate_base64_content(text)

        assert PAYLOAD not in result
        assert result.startswith("before data:image/gif")
        assert result.endswith(f"{TRUNCATION_MARKER} after")

    def test_should_ignore_short_base64(self) -> None:
        """Verify short payloads are not considered embedded data."""
        text = "data:image/png;base64,abc="

        assert truncate_base64_content(text) == text


@pytest.mark.unit
class TestFileSize:
    """Tests for size formatting."""

    @pytest.mark.parametrize(
        ("size", "expected"),
        [
            (0, "0 bytes"),
            (512, "512 bytes"),
            (1536, "1.5 KB"),
            (5 * 1024 * 1024, "5.0 MB"),
            (3 * 1024 * 1024 * 1024, "3.0 GB"),
        ],
    )
    def test_should_format_sizes(self, size: int, expected: str) -> None:
        """Verify human-readable units."""
        assert format_file_size(size) == expected

    def test_should_describe_binary_payload(self) -> None:
        """Verify binary content becomes a placeholder."""
        assert binary_placeholder(2048) == "[BINARY_DATA_TRUNCATED - 2.0 KB]"
