"""Tests for notesync.pathguard — path validation before any request."""

import pytest

from notesync.errors import PathError
from notesync.pathguard import clean_file, clean_path, is_markdown, join, name_of, parent_of


# ════════════════════════════════════════════════════════════════════════════════
# clean_path
# ════════════════════════════════════════════════════════════════════════════════


class TestCleanPath:
    # ── happy path ───────────────────────────────────────────────────────

    def test_plain_path_unchanged(self):
        assert clean_path("00_Inbox/hello.md") == "00_Inbox/hello.md"

    def test_surrounding_and_doubled_slashes(self):
        assert clean_path("/Notes//2026/a.md/") == "Notes/2026/a.md"

    def test_root_forms(self):
        assert clean_path("") == ""
        assert clean_path("/") == ""
        assert clean_path("  ") == ""

    def test_unicode_segments_allowed(self):
        assert clean_path("日记/今天.md") == "日记/今天.md"

    def test_dotfile_names_allowed(self):
        assert clean_path("Ideas/.keep") == "Ideas/.keep"

    # ── 400 – malformed paths ────────────────────────────────────────────

    def test_dotdot_traversal(self):
        with pytest.raises(PathError):
            clean_path("00_Inbox/../../etc/passwd.md")

    def test_single_dot_segment(self):
        with pytest.raises(PathError):
            clean_path("./a.md")

    def test_null_byte(self):
        with pytest.raises(PathError):
            clean_path("00_Inbox/hello\x00.md")

    def test_backslash(self):
        with pytest.raises(PathError):
            clean_path("00_Inbox\\hello.md")

    def test_error_carries_status_and_path(self):
        with pytest.raises(PathError) as info:
            clean_path("../x")
        assert info.value.status_code == 400
        assert info.value.path == "../x"


class TestCleanFile:
    def test_root_rejected(self):
        with pytest.raises(PathError):
            clean_file("/")

    def test_file_accepted(self):
        assert clean_file("/a.md") == "a.md"


# ════════════════════════════════════════════════════════════════════════════════
# helpers
# ════════════════════════════════════════════════════════════════════════════════


class TestHelpers:
    def test_join(self):
        assert join("Daily", "2026-03-14.md") == "Daily/2026-03-14.md"
        assert join("", "top.md") == "top.md"

    def test_parent_and_name(self):
        assert parent_of("a/b/c.md") == "a/b"
        assert parent_of("c.md") == ""
        assert name_of("a/b/c.md") == "c.md"

    @pytest.mark.parametrize("name, expected", [
        ("a.md", True), ("A.MD", True), ("a.markdown", False), ("md", False), ("a.png", False),
    ])
    def test_is_markdown(self, name, expected):
        assert is_markdown(name) is expected
