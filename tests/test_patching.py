"""Tests for applying diffs to file content."""

import pytest

from convospace.code.patching import apply_diff, parse_hunks
from convospace.exceptions import PatchError


class TestParseHunks:
    def test_headers_are_skipped(self):
        diff = "--- a/x.py\n+++ b/x.py\n@@ -1,2 +1,2 @@\n a\n-b\n+c"

        hunks = parse_hunks(diff)

        assert len(hunks) == 1
        assert hunks[0].old_start == 1
        assert hunks[0].old_count == 2
        assert hunks[0].old_lines == ["a", "b"]
        assert hunks[0].new_lines == ["a", "c"]

    def test_garbage_before_first_hunk_raises(self):
        with pytest.raises(PatchError):
            parse_hunks("not a diff\n@@ -1 +1 @@\n-a\n+b")


class TestApplyDiff:
    """Tests for apply_diff."""

    def test_replaces_line(self):
        content = "line1\nline2\nline3\n"
        diff = "@@ -1,3 +1,3 @@\n line1\n-line2\n+LINE2\n line3"

        assert apply_diff(content, diff) == "line1\nLINE2\nline3\n"

    def test_keeps_missing_trailing_newline(self):
        assert apply_diff("a\nb", "@@ -2 +2 @@\n-b\n+c") == "a\nc"

    def test_new_file_from_empty_content(self):
        diff = "@@ -0,0 +1,2 @@\n+hello\n+world"

        assert apply_diff("", diff) == "hello\nworld\n"

    def test_zero_context_insertion(self):
        assert apply_diff("a\nb\nc\n", "@@ -2,0 +3 @@\n+X") == "a\nb\nX\nc\n"

    def test_zero_context_insertion_after_earlier_hunk(self):
        content = "a\nb\nc\nd\n"
        diff = "@@ -1 +1,2 @@\n-a\n+a1\n+a2\n@@ -3,0 +5 @@\n+X"

        assert apply_diff(content, diff) == "a1\na2\nb\nc\nX\nd\n"

    def test_pure_addition_without_hunk_appends(self):
        assert apply_diff("a\n", "+b\n+c") == "a\nb\nc\n"

    def test_drifted_hunk_is_found_near_expected_line(self):
        content = "header\nextra\nfoo\nbar\n"
        diff = "@@ -2,2 +2,2 @@\n foo\n-bar\n+baz"

        assert apply_diff(content, diff) == "header\nextra\nfoo\nbaz\n"

    def test_multiple_hunks_track_offset(self):
        content = "a\nb\nc\nd\ne\n"
        diff = "@@ -1,1 +1,2 @@\n-a\n+a1\n+a2\n@@ -4,1 +5,1 @@\n-d\n+D"

        assert apply_diff(content, diff) == "a1\na2\nb\nc\nD\ne\n"

    def test_mismatched_hunk_raises(self):
        with pytest.raises(PatchError):
            apply_diff("a\nb\n", "@@ -1 +1 @@\n-zzz\n+y")

    def test_empty_diff_raises(self):
        with pytest.raises(PatchError):
            apply_diff("a\n", "   ")

    def test_mixed_lines_without_hunk_raise(self):
        with pytest.raises(PatchError):
            apply_diff("a\n", "-a\n+b")
