import pytest

from dicomsorter.utils import (
    collapse_whitespace,
    replace_unsafe,
    sanitize_component,
    strip_unsafe,
)


class TestReplaceUnsafe:
    """Test suite for replace_unsafe, used for subject names."""

    def test_caret_and_spaces(self):
        assert replace_unsafe("Doe^John") == "Doe_John"
        assert replace_unsafe("Doe^John Q") == "Doe_John_Q"

    def test_runs_collapse_to_one_underscore(self):
        assert replace_unsafe("Doe ^ John") == "Doe_John"
        assert replace_unsafe("a,,  &b") == "a_b"
        assert replace_unsafe("x/y\\z") == "x_y_z"

    def test_safe_value_unchanged(self):
        assert replace_unsafe("Phantom-01") == "Phantom-01"
        assert replace_unsafe("") == ""


class TestStripUnsafe:
    def test_deletes_unsafe_characters(self):
        assert strip_unsafe("t1 & t2") == "t1  t2"
        assert strip_unsafe("<a>'b'\"c\"") == "abc"
        assert strip_unsafe("fat/sat") == "fatsat"

    def test_comma_only_when_requested(self):
        assert strip_unsafe("a,b") == "a,b"
        assert strip_unsafe("a,b", include_comma=True) == "ab"


def test_collapse_whitespace():
    assert collapse_whitespace("t1 se  tra") == "t1_se_tra"
    assert collapse_whitespace("a\tb\nc") == "a_b_c"


def test_sanitize_component():
    assert sanitize_component("HEAD CP") == "HEAD_CP"
    assert sanitize_component("CT ABD & PELVIS") == "CT_ABD_PELVIS"


@pytest.mark.parametrize(
    "value",
    ["Doe^John", "t1 se tra", "a & b,, c", "  padded  ", "x/y\\z'\"", ""],
)
@pytest.mark.parametrize(
    "func",
    [
        replace_unsafe,
        strip_unsafe,
        collapse_whitespace,
        sanitize_component,
    ],
)
def test_idempotent(func, value):
    once = func(value)
    assert func(once) == once


class TestControlCharacters:
    """Header values may carry NUL or other C0 controls, which no path may contain."""

    def test_strip_removes_controls(self):
        assert strip_unsafe("ACH\x00TMAN") == "ACHTMAN"
        assert strip_unsafe("a\x1bb\x7fc", include_comma=True) == "abc"

    def test_replace_treats_controls_as_unsafe(self):
        assert replace_unsafe("Doe\x00^John") == "Doe_John"

    def test_sanitize_component_keeps_whitespace_handling(self):
        assert sanitize_component("t1\x00 se\ttra") == "t1_se_tra"
