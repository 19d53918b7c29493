"""
Functions
---------
replace_unsafe(value: str) -> str
    Replace runs of whitespace and unsafe characters with one underscore.
strip_unsafe(value: str, include_comma: bool = False) -> str
    Delete unsafe and control characters.
collapse_whitespace(value: str) -> str
    Replace runs of whitespace with one underscore.
sanitize_component(value: str) -> str
    Strip unsafe characters, then collapse whitespace.

Every field value that ends up in a directory or file name goes through one
of these first. All of them are idempotent.

Examples
--------
>>> replace_unsafe("Doe^John")
'Doe_John'
>>> sanitize_component("HEAD CP")
'HEAD_CP'
>>> strip_unsafe("t1 & t2, fat/sat", include_comma=True)
't1  t2 fatsat'
"""

import re

# Characters unsafe in a single path component or awkward in shells.
UNSAFE_CHARS = "&<>'^/\\\""
# C0 controls other than whitespace, and DEL; path calls reject NUL outright
CONTROL_CHARS = r"\x00-\x08\x0e-\x1f\x7f"
UNSAFE_CHARS_PATTERN = re.compile(f"[{re.escape(UNSAFE_CHARS)}{CONTROL_CHARS}]")
UNSAFE_OR_COMMA_PATTERN = re.compile(f"[{re.escape(UNSAFE_CHARS)}{CONTROL_CHARS},]")
UNSAFE_RUN_PATTERN = re.compile(f"(?:\\s|[{re.escape(UNSAFE_CHARS)}{CONTROL_CHARS},])+")
WHITESPACE_PATTERN = re.compile(r"\s+")


def replace_unsafe(value: str) -> str:
    """Replace each run of whitespace or unsafe characters (comma included)
    with a single underscore."""
    return UNSAFE_RUN_PATTERN.sub("_", value)


def strip_unsafe(value: str, include_comma: bool = False) -> str:
    """Delete unsafe and control characters, optionally commas as well."""
    pattern = UNSAFE_OR_COMMA_PATTERN if include_comma else UNSAFE_CHARS_PATTERN
    return pattern.sub("", value)


def collapse_whitespace(value: str) -> str:
    return WHITESPACE_PATTERN.sub("_", value)


def sanitize_component(value: str) -> str:
    """Make a field value safe to use as one directory name."""
    return collapse_whitespace(strip_unsafe(value))
