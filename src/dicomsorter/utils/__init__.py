from .sanitize import (
    collapse_whitespace,
    replace_unsafe,
    sanitize_component,
    strip_unsafe,
)

__all__ = [
    "collapse_whitespace",
    "replace_unsafe",
    "sanitize_component",
    "strip_unsafe",
]
