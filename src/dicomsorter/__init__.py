__version__ = "1.0.0"

from .dicom import DcmdumpSource, FieldMap, parse_dump_lines
from .loggers import logger
from .sort import (
    PathResolver,
    PolicyTable,
    resolve_collision,
    synthesize_stem,
)

__all__ = [
    "DcmdumpSource",
    "FieldMap",
    "parse_dump_lines",
    "logger",
    "PathResolver",
    "PolicyTable",
    "resolve_collision",
    "synthesize_stem",
]
