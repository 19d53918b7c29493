from .dcmdump import DcmdumpSource, MetadataSource, parse_dump_lines
from .fieldmap import FieldMap

__all__ = [
    "DcmdumpSource",
    "FieldMap",
    "MetadataSource",
    "parse_dump_lines",
]
