"""
Metadata extraction through the DCMTK `dcmdump` utility.

dcmdump prints one attribute per line:

    (0010,0010) PN [Doe^John]                               #   8, 1 PatientName
    (0018,1030) LO [t1_se_tra_concat_2]                     #  18, 1 ProtocolName
    (0008,0021) DA [20040730]                               #   8, 1 SeriesDate
    (0008,0031) TM [105719.125000]                          #  14, 1 SeriesTime
                    ^^^^^^^^^^^^^                                    ^^^^^^^^^^
                    value                                            keyword

Lines that do not look like this (sequence delimiters, empty values printed
as `(no value available)`, headers) are skipped.
"""

from __future__ import annotations

import os
import re
import subprocess  # nosec B404 - dcmdump has to be run as a subprocess
from pathlib import Path
from typing import Dict, Iterable, Pattern, Protocol

from dicomsorter.dicom.fieldmap import FieldMap
from dicomsorter.exceptions import (
    DumpToolNotFoundError,
    MetadataExtractionError,
)
from dicomsorter.loggers import logger

DUMP_LINE_PATTERN: Pattern = re.compile(r"\[(.*)\]\s+#\s+\d+,\s+\d+\s+(\w+)")


def parse_dump_lines(lines: Iterable[str]) -> FieldMap:
    """
    Build a FieldMap from dcmdump output.

    Parameters
    ----------
    lines : Iterable[str]
        Lines of dcmdump standard output.

    Returns
    -------
    FieldMap
        Keyword to value mapping. A keyword printed more than once keeps
        its last value.

    Examples
    --------
    >>> fields = parse_dump_lines(
    ...     ["(0008,0021) DA [20040730]    #   8, 1 SeriesDate"]
    ... )
    >>> fields["SeriesDate"]
    '20040730'
    """
    headers: Dict[str, str] = {}
    for line in lines:
        if match := DUMP_LINE_PATTERN.search(line):
            value, keyword = match.groups()
            headers[keyword] = value
    return FieldMap(headers)


class MetadataSource(Protocol):
    """Anything that can turn a DICOM file into a FieldMap."""

    def extract(self, path: Path) -> FieldMap: ...


class DcmdumpSource:
    """
    MetadataSource backed by the `dcmdump` executable.

    Parameters
    ----------
    executable : Path
        Path to dcmdump.

    Raises
    ------
    DumpToolNotFoundError
        If `executable` does not exist or is not executable.
    """

    def __init__(self, executable: Path) -> None:
        if not (executable.is_file() and os.access(executable, os.X_OK)):
            raise DumpToolNotFoundError(executable)
        self.executable = executable

    def extract(self, path: Path) -> FieldMap:
        """Run dcmdump on `path` and parse its output.

        Raises
        ------
        MetadataExtractionError
            If dcmdump exits with a non-zero status or cannot be started.
        """
        try:
            result = subprocess.run(  # nosec B603 - executable is validated
                [str(self.executable), str(path)],
                capture_output=True,
                text=True,
                errors="replace",
                check=True,
            )
        except subprocess.CalledProcessError as e:
            raise MetadataExtractionError(
                path, returncode=e.returncode, stderr=e.stderr
            ) from e
        except OSError as e:
            raise MetadataExtractionError(path, stderr=str(e)) from e

        fields = parse_dump_lines(result.stdout.splitlines())
        logger.debug("Extracted metadata", file=path, fields=len(fields))
        return fields
