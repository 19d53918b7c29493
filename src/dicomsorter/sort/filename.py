"""
Filename synthesis.

A stem is built purely from a file's metadata:

    <PatientName>.<SeriesDate>.<SeriesTime>.<SeriesNumber>.<SeriesDescription>.Echo_<EchoNumbers>.<InstanceNumber>

e.g. `Doe_John.20040730.105719.3.t1_se_tra.Echo_1.0007`.

The instance number is zero-padded so an alphabetical listing of a series
follows acquisition order:

    image.0001.dcm                      image.1.dcm
    image.0002.dcm     instead of       image.10.dcm
    ...                                 image.11.dcm
    image.0010.dcm                      image.2.dcm

Uniqueness on disk is not handled here; see `dicomsorter.sort.collision`.
"""

from __future__ import annotations

import re

from dicomsorter.dicom.fieldmap import (
    ECHO_NUMBERS,
    INSTANCE_NUMBER,
    PATIENT_NAME,
    SERIES_DATE,
    SERIES_DESCRIPTION,
    SERIES_NUMBER,
    SERIES_TIME,
    FieldMap,
)
from dicomsorter.utils.sanitize import (
    collapse_whitespace,
    replace_unsafe,
    strip_unsafe,
)

INSTANCE_NUMBER_WIDTH = 4
_LEADING_DIGITS = re.compile(r"\d+")
_LEADING_INTEGER = re.compile(r"^\s*([+-]?\d+)")


def sanitize_subject(patient_name: str) -> str:
    """`Doe^John` -> `Doe_John`."""
    return replace_unsafe(patient_name)


def truncate_series_time(series_time: str) -> str:
    """Drop the fractional seconds of a DICOM TM value.

    >>> truncate_series_time("105719.125000")
    '105719'
    """
    if match := _LEADING_DIGITS.search(series_time):
        return match.group(0)
    return series_time


def sanitize_series_description(description: str) -> str:
    return collapse_whitespace(strip_unsafe(description, include_comma=True))


def series_title(fields: FieldMap) -> str:
    """`<SeriesNumber>.<SeriesDescription>`, also used as a directory name."""
    description = sanitize_series_description(fields.value(SERIES_DESCRIPTION))
    return f"{fields.value(SERIES_NUMBER)}.{description}"


def pad_instance_number(instance_number: str) -> str:
    """
    Zero-pad the leading integer of `instance_number` to four digits.

    Longer numbers are kept whole. Values without a leading integer pad
    to `0000` rather than failing.

    >>> pad_instance_number("7")
    '0007'
    >>> pad_instance_number("12345")
    '12345'
    >>> pad_instance_number("")
    '0000'
    """
    match = _LEADING_INTEGER.match(instance_number)
    number = int(match.group(1)) if match else 0
    sign = "-" if number < 0 else ""
    return f"{sign}{abs(number):0{INSTANCE_NUMBER_WIDTH}d}"


def synthesize_stem(fields: FieldMap) -> str:
    """Build the filename stem (no extension) for one file."""
    parts = [
        sanitize_subject(fields.value(PATIENT_NAME)),
        fields.value(SERIES_DATE),
        truncate_series_time(fields.value(SERIES_TIME)),
        series_title(fields),
        f"Echo_{fields.value(ECHO_NUMBERS)}",
        pad_instance_number(fields.value(INSTANCE_NUMBER)),
    ]
    # catches anything unsafe left in the unsanitized date and echo fields
    return strip_unsafe(".".join(parts))
