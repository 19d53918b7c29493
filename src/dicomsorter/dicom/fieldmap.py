"""Read-only mapping of DICOM attribute keywords to the values dcmdump printed."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Tuple

PATIENT_NAME = "PatientName"
STUDY_DESCRIPTION = "StudyDescription"
SERIES_DESCRIPTION = "SeriesDescription"
SERIES_NUMBER = "SeriesNumber"
SERIES_DATE = "SeriesDate"
SERIES_TIME = "SeriesTime"
INSTANCE_NUMBER = "InstanceNumber"
ECHO_NUMBERS = "EchoNumbers"
STATION_NAME = "StationName"
INSTITUTION_NAME = "InstitutionName"

# DCMTK before 3.6.0 used the pre-2008 keywords
KEYWORD_ALIASES: Dict[str, Tuple[str, ...]] = {
    PATIENT_NAME: ("PatientsName",),
}


class FieldMap(Mapping[str, str]):
    """
    Immutable keyword -> value mapping for one DICOM file.

    Absent keywords are normal input (not every scanner writes every
    attribute), so :meth:`value` returns an empty string for them instead
    of raising.

    Examples
    --------
    >>> fields = FieldMap({"PatientName": "Doe^John"})
    >>> fields.value("PatientName")
    'Doe^John'
    >>> fields.value("EchoNumbers")
    ''
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, str] | None = None) -> None:
        self._data = MappingProxyType(dict(data or {}))

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({dict(self._data)!r})"

    def value(self, keyword: str) -> str:
        """Return the value for `keyword`, its legacy alias, or ''."""
        if keyword in self._data:
            return self._data[keyword]
        for alias in KEYWORD_ALIASES.get(keyword, ()):
            if alias in self._data:
                return self._data[alias]
        return ""
