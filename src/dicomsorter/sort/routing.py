"""
Destination directory resolution.

The relative part of the destination comes from the metadata:

    <region>/<exam>/<PatientName>/<SeriesDate>/<SeriesNumber>.<SeriesDescription>

On Siemens systems StudyDescription is the Syngo `Region` and `Exam` joined
by `^` (e.g. `ACHTMAN^FMRI`), so it is split back apart.

The root it is placed under is chosen by the first matching rule:

1. a device override (scanners that identify themselves through
   StationName or InstitutionName and always go to a fixed archive),
2. the permission mapping entry for the region,
3. the fallback root, owned by the fallback account.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, List, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dicomsorter.dicom.fieldmap import (
    INSTITUTION_NAME,
    PATIENT_NAME,
    SERIES_DATE,
    STATION_NAME,
    STUDY_DESCRIPTION,
    FieldMap,
)
from dicomsorter.loggers import logger
from dicomsorter.sort.filename import sanitize_subject, series_title
from dicomsorter.sort.policy import PolicyTable
from dicomsorter.utils.sanitize import sanitize_component

if TYPE_CHECKING:
    from dicomsorter.config import DicomSorterSettings

STATION_PLACEHOLDER = "{station}"
FALLBACK_RULE = "fallback"


class DeviceOverride(BaseModel):
    """
    Routing rule for a known source device that bypasses the permission mapping.

    Attributes
    ----------
    name : str
        Label used in logs.
    keyword : str
        FieldMap keyword inspected, e.g. `StationName`.
    patterns : List[str]
        Regular expressions searched for in the keyword's value.
    root : str
        Archive root. `{station}` is replaced with the sanitized StationName.
    owner, group : str
        Account the placed files belong to.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    keyword: str = Field(examples=["StationName", "InstitutionName"])
    patterns: List[str] = Field(min_length=1)
    root: str = Field(examples=["/zhongData/GE3T", "/zhongData/{station}"])
    owner: str
    group: str

    @field_validator("patterns")
    @classmethod
    def validate_patterns(cls, patterns: List[str]) -> List[str]:
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                msg = f"Invalid device override pattern {pattern!r}: {e}"
                raise ValueError(msg) from e
        return patterns

    def matches(self, fields: FieldMap) -> bool:
        value = fields.value(self.keyword)
        return any(re.search(pattern, value) for pattern in self.patterns)

    def resolve_root(self, fields: FieldMap) -> Path:
        station = sanitize_component(fields.value(STATION_NAME))
        return Path(self.root.replace(STATION_PLACEHOLDER, station))


DEFAULT_DEVICE_OVERRIDES: Tuple[DeviceOverride, ...] = (
    # Medical Center GE 3T
    DeviceOverride(
        name="medcenter-3t",
        keyword=STATION_NAME,
        patterns=["UISPMR3T"],
        root="/zhongData/GE3T",
        owner="mtivarus",
        group="zhonggroup",
    ),
    # any other Medical Center scanner, archived per station
    DeviceOverride(
        name="medcenter",
        keyword=INSTITUTION_NAME,
        patterns=["UISP", "URMC"],
        root="/zhongData/{station}",
        owner="zhong",
        group="zhonggroup",
    ),
)


@dataclass(frozen=True)
class Route:
    """Where a file goes and who should own it, before collision checks."""

    region: str
    exam: str
    relative_path: Path
    root: Path
    owner: str
    group: str
    rule: str

    @property
    def directory(self) -> Path:
        return self.root / self.relative_path


def split_study_description(description: str) -> Tuple[str, str]:
    """
    Split StudyDescription into sanitized `(region, exam)`.

    Splits at the first `^`. When there is no `^`, or one side is empty,
    the whole sanitized description stands in for the missing part.

    >>> split_study_description("ACHTMAN^FMRI")
    ('ACHTMAN', 'FMRI')
    >>> split_study_description("NoCaret")
    ('NoCaret', 'NoCaret')
    """
    full = sanitize_component(description)
    region, caret, exam = description.partition("^")
    if not caret:
        return full, full
    return sanitize_component(region) or full, sanitize_component(exam) or full


def _path_component(value: str) -> str:
    # `.` and `..` would escape the archive root
    if value and set(value) == {"."}:
        return "_" * len(value)
    return value


def relative_destination(fields: FieldMap, region: str, exam: str) -> Path:
    parts = [
        region,
        exam,
        sanitize_subject(fields.value(PATIENT_NAME)),
        sanitize_component(fields.value(SERIES_DATE)),
        series_title(fields),
    ]
    return Path(*(_path_component(part) for part in parts))


class PathResolver:
    """
    Resolve a FieldMap to a :class:`Route`.

    Parameters
    ----------
    policy_table : PolicyTable
        Region -> owner/group/base path mapping.
    overrides : Sequence[DeviceOverride]
        Device rules, checked in order before the policy table.
    fallback_owner, fallback_group : str
        Account used for regions missing from the policy table.
    fallback_root : Path
        Root used for regions missing from the policy table.
    """

    def __init__(
        self,
        policy_table: PolicyTable,
        overrides: Sequence[DeviceOverride] = DEFAULT_DEVICE_OVERRIDES,
        fallback_owner: str = "admin",
        fallback_group: str = "admin",
        fallback_root: Path = Path("/"),
    ) -> None:
        self.policy_table = policy_table
        self.overrides = tuple(overrides)
        self.fallback_owner = fallback_owner
        self.fallback_group = fallback_group
        self.fallback_root = fallback_root

    @classmethod
    def from_settings(
        cls, settings: DicomSorterSettings, policy_table: PolicyTable
    ) -> PathResolver:
        return cls(
            policy_table,
            overrides=settings.device_overrides,
            fallback_owner=settings.fallback_owner,
            fallback_group=settings.fallback_group,
            fallback_root=settings.fallback_root,
        )

    def resolve(self, fields: FieldMap) -> Route:
        region, exam = split_study_description(fields.value(STUDY_DESCRIPTION))
        relative_path = relative_destination(fields, region, exam)

        for override in self.overrides:
            if override.matches(fields):
                return Route(
                    region=region,
                    exam=exam,
                    relative_path=relative_path,
                    root=override.resolve_root(fields),
                    owner=override.owner,
                    group=override.group,
                    rule=override.name,
                )

        if entry := self.policy_table.get(region):
            return Route(
                region=region,
                exam=exam,
                relative_path=relative_path,
                root=entry.base_path,
                owner=entry.owner,
                group=entry.group,
                rule=f"policy:{entry.category}",
            )

        logger.info(
            "No permission mapping for region, using fallback account",
            region=region,
            owner=self.fallback_owner,
            group=self.fallback_group,
        )
        return Route(
            region=region,
            exam=exam,
            relative_path=relative_path,
            root=self.fallback_root,
            owner=self.fallback_owner,
            group=self.fallback_group,
            rule=FALLBACK_RULE,
        )
