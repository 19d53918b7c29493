# ruff: noqa: I001
"""
Renaming and relocating DICOM files by their header metadata.

Every file of a study gets a new name and a new directory, both derived
from its DICOM header.

Extended Summary
----------------
File name (`filename`):

```
<PatientName>.<SeriesDate>.<SeriesTime>.<SeriesNumber>.<SeriesDescription>.Echo_<EchoNumbers>.<InstanceNumber>.dcm
```

Directory (`routing`):

```
<root>/<Region>/<Exam>/<PatientName>/<SeriesDate>/<SeriesNumber>.<SeriesDescription>/
```

where `Region^Exam` is the StudyDescription and `<root>` comes from a
device override or the permission mapping (`policy`).

Notes
-----
1. Names are a pure function of the header; the same file always gets the
   same name.
2. When a name is taken, content decides: an identical file is replaced, a
   different one gets a `NonDupe<N>` suffix (`collision`).
3. New directories are 0o770 and files 0o660, owned by the account of the
   rule that routed them (`placement`).

Examples
--------
Header values:

```
PatientName        Doe^John
StudyDescription   ACHTMAN^FMRI
SeriesDate         20040730
SeriesTime         105719.125000
SeriesNumber       3
SeriesDescription  t1 se tra
EchoNumbers        1
InstanceNumber     7
```

with `ACHTMAN achtman achtlab /data/achtman` in the permission mapping,
end up as:

```
/data/achtman/ACHTMAN/FMRI/Doe_John/20040730/3.t1_se_tra/
    Doe_John.20040730.105719.3.t1_se_tra.Echo_1.0007.dcm
```

The driver tying these together lives in
`dicomsorter.sort.study_sorter`.
"""

from dicomsorter.sort.filename import (
    pad_instance_number,
    sanitize_series_description,
    sanitize_subject,
    series_title,
    synthesize_stem,
    truncate_series_time,
)
from dicomsorter.sort.policy import PolicyEntry, PolicyTable
from dicomsorter.sort.routing import (
    DEFAULT_DEVICE_OVERRIDES,
    DeviceOverride,
    PathResolver,
    Route,
    split_study_description,
)
from dicomsorter.sort.collision import (
    CollisionResult,
    file_digest,
    resolve_collision,
)
from dicomsorter.sort.placement import (
    FileAction,
    Ownership,
    OwnershipResolver,
    PlacementDecision,
    PlacementExecutor,
)

__all__ = [
    "pad_instance_number",
    "sanitize_series_description",
    "sanitize_subject",
    "series_title",
    "synthesize_stem",
    "truncate_series_time",
    "PolicyEntry",
    "PolicyTable",
    "DEFAULT_DEVICE_OVERRIDES",
    "DeviceOverride",
    "PathResolver",
    "Route",
    "split_study_description",
    "CollisionResult",
    "file_digest",
    "resolve_collision",
    "FileAction",
    "Ownership",
    "OwnershipResolver",
    "PlacementDecision",
    "PlacementExecutor",
]
