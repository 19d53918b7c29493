from pathlib import Path
from typing import Callable, Dict, Mapping

import pytest

from dicomsorter.dicom import FieldMap

EXAMPLE_HEADERS: Dict[str, str] = {
    "PatientName": "Doe^John",
    "StudyDescription": "ACHTMAN^FMRI",
    "SeriesDate": "20040730",
    "SeriesTime": "105719.125000",
    "SeriesDescription": "t1 se tra",
    "SeriesNumber": "3",
    "InstanceNumber": "7",
    "EchoNumbers": "1",
    "StationName": "MRC25238",
    "InstitutionName": "Research Imaging Center",
}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unittests: fast tests without external tools")


def dump_lines(headers: Mapping[str, str]) -> str:
    """Render headers the way dcmdump prints them."""
    lines = ["", "# Dicom-Data-Set", "# Used TransferSyntax: Little Endian Explicit"]
    for keyword, value in headers.items():
        lines.append(
            f"(0000,0000) LO [{value}]{' ' * 8}#  {len(value):>2}, 1 {keyword}"
        )
    return "\n".join(lines) + "\n"


@pytest.fixture
def example_headers() -> Dict[str, str]:
    return dict(EXAMPLE_HEADERS)


@pytest.fixture
def example_fields(example_headers) -> FieldMap:
    return FieldMap(example_headers)


@pytest.fixture
def write_dump() -> Callable[..., Path]:
    """Write a file whose content is dcmdump output for `headers`.

    The integration tests use a shell stand-in for dcmdump that simply
    prints the file, so these files double as fake DICOM files.
    """

    def _write(path: Path, **headers: str) -> Path:
        merged = {**EXAMPLE_HEADERS, **headers}
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dump_lines(merged))
        return path

    return _write
