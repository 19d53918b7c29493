import pytest

from dicomsorter.dicom import FieldMap
from dicomsorter.sort.filename import (
    pad_instance_number,
    sanitize_series_description,
    sanitize_subject,
    series_title,
    synthesize_stem,
    truncate_series_time,
)


def test_example_stem(example_fields):
    assert (
        synthesize_stem(example_fields)
        == "Doe_John.20040730.105719.3.t1_se_tra.Echo_1.0007"
    )


def test_stem_is_deterministic(example_headers):
    first = synthesize_stem(FieldMap(example_headers))
    second = synthesize_stem(FieldMap(dict(example_headers)))
    assert first == second


@pytest.mark.parametrize(
    "value, expected",
    [
        ("7", "0007"),
        ("123", "0123"),
        ("1234", "1234"),
        ("12345", "12345"),
        ("0", "0000"),
        (" 42", "0042"),
        ("42abc", "0042"),
        ("-3", "-0003"),
        ("", "0000"),
        ("abc", "0000"),
    ],
)
def test_pad_instance_number(value, expected):
    assert pad_instance_number(value) == expected


def test_padded_instance_numbers_sort_numerically():
    padded = [pad_instance_number(str(n)) for n in range(1, 12)]
    assert sorted(padded) == padded


def test_stems_sort_in_acquisition_order(example_headers):
    stems = [
        synthesize_stem(FieldMap({**example_headers, "InstanceNumber": str(n)}))
        for n in (10, 2, 11, 1)
    ]
    assert [stem.rsplit(".", 1)[1] for stem in sorted(stems)] == [
        "0001",
        "0002",
        "0010",
        "0011",
    ]


@pytest.mark.parametrize(
    "value, expected",
    [
        ("105719.125000", "105719"),
        ("105719", "105719"),
        ("", ""),
        ("unknown", "unknown"),
    ],
)
def test_truncate_series_time(value, expected):
    assert truncate_series_time(value) == expected


def test_sanitize_series_description():
    assert sanitize_series_description("t1 se tra") == "t1_se_tra"
    assert sanitize_series_description("ep2d, bold & moco") == "ep2d_bold_moco"
    assert sanitize_series_description("fat/sat") == "fatsat"


def test_sanitize_subject():
    assert sanitize_subject("Doe^John") == "Doe_John"


def test_series_title(example_fields):
    assert series_title(example_fields) == "3.t1_se_tra"


def test_missing_fields_still_produce_a_stem():
    assert synthesize_stem(FieldMap()) == ".....Echo_.0000"


def test_stem_has_no_unsafe_characters(example_headers):
    headers = {
        **example_headers,
        "SeriesDate": "2004/07/30",
        "EchoNumbers": "1&2",
        "PatientName": "O'Brien^Pat",
    }
    stem = synthesize_stem(FieldMap(headers))
    assert not set("&<>'^/\\\"") & set(stem)
    assert stem.startswith("O_Brien_Pat.20040730.")
    assert ".Echo_12." in stem
