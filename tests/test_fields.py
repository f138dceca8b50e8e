"""Tests for xray_stl/fields.py."""

import pytest

from xray_stl.fields import (
    HEADER_SIZE,
    METADATA_FIELDS,
    FieldDescriptor,
    FieldFormat,
    format_value,
    read_field,
    read_metadata,
)


def _header_with(offset: int, raw: bytes) -> bytes:
    """Zero-filled header with *raw* written at *offset*."""
    header = bytearray(HEADER_SIZE)
    header[offset : offset + len(raw)] = raw
    return bytes(header)


def _field(field_id: str) -> FieldDescriptor:
    return next(f for f in METADATA_FIELDS if f.id == field_id)


class TestCatalog:
    def test_thirteen_fields_in_declaration_order(self):
        assert [f.id for f in METADATA_FIELDS] == [
            "TubeConfig", "Institution", "Unknown1", "PatientName", "CareType",
            "PatientAddress", "BirthDate", "ExposureDate", "Projection",
            "Radiologist", "Sex", "FileID", "Date",
        ]

    def test_offsets_and_lengths(self):
        spans = {f.id: (f.offset, f.offset + f.max_length) for f in METADATA_FIELDS}
        assert spans["TubeConfig"] == (14, 40)
        assert spans["Institution"] == (44, 94)
        assert spans["Unknown1"] == (94, 114)
        assert spans["PatientName"] == (114, 194)
        assert spans["PatientAddress"] == (214, 264)
        assert spans["BirthDate"] == (264, 272)
        assert spans["Sex"] == (350, 483)
        assert spans["FileID"] == (483, 513)
        assert spans["Date"] == (513, 521)

    def test_date_fields_are_ascii(self):
        dates = [f for f in METADATA_FIELDS if f.format is FieldFormat.DATE]
        assert [f.id for f in dates] == ["BirthDate", "ExposureDate", "Date"]
        assert all(f.encoding == "ascii" for f in dates)

    def test_text_fields_are_cp1251(self):
        text = [f for f in METADATA_FIELDS if f.format is FieldFormat.GENERIC]
        assert all(f.encoding == "cp1251" for f in text)

    def test_descriptors_are_immutable(self):
        with pytest.raises(AttributeError):
            METADATA_FIELDS[0].offset = 0


class TestNullTermination:
    def test_stops_at_first_zero(self):
        header = _header_with(14, b"75kV\x00junk")
        value = read_field(header, _field("TubeConfig"))
        assert value.raw == "75kV"

    def test_full_window_when_no_zero(self):
        descriptor = _field("TubeConfig")
        header = _header_with(14, b"A" * descriptor.max_length + b"BBBB")
        value = read_field(header, descriptor)
        assert value.raw == "A" * descriptor.max_length

    def test_empty_when_first_byte_is_zero(self):
        value = read_field(bytes(HEADER_SIZE), _field("PatientName"))
        assert value.raw == ""
        assert value.formatted == ""

    def test_short_header_is_bounded(self):
        header = b"\x00" * 14 + b"ABCDEF"
        value = read_field(header, _field("TubeConfig"))
        assert value.raw == "ABCDEF"


class TestDecoding:
    def test_cp1251_cyrillic(self):
        name = "ИВАНОВ ИВАН ИВАНОВИЧ"
        header = _header_with(114, name.encode("cp1251"))
        value = read_field(header, _field("PatientName"))
        assert value.raw == name
        assert value.formatted == name

    def test_surrounding_whitespace_trimmed(self):
        header = _header_with(350, "  жен  ".encode("cp1251"))
        assert read_field(header, _field("Sex")).raw == "жен"

    def test_undefined_cp1251_byte_does_not_raise(self):
        header = _header_with(94, b"PP\x98210")
        value = read_field(header, _field("Unknown1"))
        assert value.raw.startswith("PP")
        assert value.raw.endswith("210")

    def test_non_ascii_date_bytes_do_not_raise(self):
        header = _header_with(264, b"\xff\xfe291170")
        value = read_field(header, _field("BirthDate"))
        assert value.formatted == value.raw


class TestDateFormatting:
    def test_valid_date_formatted(self):
        header = _header_with(264, b"29111970")
        value = read_field(header, _field("BirthDate"))
        assert value.raw == "29111970"
        assert value.formatted == "29.11.1970"

    def test_custom_date_format(self):
        header = _header_with(272, b"20022026")
        value = read_field(header, _field("ExposureDate"), date_format="%Y-%m-%d")
        assert value.formatted == "2026-02-20"

    @pytest.mark.parametrize("raw", ["2911197", "291119700", "31021970", "abcdefgh", "", "29 11970"])
    def test_invalid_dates_pass_through(self, raw):
        assert format_value(raw, FieldFormat.DATE) == raw

    def test_generic_rule_is_identity(self):
        assert format_value("29111970", FieldFormat.GENERIC) == "29111970"


class TestReadMetadata:
    def test_one_value_per_field_in_order(self):
        values = read_metadata(bytes(HEADER_SIZE))
        assert [v.id for v in values] == [f.id for f in METADATA_FIELDS]

    def test_custom_field_list(self):
        custom = (FieldDescriptor("Extra", 600, 10),)
        values = read_metadata(_header_with(600, b"hello"), custom)
        assert len(values) == 1
        assert values[0].id == "Extra"
        assert values[0].raw == "hello"
