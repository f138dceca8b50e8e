"""
fields.py - Fixed-offset header fields of the STL scanner format.

The first 1337 bytes of an STL file are a header.  Apart from the two
geometry words at the very start (see decoder.py) it holds fixed-width,
null-terminated text fields at known offsets:

    Offset  14 : TubeConfig      e.g. "75kV; 40mA"
    Offset  44 : Institution     e.g. "ГУЗ ГГП №1"
    Offset  94 : Unknown1        e.g. "PP210" (meaning not established)
    Offset 114 : PatientName     e.g. "ИВАНОВ ИВАН ИВАНОВИЧ"
    Offset 194 : CareType        e.g. "АМБУЛАТОРНО"
    Offset 214 : PatientAddress  e.g. "ЗАЙЦЕВА 11/11"
    Offset 264 : BirthDate       e.g. "29111970"
    Offset 272 : ExposureDate    e.g. "20022026"
    Offset 280 : Projection      e.g. "ПЕРЕДНЕЗАДНЯЯ"
    Offset 300 : Radiologist     e.g. "ПЕТРОВА И Н"
    Offset 350 : Sex             e.g. "жен" / "муж"
    Offset 483 : FileID          e.g. "00152440"
    Offset 513 : Date            e.g. "23022026"

Text fields are Windows code page 1251 (Cyrillic); dates are 8 ASCII digits
in DDMMYYYY order.

Reading a field never raises: files from an incompatible scanner are shown
as garbled text rather than rejected.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

HEADER_SIZE = 1337

DEFAULT_ENCODING = "cp1251"
DATE_ENCODING = "ascii"
DATE_LENGTH = 8
DATE_PATTERN = "%d%m%Y"
DEFAULT_DATE_FORMAT = "%d.%m.%Y"


class FieldFormat(enum.Enum):
    """How a decoded field value is turned into display text."""
    GENERIC = "generic"
    DATE = "date"


@dataclass(frozen=True)
class FieldDescriptor:
    """Location and decoding rule of one header field."""
    id: str
    offset: int
    max_length: int
    encoding: str = DEFAULT_ENCODING
    format: FieldFormat = FieldFormat.GENERIC


@dataclass(frozen=True)
class FieldValue:
    """One decoded header field."""
    id: str
    raw: str
    formatted: str


def _text(field_id: str, start: int, end: int) -> FieldDescriptor:
    return FieldDescriptor(field_id, start, end - start)


def _date(field_id: str, start: int) -> FieldDescriptor:
    return FieldDescriptor(
        field_id, start, DATE_LENGTH, encoding=DATE_ENCODING, format=FieldFormat.DATE
    )


# ---------------------------------------------------------------------------
# Field catalog, in display order
# ---------------------------------------------------------------------------
METADATA_FIELDS: tuple[FieldDescriptor, ...] = (
    _text("TubeConfig", 14, 40),
    _text("Institution", 44, 94),
    _text("Unknown1", 94, 114),
    _text("PatientName", 114, 194),
    _text("CareType", 194, 214),
    _text("PatientAddress", 214, 264),
    _date("BirthDate", 264),
    _date("ExposureDate", 272),
    _text("Projection", 280, 300),
    _text("Radiologist", 300, 350),
    _text("Sex", 350, 483),
    _text("FileID", 483, 513),
    _date("Date", 513),
)


def parse_date(raw: str) -> Optional[datetime]:
    """Parse a DDMMYYYY value, returning None when it is not a valid date."""
    if len(raw) != DATE_LENGTH or not raw.isdigit():
        return None
    try:
        return datetime.strptime(raw, DATE_PATTERN)
    except ValueError:
        return None


def format_value(
    raw: str,
    rule: FieldFormat,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> str:
    """
    Apply a formatting rule to a decoded field value.

    GENERIC values are returned unchanged.  DATE values that parse as
    DDMMYYYY are rendered with *date_format*; anything else passes through
    untouched.
    """
    if rule is FieldFormat.DATE:
        parsed = parse_date(raw)
        if parsed is not None:
            return parsed.strftime(date_format)
    return raw


def read_field(
    header: bytes,
    descriptor: FieldDescriptor,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> FieldValue:
    """
    Extract and format a single field from the header bytes.

    The value ends at the first zero byte, or at ``offset + max_length`` when
    the field fills its whole slot.

    Parameters
    ----------
    header : bytes
        The header window (normally the first HEADER_SIZE bytes of the file).
    descriptor : FieldDescriptor
        Which field to read.
    date_format : str
        strftime pattern used for DATE fields.

    Returns
    -------
    FieldValue
    """
    start = descriptor.offset
    limit = min(start + descriptor.max_length, len(header))
    end = header.find(b"\x00", start, limit)
    if end == -1:
        end = limit

    raw = header[start:end].decode(descriptor.encoding, errors="replace").strip()
    formatted = format_value(raw, descriptor.format, date_format=date_format)

    logger.debug("Field %s [%d:%d] -> %r", descriptor.id, start, end, raw)
    return FieldValue(id=descriptor.id, raw=raw, formatted=formatted)


def read_metadata(
    header: bytes,
    fields: Iterable[FieldDescriptor] = METADATA_FIELDS,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> list[FieldValue]:
    """Read every descriptor in *fields*, preserving their order."""
    return [read_field(header, field, date_format=date_format) for field in fields]
