"""
xray_stl - Decoder for the proprietary STL dumps of an X-ray scanner.

    from xray_stl import StlFileReader

    with StlFileReader.open("scan.stl") as reader:
        fields = reader.extract_metadata()
        raster = reader.get_raster()
"""

from xray_stl.decoder import Raster, decode_image
from xray_stl.errors import (
    FormatError,
    InvalidArgumentError,
    NotFoundError,
    StlError,
    UseAfterDisposeError,
)
from xray_stl.fields import METADATA_FIELDS, FieldDescriptor, FieldFormat, FieldValue
from xray_stl.reader import StlFileReader

__all__ = [
    "METADATA_FIELDS",
    "FieldDescriptor",
    "FieldFormat",
    "FieldValue",
    "FormatError",
    "InvalidArgumentError",
    "NotFoundError",
    "Raster",
    "StlError",
    "StlFileReader",
    "UseAfterDisposeError",
    "decode_image",
]
