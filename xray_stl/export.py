"""
export.py - Encoders for decoded STL scans.

The decoder stops at a raw 8-bit raster; this module turns it into
something a viewer or archive can take:

- Lossless grayscale PNG (Pillow), as bytes, a file, or a ``data:`` URI
- Ordered header fields as a dict / JSON document
- A DICOM Secondary Capture object (pydicom) carrying the raster and the
  patient / study fields recovered from the header

The DICOM output is a convenience for loading scans into a PACS viewer.
Nothing about the scanner is known, so the object is marked as secondary
capture and no acquisition parameters are invented.
"""

import base64
import datetime
import io
import json
import logging
import os
from typing import Iterable, Optional, Union

from PIL import Image
from pydicom.dataset import FileDataset, FileMetaDataset
from pydicom.uid import ExplicitVRLittleEndian, SecondaryCaptureImageStorage, generate_uid

from xray_stl.decoder import Raster
from xray_stl.fields import FieldValue, parse_date

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

# Header "Sex" values as written by the scanner software.
_SEX_CODES: dict[str, str] = {
    "муж": "M",
    "жен": "F",
}


# ---------------------------------------------------------------------------
# PNG
# ---------------------------------------------------------------------------

def _to_image(raster: Raster) -> Image.Image:
    return Image.frombytes("L", (raster.width, raster.height), raster.data)


def encode_png(raster: Raster) -> bytes:
    """Encode *raster* as an 8-bit grayscale PNG."""
    buffer = io.BytesIO()
    _to_image(raster).save(buffer, format="PNG")
    return buffer.getvalue()


def save_png(raster: Raster, path: PathLike) -> None:
    """Write *raster* to *path* as PNG, creating the parent folder if needed."""
    folder = os.path.dirname(os.fspath(path))
    if folder:
        os.makedirs(folder, exist_ok=True)
    _to_image(raster).save(path, format="PNG")
    logger.info("Saved PNG %s (%d x %d)", path, raster.width, raster.height)


def png_data_uri(raster: Raster) -> str:
    """Return the PNG as a ``data:image/png;base64,...`` string for HTML viewers."""
    encoded = base64.b64encode(encode_png(raster)).decode("ascii")
    return f"data:image/png;base64,{encoded}"


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------

def metadata_as_dict(values: Iterable[FieldValue]) -> dict[str, str]:
    """Map field id to formatted text, keeping the header order."""
    return {value.id: value.formatted for value in values}


def metadata_to_json(values: Iterable[FieldValue], indent: Optional[int] = None) -> str:
    """Serialise the formatted fields as a JSON object (Cyrillic kept as-is)."""
    return json.dumps(metadata_as_dict(values), ensure_ascii=False, indent=indent)


# ---------------------------------------------------------------------------
# DICOM Secondary Capture
# ---------------------------------------------------------------------------

def _person_name(text: str) -> str:
    """'ИВАНОВ ИВАН ИВАНОВИЧ' -> 'ИВАНОВ^ИВАН^ИВАНОВИЧ'."""
    return "^".join(text.split()[:5])


def _dicom_date(raw: str) -> Optional[str]:
    parsed = parse_date(raw)
    return parsed.strftime("%Y%m%d") if parsed is not None else None


def _apply_header_fields(ds: FileDataset, fields: dict[str, str]) -> None:
    """Copy what is known from the STL header onto the DICOM dataset."""
    if fields.get("PatientName"):
        ds.PatientName = _person_name(fields["PatientName"])
    if fields.get("FileID"):
        ds.PatientID = fields["FileID"]
    if fields.get("PatientAddress"):
        ds.PatientAddress = fields["PatientAddress"][:64]
    if fields.get("Institution"):
        ds.InstitutionName = fields["Institution"][:64]
    if fields.get("Radiologist"):
        ds.NameOfPhysiciansReadingStudy = _person_name(fields["Radiologist"])
    if fields.get("Projection"):
        ds.SeriesDescription = fields["Projection"][:64]

    sex = fields.get("Sex", "").lower()
    if sex:
        ds.PatientSex = _SEX_CODES.get(sex, "O")

    birth_date = _dicom_date(fields.get("BirthDate", ""))
    if birth_date:
        ds.PatientBirthDate = birth_date

    study_date = _dicom_date(fields.get("ExposureDate", "")) or _dicom_date(fields.get("Date", ""))
    if study_date:
        ds.StudyDate = study_date


def build_dicom(
    raster: Raster,
    metadata: Optional[Iterable[FieldValue]] = None,
    filename: str = "",
) -> FileDataset:
    """
    Wrap *raster* in an in-memory Secondary Capture dataset.

    Parameters
    ----------
    raster : Raster
        Decoded 8-bit image.
    metadata : iterable of FieldValue, optional
        Header fields; raw values are used so dates keep their DDMMYYYY form.
    filename : str
        Stored as the dataset's filename.

    Returns
    -------
    FileDataset
    """
    file_meta = FileMetaDataset()
    file_meta.MediaStorageSOPClassUID = SecondaryCaptureImageStorage
    file_meta.MediaStorageSOPInstanceUID = generate_uid()
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = FileDataset(filename, {}, file_meta=file_meta, preamble=b"\0" * 128)
    ds.SpecificCharacterSet = "ISO_IR 192"
    ds.SOPClassUID = SecondaryCaptureImageStorage
    ds.SOPInstanceUID = file_meta.MediaStorageSOPInstanceUID
    ds.StudyInstanceUID = generate_uid()
    ds.SeriesInstanceUID = generate_uid()
    ds.Modality = "OT"
    ds.ConversionType = "WSD"

    now = datetime.datetime.now()
    ds.ContentDate = now.strftime("%Y%m%d")
    ds.ContentTime = now.strftime("%H%M%S")

    if metadata is not None:
        _apply_header_fields(ds, {value.id: value.raw for value in metadata})

    ds.Rows = raster.height
    ds.Columns = raster.width
    ds.SamplesPerPixel = 1
    ds.PhotometricInterpretation = "MONOCHROME2"
    ds.PixelRepresentation = 0
    ds.BitsAllocated = 8
    ds.BitsStored = 8
    ds.HighBit = 7
    ds.PixelData = raster.data
    return ds


def write_dicom(
    raster: Raster,
    path: PathLike,
    metadata: Optional[Iterable[FieldValue]] = None,
) -> None:
    """Save *raster* (and optional header fields) as a DICOM file at *path*."""
    folder = os.path.dirname(os.fspath(path))
    if folder:
        os.makedirs(folder, exist_ok=True)
    ds = build_dicom(raster, metadata, filename=os.path.basename(os.fspath(path)))
    ds.save_as(path, enforce_file_format=True)
    logger.info("Saved DICOM %s", path)
