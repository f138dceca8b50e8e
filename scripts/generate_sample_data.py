"""
generate_sample_data.py - Create synthetic .stl files for an end-to-end demo.

Writes a few small STL files to data/raw/ so you can run the converter
immediately without real patient data.  Each file has a filled-in header
and a synthetic chest-like image whose columns are rolled, the way the
scanner stores them, so the seam correction has something to fix.

Usage
-----
    python scripts/generate_sample_data.py

After running, try:
    xray-stl batch
"""

import os
import struct
import sys

import numpy as np

# Make sure repo root is on the path when run as a script
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _REPO_ROOT)

from xray_stl.config import CONFIG  # noqa: E402 — import after path fix
from xray_stl.fields import HEADER_SIZE, METADATA_FIELDS  # noqa: E402

OUTPUT_FOLDER = os.path.join(_REPO_ROOT, CONFIG["paths"]["input_folder"])


# ---------------------------------------------------------------------------
# Synthetic scan profiles
# ---------------------------------------------------------------------------
_SCAN_PROFILES = [
    # (filename_stem, patient_name, sex, birth_date, roll)
    ("scan_01", "ИВАНОВ ИВАН ИВАНОВИЧ", "муж", "29111970", 37),
    ("scan_02", "ПЕТРОВА АННА СЕРГЕЕВНА", "жен", "03021985", 90),
    ("scan_03", "СИДОРОВ ПЁТР", "муж", "15071962", 0),
]


def build_header(fields: dict[str, str], logical_width: int, stored_cols: int) -> bytearray:
    """Lay out geometry words and text fields in a HEADER_SIZE buffer."""
    header = bytearray(HEADER_SIZE)
    struct.pack_into("<HH", header, 0, logical_width, stored_cols)
    for descriptor in METADATA_FIELDS:
        text = fields.get(descriptor.id, "")
        raw = text.encode(descriptor.encoding)[: descriptor.max_length]
        header[descriptor.offset : descriptor.offset + len(raw)] = raw
    return header


def _make_image(rows: int, cols: int, seed: int) -> np.ndarray:
    """Dark border, bright body, darker lung fields; stored orientation."""
    rng = np.random.default_rng(seed)
    y, x = np.mgrid[0:rows, 0:cols]
    body = ((y - rows / 2) / (rows * 0.45)) ** 2 + ((x - cols / 2) / (cols * 0.42)) ** 2 < 1
    lungs = (((y - rows / 2) / (rows * 0.3)) ** 2 + ((np.abs(x - cols / 2) - cols * 0.18) / (cols * 0.12)) ** 2) < 1

    image = np.full((rows, cols), 300.0)
    image[body] = 2600.0
    image[lungs] = 1200.0
    image += rng.normal(0, 40, size=image.shape)
    return image.clip(0, 4095).astype(np.uint16)


def _make_stl(path: str, fields: dict[str, str], roll: int, rows: int = 192, cols: int = 160, seed: int = 42) -> None:
    """Write one synthetic STL file with its columns rolled right by *roll*."""
    image = _make_image(rows, cols, seed)
    stored = np.roll(image, roll, axis=1)

    with open(path, "wb") as f:
        f.write(build_header(fields, logical_width=rows, stored_cols=cols))
        f.write(stored.astype("<u2").tobytes())


def generate(output_folder: str = OUTPUT_FOLDER) -> None:
    """Generate all synthetic STL files into *output_folder*."""
    os.makedirs(output_folder, exist_ok=True)

    print(f"Writing {len(_SCAN_PROFILES)} synthetic STL files to: {output_folder}")
    print("-" * 60)

    for i, (stem, name, sex, birth_date, roll) in enumerate(_SCAN_PROFILES, start=1):
        fields = {
            "TubeConfig": "75kV; 40mA",
            "Institution": "ГОРОДСКАЯ ПОЛИКЛИНИКА №1",
            "Unknown1": "PP210",
            "PatientName": name,
            "CareType": "АМБУЛАТОРНО",
            "PatientAddress": "ЛЕНИНА 1/1",
            "BirthDate": birth_date,
            "ExposureDate": "20022026",
            "Projection": "ПЕРЕДНЕЗАДНЯЯ",
            "Radiologist": "ПЕТРОВА И Н",
            "Sex": sex,
            "FileID": f"{i:08d}",
            "Date": "23022026",
        }
        filename = f"{stem}.stl"
        _make_stl(os.path.join(output_folder, filename), fields, roll=roll, seed=42 + i)
        print(f"  [{i:02d}/{len(_SCAN_PROFILES)}] {filename}  (roll {roll})")

    print("-" * 60)
    print("Done.  Convert them with:")
    print("  xray-stl batch")


if __name__ == "__main__":
    generate()
