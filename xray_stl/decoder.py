"""
decoder.py - Pixel reconstruction for STL scanner files.

FILE LAYOUT
-----------
    Bytes 0-1     : uint16 LE - logical image width (informational only)
    Bytes 2-3     : uint16 LE - stored column count (= final image height)
    Bytes 4-1336  : text fields, see fields.py
    Bytes 1337+   : uint16 LE samples, stored_rows x stored_cols, row-major

    stored_rows = (file_length - 1337) // (stored_cols * 2)

The samples are stored transposed relative to the picture, and the capture
hardware writes each row through a circular buffer, so the columns come out
cyclically rolled.  Reconstruction therefore goes:

    1. Read geometry and raw 16-bit samples
    2. Find the roll seam and unroll the columns
    3. Percentile contrast stretch (0.5th - 99.5th) to 8 bits
    4. Transpose + horizontal flip -> stored_rows wide x stored_cols tall

Encoding the result (PNG, DICOM) lives in export.py.
"""

import logging
import struct
from dataclasses import dataclass

import numpy as np

from xray_stl.errors import FormatError
from xray_stl.fields import HEADER_SIZE

logger = logging.getLogger(__name__)

MIN_FILE_SIZE = HEADER_SIZE + 4

# Outer 1/20 of the columns on each side is natural dark border, not seam.
SEAM_MARGIN_DIVISOR = 20

LOWER_PERCENTILE = 0.005
UPPER_PERCENTILE = 0.995


@dataclass(frozen=True)
class Geometry:
    """Sample layout derived from the header and the file length."""
    logical_width: int
    stored_cols: int
    stored_rows: int

    @property
    def body_size(self) -> int:
        return self.stored_rows * self.stored_cols * 2


@dataclass(frozen=True)
class Raster:
    """8-bit grayscale image, row-major, ``len(data) == width * height``."""
    width: int
    height: int
    data: bytes

    def as_array(self) -> np.ndarray:
        """Return a read-only ``(height, width)`` uint8 view of the pixels."""
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width)


def read_geometry(data: bytes) -> Geometry:
    """
    Derive the stored sample layout from the first four bytes and the length.

    Raises
    ------
    FormatError
        If the data is too short for the header, declares zero columns,
        holds no complete row of samples, or has a truncated pixel body.
    """
    file_length = len(data)
    if file_length < MIN_FILE_SIZE:
        raise FormatError(
            f"File is too small to contain a valid header "
            f"({file_length} bytes, need at least {MIN_FILE_SIZE})."
        )

    logical_width, stored_cols = struct.unpack_from("<HH", data, 0)
    if stored_cols == 0:
        raise FormatError("Header declares an image height of 0 columns.")

    stored_rows = (file_length - HEADER_SIZE) // (stored_cols * 2)
    if stored_rows == 0:
        raise FormatError(
            f"No pixel rows: {file_length - HEADER_SIZE} body bytes for "
            f"{stored_cols} columns."
        )

    geometry = Geometry(logical_width, stored_cols, stored_rows)
    expected = HEADER_SIZE + geometry.body_size
    if file_length < expected:
        raise FormatError(
            f"Truncated pixel data: expected at least {expected} bytes, got {file_length}."
        )

    logger.info("Header  - logical width: %d, height: %d", logical_width, stored_cols)
    logger.info("Derived - stored layout: %d rows x %d cols", stored_rows, stored_cols)
    return geometry


def read_samples(data: bytes, geometry: Geometry) -> np.ndarray:
    """Return the raw samples as a ``(stored_rows, stored_cols)`` uint16 array."""
    count = geometry.stored_rows * geometry.stored_cols
    samples = np.frombuffer(data, dtype="<u2", count=count, offset=HEADER_SIZE)
    return samples.astype(np.uint16).reshape(geometry.stored_rows, geometry.stored_cols)


def column_differences(samples: np.ndarray) -> np.ndarray:
    """
    Mean absolute difference between each pair of adjacent columns.

    Element ``c`` compares column ``c`` with column ``c + 1`` over all rows,
    so the result has ``cols - 1`` entries.
    """
    wide = samples.astype(np.int64)
    totals = np.abs(np.diff(wide, axis=1)).sum(axis=0)
    return totals / samples.shape[0]


def find_roll_seam(samples: np.ndarray) -> int:
    """
    Locate the column where the circular capture buffer wrapped around.

    Candidate boundaries ``c`` run from ``margin`` to ``cols - margin - 2``
    with ``margin = cols // 20``.  The boundary with the largest mean
    absolute difference wins; equal maxima resolve to the leftmost one, so
    a flat profile rolls by ``margin + 1``.

    Returns
    -------
    int
        ``c + 1`` of the winning boundary (the first column to move to the
        left edge), or 0 when the candidate range is empty.
    """
    cols = samples.shape[1]
    margin = cols // SEAM_MARGIN_DIVISOR
    candidates = column_differences(samples)[margin:cols - margin - 1]
    if candidates.size == 0:
        return 0

    return margin + int(np.argmax(candidates)) + 1


def roll_columns(samples: np.ndarray, seam_col: int) -> np.ndarray:
    """
    Rotate every row left by *seam_col* columns.

    New column ``j`` is old column ``(j + seam_col) % cols``: the block
    ``[seam_col, cols)`` followed by the block ``[0, seam_col)``.
    """
    if seam_col == 0:
        return samples
    return np.concatenate((samples[:, seam_col:], samples[:, :seam_col]), axis=1)


def percentile_window(
    samples: np.ndarray,
    lower: float = LOWER_PERCENTILE,
    upper: float = UPPER_PERCENTILE,
) -> tuple[int, int]:
    """
    Return the sample values at the *lower* and *upper* fractions.

    Values are picked from the ascending sort at indices
    ``int(lower * (n - 1))`` and ``int(upper * (n - 1))`` (no interpolation).
    """
    ordered = np.sort(samples, axis=None)
    last = ordered.size - 1
    lo = int(ordered[int(lower * last)])
    hi = int(ordered[int(upper * last)])
    return lo, hi


def stretch_contrast(samples: np.ndarray, lo: int, hi: int) -> np.ndarray:
    """
    Map ``[lo, hi]`` linearly onto ``[0, 255]``, rounding half up and clamping.

    When the window is degenerate (``hi <= lo``) the scale is 1, so values
    are only shifted by *lo*.
    """
    scale = 255.0 / (hi - lo) if hi > lo else 1.0
    scaled = np.floor((samples.astype(np.float64) - lo) * scale + 0.5)
    return np.clip(scaled, 0, 255).astype(np.uint8)


def to_display_orientation(pixels: np.ndarray) -> np.ndarray:
    """
    Turn a stored-orientation array into the viewing orientation.

    Stored ``(row=r, col=c)`` lands at output ``(x=rows-1-r, y=c)``: the
    array is transposed and then flipped along the new horizontal axis.
    """
    return np.ascontiguousarray(pixels.T[:, ::-1])


def decode_image(
    data: bytes,
    lower: float = LOWER_PERCENTILE,
    upper: float = UPPER_PERCENTILE,
) -> Raster:
    """
    Reconstruct the viewable 8-bit image from the complete file contents.

    Parameters
    ----------
    data : bytes
        Whole file, header included.
    lower, upper : float
        Fractions used for the contrast window.

    Returns
    -------
    Raster
        ``width == stored_rows``, ``height == stored_cols``.

    Raises
    ------
    FormatError
        On any geometry validation failure.  Nothing is returned partially.
    """
    geometry = read_geometry(data)
    samples = read_samples(data, geometry)

    seam_col = find_roll_seam(samples)
    logger.info("Detected roll seam at column %d (of %d).", seam_col, geometry.stored_cols)
    samples = roll_columns(samples, seam_col)

    lo, hi = percentile_window(samples, lower, upper)
    logger.debug("Contrast window: lo=%d, hi=%d", lo, hi)

    image = to_display_orientation(stretch_contrast(samples, lo, hi))
    height, width = image.shape
    logger.info("Output  - image size: %d x %d px", width, height)
    return Raster(width=width, height=height, data=image.tobytes())
