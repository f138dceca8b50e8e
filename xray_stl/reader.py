"""
reader.py - File handle for one STL scanner file.

A StlFileReader owns a single readable, seekable binary stream until it is
closed.  Metadata and pixels are decoded independently of each other and
may be requested any number of times, in any order.

The reader is not thread-safe: the stream position is shared state.  Create
one reader per file and close it when done, preferably with ``with``:

    with StlFileReader.open("scan.stl") as reader:
        fields = reader.extract_metadata()
        raster = reader.get_raster()
"""

import io
import logging
import os
from typing import BinaryIO, Iterable, Optional, Union

from xray_stl.decoder import (
    LOWER_PERCENTILE,
    MIN_FILE_SIZE,
    UPPER_PERCENTILE,
    Geometry,
    Raster,
    decode_image,
    read_geometry,
)
from xray_stl.errors import (
    FormatError,
    InvalidArgumentError,
    NotFoundError,
    UseAfterDisposeError,
)
from xray_stl.fields import (
    DEFAULT_DATE_FORMAT,
    HEADER_SIZE,
    METADATA_FIELDS,
    FieldDescriptor,
    FieldValue,
    read_metadata,
)

logger = logging.getLogger(__name__)

STL_EXTENSION = ".stl"


class StlFileReader:
    """
    Decode header fields and the image of a single STL file.

    Parameters
    ----------
    source : binary stream or bytes
        A readable, seekable binary stream, or the raw file contents.
    owns_source : bool
        Close *source* when the reader is closed.  Ignored for bytes.
    date_format : str
        strftime pattern used for date fields.

    Raises
    ------
    InvalidArgumentError
        If *source* is None, empty, or not a readable seekable stream.
    FormatError
        If the source is shorter than the minimum header size.
    """

    def __init__(
        self,
        source: Union[BinaryIO, bytes, bytearray],
        owns_source: bool = True,
        date_format: str = DEFAULT_DATE_FORMAT,
    ) -> None:
        if source is None:
            raise InvalidArgumentError("A byte source is required.")

        if isinstance(source, (bytes, bytearray)):
            if not source:
                raise InvalidArgumentError("The byte source is empty.")
            source = io.BytesIO(source)
            owns_source = True

        readable = getattr(source, "readable", None)
        seekable = getattr(source, "seekable", None)
        if not (callable(readable) and callable(seekable) and readable() and seekable()):
            if owns_source and callable(getattr(source, "close", None)):
                source.close()
            raise InvalidArgumentError("Stream must be readable and seekable.")

        self._stream = source
        self._owns_stream = owns_source
        self._closed = False
        self.date_format = date_format

        length = self._length()
        if length < MIN_FILE_SIZE:
            self.close()
            raise FormatError(
                f"Stream is too small to contain a valid header "
                f"({length} bytes, need at least {MIN_FILE_SIZE})."
            )

    @classmethod
    def open(cls, path: Union[str, os.PathLike], **kwargs) -> "StlFileReader":
        """
        Open an ``.stl`` file from disk.

        Raises
        ------
        InvalidArgumentError
            If *path* is empty or does not end in ``.stl``.
        NotFoundError
            If the file does not exist.
        FormatError
            If the file is too small to hold a header.
        """
        if not path:
            raise InvalidArgumentError("A file path is required.")
        path = os.fspath(path)

        if not path.lower().endswith(STL_EXTENSION):
            raise InvalidArgumentError(
                f"Unsupported file format: {path}. Only {STL_EXTENSION} files are supported."
            )
        if not os.path.isfile(path):
            raise NotFoundError(f"The specified file was not found: {path}")

        logger.debug("Opening %s", path)
        stream = open(path, "rb")
        try:
            return cls(stream, owns_source=True, **kwargs)
        except BaseException:
            stream.close()
            raise

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the underlying stream.  Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._owns_stream:
            self._stream.close()

    def __enter__(self) -> "StlFileReader":
        self._check_open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise UseAfterDisposeError("Cannot use a StlFileReader after it has been closed.")

    def _length(self) -> int:
        return self._stream.seek(0, io.SEEK_END)

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def read_header(self) -> bytes:
        """Return the fixed-size header window."""
        self._check_open()
        self._stream.seek(0)
        header = self._stream.read(HEADER_SIZE)
        if len(header) < HEADER_SIZE:
            raise FormatError(
                f"Could not read the {HEADER_SIZE}-byte header (got {len(header)} bytes)."
            )
        return header

    def extract_metadata(
        self,
        fields: Optional[Iterable[FieldDescriptor]] = None,
    ) -> list[FieldValue]:
        """
        Decode the header fields, in declaration order.

        Individual fields never fail; unreadable bytes just produce
        garbled text.
        """
        header = self.read_header()
        return read_metadata(
            header,
            METADATA_FIELDS if fields is None else fields,
            date_format=self.date_format,
        )

    @property
    def geometry(self) -> Geometry:
        """Sample layout, validated against the file length."""
        return read_geometry(self._read_all())

    def get_raster(
        self,
        lower: float = LOWER_PERCENTILE,
        upper: float = UPPER_PERCENTILE,
    ) -> Raster:
        """Reconstruct the corrected 8-bit image.  Raises FormatError on bad geometry."""
        return decode_image(self._read_all(), lower=lower, upper=upper)

    def _read_all(self) -> bytes:
        self._check_open()
        self._stream.seek(0)
        return self._stream.read()
