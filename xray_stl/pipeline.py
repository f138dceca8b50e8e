"""
pipeline.py - Batch conversion of STL scanner files.

Reads every .stl file from an input folder, decodes it with
xray_stl.reader, and writes a PNG (and optionally a DICOM Secondary
Capture) per scan to an output folder.  A file that fails to decode is
recorded in the report and the batch carries on.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Optional

from xray_stl.config import CONFIG
from xray_stl.export import save_png, write_dicom
from xray_stl.reader import STL_EXTENSION, StlFileReader

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class ProcessingResult:
    """Outcome of converting one .stl file; *outputs* lists the files written."""
    filename: str
    success: bool
    error: Optional[str] = None
    duration_s: float = 0.0
    outputs: list[str] = field(default_factory=list)


@dataclass
class PipelineReport:
    """Totals for one folder conversion, plus the per-file results."""
    total_files: int = 0
    processed: int = 0
    failed: int = 0
    elapsed_s: float = 0.0
    results: list[ProcessingResult] = field(default_factory=list)

    @property
    def failures(self) -> list[ProcessingResult]:
        return [r for r in self.results if not r.success]

    def summary(self) -> str:
        """Plain-text block printed by the CLI and logged after a batch."""
        written = sum(len(r.outputs) for r in self.results)
        lines = [
            "=" * 50,
            "CONVERSION SUMMARY",
            "=" * 50,
            f"STL files found       : {self.total_files}",
            f"Successfully converted: {self.processed}",
            f"Failed                : {self.failed}",
            f"Output files written  : {written}",
            f"Total time            : {self.elapsed_s:.2f}s",
        ]
        failures = self.failures
        if failures:
            lines.append("\nFiles that could not be decoded:")
            lines.extend(f"  - {r.filename}: {r.error}" for r in failures)
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Single file
# ---------------------------------------------------------------------------

def convert_file(
    path: str,
    output_folder: str,
    png: bool = True,
    dicom: bool = False,
) -> list[str]:
    """
    Decode one .stl file and write the requested outputs.

    Parameters
    ----------
    path : str
        Source .stl file.
    output_folder : str
        Destination directory (created if missing).
    png, dicom : bool
        Which encodings to write.

    Returns
    -------
    list[str]
        Paths of the files written.

    Raises
    ------
    xray_stl.errors.StlError
        If the file cannot be opened or decoded.
    """
    decoding = CONFIG["decoding"]
    stem = os.path.splitext(os.path.basename(path))[0]
    written: list[str] = []

    with StlFileReader.open(path, date_format=CONFIG["metadata"]["date_format"]) as reader:
        metadata = reader.extract_metadata()
        raster = reader.get_raster(
            lower=decoding["lower_percentile"],
            upper=decoding["upper_percentile"],
        )

    os.makedirs(output_folder, exist_ok=True)
    if png:
        png_path = os.path.join(output_folder, f"{stem}.png")
        save_png(raster, png_path)
        written.append(png_path)
    if dicom:
        dcm_path = os.path.join(output_folder, f"{stem}.dcm")
        write_dicom(raster, dcm_path, metadata=metadata)
        written.append(dcm_path)
    return written


# ---------------------------------------------------------------------------
# Folder
# ---------------------------------------------------------------------------

def convert_folder(
    input_folder: Optional[str] = None,
    output_folder: Optional[str] = None,
    png: Optional[bool] = None,
    dicom: Optional[bool] = None,
    max_files: Optional[int] = None,
) -> PipelineReport:
    """
    Convert all .stl files in *input_folder* into *output_folder*.

    Parameters
    ----------
    input_folder : str, optional
        Source directory.  Defaults to config value.
    output_folder : str, optional
        Destination directory.  Defaults to config value.
    png, dicom : bool, optional
        Output encodings.  Default to the config ``export`` section.
    max_files : int, optional
        Cap on the number of files to convert.  None = convert all.

    Returns
    -------
    PipelineReport
        Summary of the batch run.
    """
    input_folder = input_folder or CONFIG["paths"]["input_folder"]
    output_folder = output_folder or CONFIG["paths"]["output_folder"]
    png = CONFIG["export"]["png"] if png is None else png
    dicom = CONFIG["export"]["dicom"] if dicom is None else dicom

    report = PipelineReport()
    batch_start = time.time()

    if not os.path.isdir(input_folder):
        logger.error("Input folder not found: %s", input_folder)
        return report

    files = sorted(
        f for f in os.listdir(input_folder)
        if not f.startswith(".") and f.lower().endswith(STL_EXTENSION)
    )
    if max_files is not None:
        files = files[:max_files]

    report.total_files = len(files)
    logger.info("Starting conversion: %d files to process.", report.total_files)

    for filename in files:
        file_start = time.time()
        result = ProcessingResult(filename=filename, success=False)

        try:
            result.outputs = convert_file(
                os.path.join(input_folder, filename),
                output_folder,
                png=png,
                dicom=dicom,
            )
            result.success = True
            report.processed += 1
        except Exception as exc:
            result.error = str(exc)
            report.failed += 1
            logger.exception("Error converting %s: %s", filename, exc)

        result.duration_s = time.time() - file_start
        report.results.append(result)

    report.elapsed_s = time.time() - batch_start
    logger.info(report.summary())
    return report
