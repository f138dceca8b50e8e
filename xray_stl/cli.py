"""
cli.py - ``xray-stl`` command line tool.

Usage
-----
    xray-stl convert scan.stl                 # prints header, writes scan.png
    xray-stl convert scan.stl -o out.png --dicom
    xray-stl convert scan.stl --json          # header as JSON, no image
    xray-stl batch --input data/raw --output data/processed
    xray-stl show scan.stl                    # matplotlib window
"""

import argparse
import logging
import os
import sys
from typing import Optional, Sequence

from xray_stl.config import CONFIG
from xray_stl.errors import StlError
from xray_stl.export import metadata_to_json, save_png, write_dicom
from xray_stl.pipeline import convert_folder
from xray_stl.reader import StlFileReader

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="xray-stl", description="Decode STL X-ray scanner files.")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_conv = sub.add_parser("convert", help="Print header fields and write the image")
    p_conv.add_argument("input", help="Path to the .stl file")
    p_conv.add_argument("-o", "--output", default=None, help="PNG path (default: input with .png)")
    p_conv.add_argument("--dicom", action="store_true", help="Also write a DICOM file next to the PNG")
    p_conv.add_argument("--json", action="store_true", help="Print header fields as JSON and skip the image")

    p_batch = sub.add_parser("batch", help="Convert every .stl file in a folder")
    p_batch.add_argument("--input", default=None, help="Input folder (default: from config)")
    p_batch.add_argument("--output", default=None, help="Output folder (default: from config)")
    p_batch.add_argument("--dicom", action="store_true", default=None, help="Also write DICOM files")
    p_batch.add_argument("--max-files", type=int, default=None)

    p_show = sub.add_parser("show", help="Display the decoded image")
    p_show.add_argument("input", help="Path to the .stl file")
    return p


def _setup_logging(verbose: bool) -> None:
    level = "DEBUG" if verbose else str(CONFIG["logging"]["level"]).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(levelname)-8s %(message)s",
    )


def _convert(args: argparse.Namespace) -> int:
    with StlFileReader.open(args.input, date_format=CONFIG["metadata"]["date_format"]) as reader:
        metadata = reader.extract_metadata()

        if args.json:
            print(metadata_to_json(metadata, indent=2))
            return 0

        print("=== Header Metadata ===")
        for value in metadata:
            print(f"  {value.id:<16}: {value.formatted}")
        print()

        raster = reader.get_raster(
            lower=CONFIG["decoding"]["lower_percentile"],
            upper=CONFIG["decoding"]["upper_percentile"],
        )

    output = args.output or os.path.splitext(args.input)[0] + ".png"
    save_png(raster, output)
    print(f"Saved: {output}")

    if args.dicom:
        dcm_path = os.path.splitext(output)[0] + ".dcm"
        write_dicom(raster, dcm_path, metadata=metadata)
        print(f"Saved: {dcm_path}")
    return 0


def _batch(args: argparse.Namespace) -> int:
    report = convert_folder(
        input_folder=args.input,
        output_folder=args.output,
        dicom=args.dicom,
        max_files=args.max_files,
    )
    print(report.summary())
    return 0 if report.failed == 0 else 1


def _show(args: argparse.Namespace) -> int:
    import matplotlib.pyplot as plt

    from xray_stl.visualization import plot_raster

    with StlFileReader.open(args.input) as reader:
        raster = reader.get_raster()
    plot_raster(raster, title=os.path.basename(args.input))
    plt.show()
    return 0


_COMMANDS = {
    "convert": _convert,
    "batch": _batch,
    "show": _show,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    try:
        return _COMMANDS[args.cmd](args)
    except (StlError, OSError) as exc:
        logger.debug("Command %s failed", args.cmd, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
