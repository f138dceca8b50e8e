"""
run_full_pipeline.py - End-to-end conversion demonstration.

Generates synthetic STL files (if data/raw has none), converts the whole
folder, saves inspection figures to reports/, and prints a final summary.

Usage
-----
    python scripts/run_full_pipeline.py

To use real scanner files instead of generated samples, copy them into
data/raw/ first:

    cp /media/cdrom/*.stl data/raw/
    python scripts/run_full_pipeline.py
"""

import logging
import os
import sys

# Ensure repo root is on sys.path regardless of launch directory
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _REPO_ROOT)

import matplotlib
matplotlib.use("Agg")  # non-interactive backend — works without a display

from xray_stl.config import CONFIG  # noqa: E402
from xray_stl.decoder import read_geometry, read_samples  # noqa: E402
from xray_stl.pipeline import convert_folder  # noqa: E402
from xray_stl.reader import StlFileReader  # noqa: E402
from xray_stl.visualization import plot_raster, plot_seam_profile  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)-8s %(message)s",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
INPUT_FOLDER = os.path.join(_REPO_ROOT, CONFIG["paths"]["input_folder"])
OUTPUT_FOLDER = os.path.join(_REPO_ROOT, CONFIG["paths"]["output_folder"])
REPORTS_FOLDER = os.path.join(_REPO_ROOT, "reports")


def _ensure_sample_data() -> None:
    """Generate synthetic data if data/raw/ has no .stl files."""
    os.makedirs(INPUT_FOLDER, exist_ok=True)
    stl_files = [f for f in os.listdir(INPUT_FOLDER) if f.lower().endswith(".stl")]
    if stl_files:
        logger.info("Found %d STL file(s) in %s — skipping generation.", len(stl_files), INPUT_FOLDER)
        return

    logger.info("No STL files in %s — generating samples…", INPUT_FOLDER)
    from scripts.generate_sample_data import generate  # noqa: E402 — lazy import
    generate(INPUT_FOLDER)


def main() -> None:
    os.makedirs(REPORTS_FOLDER, exist_ok=True)

    # ── Step 1: Ensure sample data exists ──────────────────────────────────
    print("=" * 60)
    print("STEP 1 — Prepare input data")
    print("=" * 60)
    _ensure_sample_data()
    stl_files = sorted(f for f in os.listdir(INPUT_FOLDER) if f.lower().endswith(".stl"))
    print(f"  Input folder : {INPUT_FOLDER}")
    print(f"  Files found  : {len(stl_files)}")
    print()

    # ── Step 2: Convert the folder ─────────────────────────────────────────
    print("=" * 60)
    print("STEP 2 — Batch conversion")
    print("=" * 60)
    report = convert_folder(input_folder=INPUT_FOLDER, output_folder=OUTPUT_FOLDER)
    print(report.summary())
    print()

    # ── Step 3: Inspect the first scan ─────────────────────────────────────
    print("=" * 60)
    print("STEP 3 — Header and seam profile of the first scan")
    print("=" * 60)
    first = os.path.join(INPUT_FOLDER, stl_files[0])
    with StlFileReader.open(first) as reader:
        for value in reader.extract_metadata():
            print(f"  {value.id:<16}: {value.formatted}")
        raster = reader.get_raster()

    with open(first, "rb") as f:
        data = f.read()
    samples = read_samples(data, read_geometry(data))
    print()

    # ── Step 4: Save visualisations ────────────────────────────────────────
    print("=" * 60)
    print("STEP 4 — Saving visualisations to reports/")
    print("=" * 60)

    fig = plot_raster(raster, title=stl_files[0])
    path = os.path.join(REPORTS_FOLDER, "raster.png")
    fig.savefig(path, dpi=100, bbox_inches="tight")
    print(f"  Saved: {path}")

    fig = plot_seam_profile(samples)
    path = os.path.join(REPORTS_FOLDER, "seam_profile.png")
    fig.savefig(path, dpi=100, bbox_inches="tight")
    print(f"  Saved: {path}")
    print()

    # ── Done ───────────────────────────────────────────────────────────────
    print("=" * 60)
    print("ALL STEPS COMPLETED")
    print("=" * 60)
    print(f"  Converted files → {OUTPUT_FOLDER}")
    print(f"  Visualisations  → {REPORTS_FOLDER}")
    print()


if __name__ == "__main__":
    main()
