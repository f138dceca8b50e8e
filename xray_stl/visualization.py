"""
visualization.py - matplotlib helpers for inspecting decoded STL scans.

All plot functions return the Figure so callers can save or display it
as needed.
"""

import logging
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np

from xray_stl.decoder import SEAM_MARGIN_DIVISOR, Raster, column_differences, find_roll_seam

logger = logging.getLogger(__name__)

# Consistent figure style across all plots
plt.rcParams.update({"figure.dpi": 100, "axes.titlesize": 11})


def plot_raster(
    raster: Raster,
    title: str = "X-ray",
    side_marker: Optional[str] = "L",
) -> plt.Figure:
    """
    Display a decoded raster in grayscale.

    Parameters
    ----------
    raster : Raster
        Decoded 8-bit image.
    title : str
        Plot title.
    side_marker : str, optional
        Laterality letter drawn in the bottom-right corner ("L" or "R");
        None to omit it.

    Returns
    -------
    plt.Figure
    """
    fig, ax = plt.subplots(figsize=(6, 6 * raster.height / max(raster.width, 1)))
    ax.imshow(raster.as_array(), cmap="gray", vmin=0, vmax=255)
    if side_marker:
        ax.text(
            0.97, 0.03, side_marker,
            transform=ax.transAxes,
            color="white",
            fontsize=16,
            fontweight="bold",
            ha="right",
            va="bottom",
        )
    ax.set_title(title)
    ax.axis("off")
    return fig


def plot_seam_profile(samples: np.ndarray) -> plt.Figure:
    """
    Plot the adjacent-column difference profile used for seam detection.

    The excluded border margins are shaded and the detected seam, if any,
    is marked with a vertical line.

    Parameters
    ----------
    samples : np.ndarray
        Raw samples in stored orientation, shape (rows, cols).

    Returns
    -------
    plt.Figure
    """
    diffs = column_differences(samples)
    cols = samples.shape[1]
    margin = cols // SEAM_MARGIN_DIVISOR
    seam_col = find_roll_seam(samples)

    fig, ax = plt.subplots(figsize=(10, 4))
    ax.plot(np.arange(1, cols), diffs, linewidth=0.8, color="steelblue")
    if margin:
        ax.axvspan(0, margin, color="grey", alpha=0.2, label="Excluded border")
        ax.axvspan(cols - margin - 1, cols - 1, color="grey", alpha=0.2)
    if seam_col:
        ax.axvline(seam_col, color="crimson", linestyle="--", label=f"Seam at column {seam_col}")

    ax.set_title("Column seam profile")
    ax.set_xlabel("Column boundary (c + 1)")
    ax.set_ylabel("Mean |column c - column c+1|")
    ax.grid(True, linestyle="--", alpha=0.6)
    if margin or seam_col:
        ax.legend()
    fig.tight_layout()
    return fig
