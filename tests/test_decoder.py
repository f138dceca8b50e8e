"""Tests for xray_stl/decoder.py."""

import struct

import numpy as np
import pytest

from xray_stl.decoder import (
    HEADER_SIZE,
    Raster,
    decode_image,
    find_roll_seam,
    percentile_window,
    read_geometry,
    read_samples,
    roll_columns,
    stretch_contrast,
    to_display_orientation,
)
from xray_stl.errors import FormatError


def _make_stl(samples: np.ndarray, logical_width: int = 0, trailing: bytes = b"") -> bytes:
    """Build file contents: zero header with geometry words, then the samples."""
    header = bytearray(HEADER_SIZE)
    struct.pack_into("<HH", header, 0, logical_width, samples.shape[1])
    return bytes(header) + samples.astype("<u2").tobytes() + trailing


def _ramp(rows: int, cols: int, step: int = 10) -> np.ndarray:
    """Every row increases by *step* per column; rows differ by a small offset."""
    return (np.tile(np.arange(cols) * step, (rows, 1)) + np.arange(rows)[:, None]).astype(np.uint16)


class TestGeometry:
    def test_rows_derived_from_length(self):
        data = _make_stl(np.zeros((3, 4), dtype=np.uint16), logical_width=77, trailing=b"\x01" * 5)
        geometry = read_geometry(data)
        assert geometry.logical_width == 77
        assert geometry.stored_cols == 4
        assert geometry.stored_rows == 3

    def test_too_small_for_header(self):
        with pytest.raises(FormatError):
            read_geometry(b"\x00" * (HEADER_SIZE + 3))

    def test_zero_columns(self):
        with pytest.raises(FormatError):
            read_geometry(b"\x00" * (HEADER_SIZE + 100))

    def test_no_complete_row(self):
        header = bytearray(HEADER_SIZE)
        struct.pack_into("<HH", header, 0, 0, 1000)
        with pytest.raises(FormatError):
            read_geometry(bytes(header) + b"\x00" * 4)

    def test_samples_little_endian_row_major(self):
        samples = np.array([[1, 258], [65535, 4]], dtype=np.uint16)
        data = _make_stl(samples)
        np.testing.assert_array_equal(read_samples(data, read_geometry(data)), samples)


class TestSeamDetection:
    def test_finds_rolled_seam(self):
        stored = np.roll(_ramp(5, 40), 13, axis=1)
        assert find_roll_seam(stored) == 13

    def test_unrolling_restores_image(self):
        stored = np.roll(_ramp(5, 40), 13, axis=1)
        corrected = roll_columns(stored, find_roll_seam(stored))
        np.testing.assert_array_equal(corrected, _ramp(5, 40))

    def test_uniform_ramp_picks_first_candidate(self):
        # every boundary differs by the same amount; margin is 40 // 20 = 2
        samples = np.tile(np.arange(40) * 10, (4, 1)).astype(np.uint16)
        assert find_roll_seam(samples) == 3

    def test_flat_image_picks_first_candidate(self):
        assert find_roll_seam(np.full((4, 30), 500, dtype=np.uint16)) == 2

    def test_ties_resolve_to_first_maximum(self):
        row = [0] * 5 + [100] * 5 + [0] * 5 + [100] * 5
        samples = np.array([row] * 3, dtype=np.uint16)
        assert find_roll_seam(samples) == 5

    def test_border_margin_excluded(self):
        row = np.zeros(40, dtype=np.uint16)
        row[0] = 5000
        row[21:] = 50
        samples = np.tile(row, (4, 1))
        assert find_roll_seam(samples) == 21

    def test_two_columns_roll_by_one(self):
        samples = np.array([[10, 20], [30, 40]], dtype=np.uint16)
        assert find_roll_seam(samples) == 1

    def test_single_column_has_no_candidates(self):
        assert find_roll_seam(np.array([[5], [7]], dtype=np.uint16)) == 0

    def test_mean_over_rows_decides(self):
        samples = np.zeros((4, 40), dtype=np.uint16)
        samples[0, 10:] = 1000   # one row jumps hard at c=9
        samples[:, 30:] += 300   # every row jumps moderately at c=29
        # c=9 mean 250, c=29 mean 300
        assert find_roll_seam(samples) == 30


class TestRollColumns:
    def test_two_block_layout(self):
        samples = np.arange(6, dtype=np.uint16).reshape(1, 6)
        np.testing.assert_array_equal(roll_columns(samples, 2), [[2, 3, 4, 5, 0, 1]])

    def test_zero_is_identity(self):
        samples = np.arange(6, dtype=np.uint16).reshape(2, 3)
        np.testing.assert_array_equal(roll_columns(samples, 0), samples)


class TestContrast:
    def test_percentiles_of_uniform_thousand(self):
        rng = np.random.default_rng(7)
        samples = rng.permutation(1000).astype(np.uint16).reshape(10, 100)
        assert percentile_window(samples) == (4, 994)

    def test_stretch_maps_window_to_full_range(self):
        samples = np.array([[0, 255, 510]], dtype=np.uint16)
        np.testing.assert_array_equal(stretch_contrast(samples, 0, 510), [[0, 128, 255]])

    def test_values_outside_window_clamped(self):
        samples = np.array([[0, 1000]], dtype=np.uint16)
        np.testing.assert_array_equal(stretch_contrast(samples, 100, 300), [[0, 255]])

    def test_rounds_half_up(self):
        samples = np.array([[1, 3]], dtype=np.uint16)
        np.testing.assert_array_equal(stretch_contrast(samples, 0, 510), [[1, 2]])

    def test_degenerate_window_uses_unit_scale(self):
        samples = np.array([[3, 5], [6, 300]], dtype=np.uint16)
        np.testing.assert_array_equal(stretch_contrast(samples, 5, 5), [[0, 0], [1, 255]])

    def test_constant_image_decodes_to_black(self):
        raster = decode_image(_make_stl(np.full((4, 6), 1234, dtype=np.uint16)))
        assert set(raster.data) == {0}


class TestOrientation:
    def test_transpose_and_flip_law(self):
        stored = np.arange(12, dtype=np.uint16).reshape(3, 4)
        out = to_display_orientation(stored)
        rows, cols = stored.shape
        assert out.shape == (cols, rows)
        for r in range(rows):
            for c in range(cols):
                assert out[c, rows - 1 - r] == stored[r, c]


class TestDecodeImage:
    def test_two_by_two_fixture(self):
        samples = np.array([[10, 20], [30, 40]], dtype=np.uint16)
        raster = decode_image(_make_stl(samples))
        # seam 1 -> [[20, 10], [40, 30]], window (10, 30), scale 12.75
        # -> stored [[128, 0], [255, 255]]
        assert (raster.width, raster.height) == (2, 2)
        assert raster.data == bytes([255, 128, 255, 0])

    def test_dimensions_are_swapped(self):
        data = _make_stl(_ramp(5, 8), trailing=b"\x00\x00\x00")
        raster = decode_image(data)
        assert isinstance(raster, Raster)
        assert (raster.width, raster.height) == (5, 8)
        assert len(raster.data) == 40
        assert raster.as_array().shape == (8, 5)

    def test_rolled_image_is_unrolled_before_stretch(self):
        image = _ramp(6, 40)
        rolled = np.roll(image, 17, axis=1)
        lo, hi = percentile_window(image)
        expected = to_display_orientation(stretch_contrast(image, lo, hi))
        assert decode_image(_make_stl(rolled)).data == expected.tobytes()

    def test_truncated_file_raises(self):
        with pytest.raises(FormatError):
            decode_image(b"\x00" * 100)
