from __future__ import annotations

import numpy as np
import pytest

from fakecam.compositing import MatteRefinement, apply_mask, quantize, refine_matte


def test_zero_mask_returns_background(frame, background):
    mask = np.zeros(frame.shape[:2], dtype=np.float32)
    np.testing.assert_array_equal(apply_mask(frame, background, mask), background)


def test_unit_mask_returns_foreground(frame, background):
    mask = np.ones(frame.shape[:2], dtype=np.float32)
    np.testing.assert_array_equal(apply_mask(frame, background, mask), frame)


def test_mask_with_trailing_channel_axis(frame, background):
    mask = np.ones(frame.shape[:2] + (1,), dtype=np.float32)
    np.testing.assert_array_equal(apply_mask(frame, background, mask), frame)


def test_blend_is_linear_per_channel():
    fg = np.array([[[255, 0, 100]]], dtype=np.uint8)
    bg = np.array([[[0, 255, 50]]], dtype=np.uint8)
    mask = np.array([[0.25]], dtype=np.float32)

    result = apply_mask(fg, bg, mask)

    np.testing.assert_array_equal(result, np.array([[[64, 191, 62]]], dtype=np.uint8))


def test_out_of_range_mask_is_clipped(frame, background):
    high = np.full(frame.shape[:2], 3.0, dtype=np.float32)
    low = np.full(frame.shape[:2], -2.0, dtype=np.float32)
    nan = np.full(frame.shape[:2], np.nan, dtype=np.float32)

    np.testing.assert_array_equal(apply_mask(frame, background, high), frame)
    np.testing.assert_array_equal(apply_mask(frame, background, low), background)
    np.testing.assert_array_equal(apply_mask(frame, background, nan), background)


def test_float_output_dtype():
    fg = np.full((2, 2, 3), 0.8, dtype=np.float32)
    bg = np.full((2, 2, 3), 0.2, dtype=np.float32)
    mask = np.full((2, 2), 0.5, dtype=np.float32)

    result = apply_mask(fg, bg, mask)

    assert result.dtype == np.float32
    np.testing.assert_allclose(result, 0.5)


def test_explicit_integer_dtype_quantizes():
    fg = np.full((2, 2, 3), 300.4, dtype=np.float32)
    bg = np.zeros((2, 2, 3), dtype=np.uint8)
    mask = np.ones((2, 2), dtype=np.float32)

    result = apply_mask(fg, bg, mask, dtype=np.uint8)

    assert result.dtype == np.uint8
    assert (result == 255).all()


def test_inputs_are_not_modified(frame, background):
    fg_before, bg_before = frame.copy(), background.copy()
    apply_mask(frame, background, np.full(frame.shape[:2], 0.3, dtype=np.float32))
    np.testing.assert_array_equal(frame, fg_before)
    np.testing.assert_array_equal(background, bg_before)


@pytest.mark.parametrize(
    "fg_shape, bg_shape, mask_shape",
    [
        ((4, 4, 3), (4, 5, 3), (4, 4)),
        ((4, 4, 3), (4, 4, 3), (4, 5)),
        ((4, 4), (4, 4), (4, 4)),
    ],
)
def test_shape_mismatch_raises(fg_shape, bg_shape, mask_shape):
    with pytest.raises(ValueError):
        apply_mask(
            np.zeros(fg_shape, np.uint8),
            np.zeros(bg_shape, np.uint8),
            np.zeros(mask_shape, np.float32),
        )


def test_quantize_rounds_and_clips():
    values = np.array([-3.0, 0.4, 0.6, 254.5, 999.0])
    np.testing.assert_array_equal(quantize(values), np.array([0, 0, 1, 254, 255], dtype=np.uint8))


def test_refine_threshold_is_binary():
    alpha = np.array([[0.1, 0.49], [0.5, 0.9]], dtype=np.float32)
    refined = refine_matte(alpha, threshold=0.5)
    np.testing.assert_array_equal(refined, np.array([[0, 0], [1, 1]], dtype=np.float32))


def test_refine_dilate_grows_foreground():
    alpha = np.zeros((7, 7), dtype=np.float32)
    alpha[3, 3] = 1.0

    refined = refine_matte(alpha, dilate=1)

    expected = np.zeros((7, 7), dtype=np.float32)
    expected[2:5, 2:5] = 1.0
    np.testing.assert_array_equal(refined, expected)


def test_refine_feather_softens_edges():
    alpha = np.zeros((16, 16), dtype=np.float32)
    alpha[:, 8:] = 1.0

    refined = refine_matte(alpha, feather=2)

    assert refined.shape == alpha.shape
    assert refined.min() >= 0.0 and refined.max() <= 1.0
    assert 0.0 < refined[8, 7] < 1.0
    assert 0.0 < refined[8, 8] < 1.0


def test_refinement_enabled_flag():
    assert not MatteRefinement().enabled
    assert MatteRefinement(threshold=0.3).enabled
    assert MatteRefinement(feather=1).enabled
