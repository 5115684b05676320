from __future__ import annotations

import numpy as np
import pytest

from fakecam.filters import Filter, NoopFilter


@pytest.mark.parametrize("shape", [(1, 1, 3), (24, 32, 3), (480, 640, 3)])
def test_noop_leaves_frame_byte_identical(rng, shape):
    src = rng.integers(0, 256, size=shape, dtype=np.uint8)
    bg = rng.integers(0, 256, size=shape, dtype=np.uint8)
    before = src.tobytes()

    assert NoopFilter().filter_inplace(src, bg) is None
    assert src.tobytes() == before


def test_noop_filter_returns_equal_copy(frame, background):
    result = NoopFilter().filter(frame, background)

    assert result is not frame
    np.testing.assert_array_equal(result, frame)


def test_noop_reset_is_harmless():
    noop = NoopFilter()
    noop.reset()
    assert isinstance(noop, Filter)


def test_filter_requires_filter_inplace():
    with pytest.raises(TypeError):
        Filter()
