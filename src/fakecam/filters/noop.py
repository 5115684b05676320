from __future__ import annotations

import numpy as np

from .base import Filter

__all__ = ["NoopFilter"]


class NoopFilter(Filter):
    """
    Leaves frames untouched. Used as the fallback when no matting model is
    configured or available.
    """

    def filter_inplace(self, src_image: np.ndarray, bg_image: np.ndarray) -> None:
        return None

    def __repr__(self) -> str:
        return "NoopFilter()"
