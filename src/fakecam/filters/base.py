from __future__ import annotations

import abc

import numpy as np


class Filter(abc.ABC):
    """
    Abstract base class for background replacement algorithms.

    Implementations are not reentrant; callers serialize access to one
    instance.
    """

    @abc.abstractmethod
    def filter_inplace(self, src_image: np.ndarray, bg_image: np.ndarray) -> None:
        """
        Replace the background of ``src_image`` with ``bg_image``, in place.

        Raises a :class:`~fakecam.errors.FilterError` on failure, in which
        case ``src_image`` is left untouched.
        """

    def filter(self, src_image: np.ndarray, bg_image: np.ndarray) -> np.ndarray:
        mod_image = src_image.copy()
        self.filter_inplace(mod_image, bg_image)
        return mod_image

    def reset(self) -> None:
        """Forget any state carried over from previous frames."""
