from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
import torch
import torch.nn.functional as F
from torchvision.transforms import functional as TF

__all__ = ["MatteRefinement", "apply_mask", "refine_matte", "quantize"]


@dataclass(frozen=True)
class MatteRefinement:
    threshold: Optional[float] = None
    dilate: int = 0
    feather: int = 0

    @property
    def enabled(self) -> bool:
        return self.threshold is not None or self.dilate > 0 or self.feather > 0


def _clean_mask(alpha_mask: np.ndarray) -> np.ndarray:
    mask = np.asarray(alpha_mask, dtype=np.float32)
    mask = np.nan_to_num(mask, nan=0.0, posinf=1.0, neginf=0.0)
    return np.clip(mask, 0.0, 1.0)


def quantize(image: np.ndarray, dtype: np.dtype = np.uint8) -> np.ndarray:
    """Round ``image`` and clip it into the range of the integer ``dtype``."""
    info = np.iinfo(dtype)
    return np.clip(np.rint(image), info.min, info.max).astype(dtype)


def apply_mask(
    foreground: np.ndarray,
    background: np.ndarray,
    alpha_mask: np.ndarray,
    dtype: Optional[np.dtype] = None,
) -> np.ndarray:
    """
    Blend ``foreground`` over ``background`` using a single-channel matte.

    Parameters
    ----------
    foreground: np.ndarray
        ``(H, W, C)`` image.
    background: np.ndarray
        ``(H, W, C)`` image in the same intensity range as ``foreground``.
    alpha_mask: np.ndarray
        ``(H, W)`` or ``(H, W, 1)`` matte, 1 for foreground and 0 for
        background. NaN is treated as 0 and values outside [0, 1] are
        clipped into it.
    dtype: Optional[np.dtype]
        Output dtype. Defaults to the dtype of ``foreground``. Integer
        dtypes are rounded and clipped to their range; anything else yields
        float32.
    """

    if foreground.shape != background.shape:
        raise ValueError(
            f"Foreground has shape {foreground.shape} but background has shape {background.shape}."
        )
    if foreground.ndim != 3:
        raise ValueError(f"Expected HWC images, got shape {foreground.shape}.")

    mask = _clean_mask(alpha_mask)
    if mask.ndim == 3 and mask.shape[2] == 1:
        mask = mask[..., 0]
    if mask.shape != foreground.shape[:2]:
        raise ValueError(
            f"Alpha mask has shape {mask.shape} but images are {foreground.shape[:2]}."
        )

    mask = mask[..., None]
    composite = foreground.astype(np.float32) * mask + background.astype(np.float32) * (1.0 - mask)

    out_dtype = np.dtype(dtype if dtype is not None else foreground.dtype)
    if np.issubdtype(out_dtype, np.integer):
        return quantize(composite, out_dtype)
    return composite


def refine_matte(
    alpha: np.ndarray,
    threshold: Optional[float] = None,
    dilate: int = 0,
    feather: int = 0,
) -> np.ndarray:
    """
    Threshold, dilate and feather an ``(H, W)`` matte. Returns float32 in [0, 1].
    """

    alpha_np = _clean_mask(alpha)

    if threshold is not None:
        threshold = max(0.0, min(1.0, threshold))
        alpha_np = (alpha_np >= threshold).astype(np.float32)

    if dilate > 0 or feather > 0:
        alpha_tensor = torch.from_numpy(np.ascontiguousarray(alpha_np)).unsqueeze(0).unsqueeze(0)
        for _ in range(dilate):
            alpha_tensor = F.max_pool2d(alpha_tensor, kernel_size=3, stride=1, padding=1)
        if feather > 0:
            kernel = 2 * feather + 1
            alpha_tensor = TF.gaussian_blur(alpha_tensor, kernel_size=kernel, sigma=float(feather))
        alpha_np = alpha_tensor[0, 0].clamp(0, 1).numpy()

    return alpha_np
