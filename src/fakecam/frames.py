from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from .errors import ValidationError

__all__ = ["FrameLayout", "frame_view", "ensure_frame"]

BufferLike = Union[bytearray, memoryview, np.ndarray]


@dataclass(frozen=True)
class FrameLayout:
    """
    Descriptor of a single interleaved 8-bit image plane.

    ``stride`` is the number of bytes between the starts of two rows. It
    defaults to ``width * channels`` (tightly packed rows).
    """

    width: int
    height: int
    channels: int = 3
    stride: Optional[int] = None

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValidationError(
                f"Frame dimensions must be positive, got {self.width}x{self.height}"
            )
        if self.channels <= 0:
            raise ValidationError(f"Channel count must be positive, got {self.channels}")
        if self.stride is not None and self.stride < self.row_bytes:
            raise ValidationError(
                f"Stride {self.stride} is smaller than a packed row ({self.row_bytes} bytes)"
            )

    @property
    def row_bytes(self) -> int:
        return self.width * self.channels

    @property
    def row_stride(self) -> int:
        return self.stride if self.stride is not None else self.row_bytes

    @property
    def required_bytes(self) -> int:
        # The last row does not need trailing padding.
        return self.row_stride * (self.height - 1) + self.row_bytes

    @property
    def shape(self) -> tuple:
        return (self.height, self.width, self.channels)


def frame_view(buffer: BufferLike, layout: FrameLayout) -> np.ndarray:
    """
    Return a zero-copy ``(H, W, C)`` uint8 view over ``buffer``.

    Writes through the view land in ``buffer``. Read-only buffers yield a
    read-only view.
    """

    if isinstance(buffer, np.ndarray):
        if buffer.dtype != np.uint8:
            raise ValidationError(f"Frame buffer must be uint8, got {buffer.dtype}")
        if not buffer.flags.c_contiguous:
            raise ValidationError("Frame buffer must be a contiguous plane")
        buffer = buffer.reshape(-1)

    raw = memoryview(buffer).cast("B")
    if raw.nbytes < layout.required_bytes:
        raise ValidationError(
            f"Frame buffer holds {raw.nbytes} bytes, "
            f"{layout.width}x{layout.height}x{layout.channels} "
            f"with stride {layout.row_stride} needs {layout.required_bytes}"
        )

    flat = np.frombuffer(raw, dtype=np.uint8)
    view = np.lib.stride_tricks.as_strided(
        flat,
        shape=layout.shape,
        strides=(layout.row_stride, layout.channels, 1),
        writeable=not raw.readonly,
    )
    return view


def ensure_frame(frame: np.ndarray, name: str, *, writeable: bool = False) -> None:
    if not isinstance(frame, np.ndarray):
        raise ValidationError(f"Expected {name} to be a numpy array, got {type(frame).__name__}")
    if frame.ndim != 3 or frame.shape[2] != 3:
        raise ValidationError(
            f"Expected a HWC {name} image (where C=3), got shape {frame.shape}"
        )
    if frame.dtype != np.uint8:
        raise ValidationError(f"Expected a uint8 {name} image, got {frame.dtype}")
    if writeable and not frame.flags.writeable:
        raise ValidationError(f"The {name} image is read-only")
