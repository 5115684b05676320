from __future__ import annotations

import logging
import threading
from typing import Optional, Tuple, Union

import numpy as np
from PIL import Image

from .errors import FilterError, ValidationError
from .filters import Filter, NoopFilter
from .frames import BufferLike, FrameLayout, ensure_frame, frame_view

__all__ = ["FakecamTransform", "ERROR_POLICIES", "GREEN"]

GREEN: Tuple[int, int, int] = (0, 255, 0)
ERROR_POLICIES = ("passthrough", "skip", "halt")

BackgroundSource = Union[Image.Image, np.ndarray]


class FakecamTransform:
    """
    In-place frame transform that owns the background and the filter.

    Every call into the filter, and every change to the background or the
    filter, happens under one lock so that a resize never overlaps a frame
    in flight.
    """

    def __init__(
        self,
        filter: Optional[Filter] = None,
        background: Optional[BackgroundSource] = None,
        *,
        width: int = 1920,
        height: int = 1080,
        color: Tuple[int, int, int] = GREEN,
        on_error: str = "passthrough",
    ) -> None:
        if on_error not in ERROR_POLICIES:
            raise ValueError(f"Unknown error policy '{on_error}'. Choices: {list(ERROR_POLICIES)}")
        self._lock = threading.Lock()
        self._filter: Filter = filter if filter is not None else NoopFilter()
        self._source: Optional[Image.Image] = None
        self.color = tuple(color)
        self.on_error = on_error
        self.layout = FrameLayout(width, height)
        if background is not None:
            self._source = self._to_image(background)
        self._bg_frame = self._render_background()

    @property
    def filter(self) -> Filter:
        return self._filter

    @property
    def background(self) -> np.ndarray:
        return self._bg_frame

    @staticmethod
    def _to_image(background: BackgroundSource) -> Image.Image:
        if isinstance(background, Image.Image):
            return background.convert("RGB")
        ensure_frame(background, "background")
        return Image.fromarray(np.ascontiguousarray(background))

    def _render_background(self) -> np.ndarray:
        size = (self.layout.width, self.layout.height)
        if self._source is None:
            frame = np.empty((self.layout.height, self.layout.width, 3), dtype=np.uint8)
            frame[...] = np.asarray(self.color, dtype=np.uint8)
        elif self._source.size == size:
            frame = np.array(self._source, dtype=np.uint8)
        else:
            frame = np.array(self._source.resize(size, Image.BILINEAR), dtype=np.uint8)
        frame.flags.writeable = False
        return frame

    def set_caps(self, width: int, height: int, stride: Optional[int] = None) -> None:
        layout = FrameLayout(width, height, stride=stride)
        with self._lock:
            resized = (layout.width, layout.height) != (self.layout.width, self.layout.height)
            self.layout = layout
            if resized:
                self._bg_frame = self._render_background()
                self._filter.reset()
        logging.info("Caps set to %dx%d", width, height)

    def set_background(self, background: BackgroundSource) -> None:
        image = self._to_image(background)
        with self._lock:
            self._source = image
            self._bg_frame = self._render_background()

    def set_filter(self, filter: Filter) -> None:
        with self._lock:
            self._filter = filter

    def transform_ip(self, buffer: BufferLike) -> bool:
        """
        Filter one raw RGB plane laid out according to the current caps.
        """

        with self._lock:
            try:
                frame = frame_view(buffer, self.layout)
            except ValidationError as exc:
                return self._handle_error(exc)
            return self._filter_locked(frame)

    def transform_frame(self, frame: np.ndarray) -> bool:
        with self._lock:
            return self._filter_locked(frame)

    def _filter_locked(self, frame: np.ndarray) -> bool:
        try:
            ensure_frame(frame, "source", writeable=True)
            if frame.shape[:2] != (self.layout.height, self.layout.width):
                raise ValidationError(
                    f"Frame has size {frame.shape[:2]} but caps are "
                    f"{(self.layout.height, self.layout.width)}."
                )
            self._filter.filter_inplace(frame, self._bg_frame)
        except FilterError as exc:
            return self._handle_error(exc)
        return True

    def _handle_error(self, exc: FilterError) -> bool:
        logging.error("Filtering failed: %s", exc)
        if self.on_error == "halt":
            raise exc
        return False
