from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import numpy as np
from PIL import Image

from .config import FilterConfig, MattingConfig, create_filter
from .filters.rvm import FrameObserver
from .transform import GREEN, FakecamTransform


@dataclass
class PipelineConfig:
    filter: FilterConfig = field(default_factory=MattingConfig)
    background: Optional[Path] = None
    color: Tuple[int, int, int] = GREEN
    on_error: str = "passthrough"
    fallback: bool = False


class BackgroundReplacer:
    """
    Replace the background in an ordered sequence of frames.

    Frames are fed through one filter instance in order, so a recurrent
    model carries temporal context from each frame to the next.
    """

    def __init__(self, config: PipelineConfig, observer: Optional[FrameObserver] = None) -> None:
        self.config = config
        filter = create_filter(config.filter, fallback=config.fallback, observer=observer)

        background = None
        if config.background is not None:
            with Image.open(config.background) as img:
                background = img.convert("RGB")

        self.transform = FakecamTransform(
            filter,
            background,
            color=config.color,
            on_error=config.on_error,
        )
        self.failed_frames = 0

    def replace_background(self, image: Image.Image) -> Optional[Image.Image]:
        """
        Returns the composited frame, the untouched frame when filtering
        failed under the ``passthrough`` policy, or None under ``skip``.
        """

        frame = np.array(image.convert("RGB"), dtype=np.uint8)
        height, width = frame.shape[:2]
        layout = self.transform.layout
        if (layout.width, layout.height) != (width, height):
            self.transform.set_caps(width, height)

        if not self.transform.transform_frame(frame):
            self.failed_frames += 1
            if self.config.on_error == "skip":
                return None
        return Image.fromarray(frame)

    def process_directory(
        self,
        input_dir: Path,
        output_dir: Path,
        overwrite: bool = False,
    ) -> Dict[str, float]:
        input_dir = Path(input_dir)
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        timings: Dict[str, float] = {}

        for image_path in sorted(self._iter_images(input_dir)):
            destination = output_dir / (image_path.relative_to(input_dir).with_suffix(".png"))
            if destination.exists() and not overwrite:
                continue

            start = time.perf_counter()
            with Image.open(image_path) as img:
                result = self.replace_background(img)
            elapsed = time.perf_counter() - start

            if result is None:
                logging.warning("Skipped %s", image_path)
                continue
            destination.parent.mkdir(parents=True, exist_ok=True)
            result.save(destination)
            timings[str(image_path)] = elapsed

        return timings

    @staticmethod
    def _iter_images(path: Path) -> Iterable[Path]:
        exts = {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".webp"}
        for file in path.rglob("*"):
            if file.suffix.lower() in exts:
                yield file
