from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np
import torch

from ..compositing import MatteRefinement, apply_mask, refine_matte
from ..errors import BackendError, FilterError, LogicError, ValidationError
from ..frames import ensure_frame
from .base import Filter
from .engine import InferenceEngine, OnnxInferenceEngine, SessionConfig

__all__ = ["ModelContract", "MattingFilter", "FrameObserver"]

FrameObserver = Callable[[np.ndarray, np.ndarray], None]
RecurrentState = Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]

NUM_OUTPUTS = 6


@dataclass(frozen=True)
class ModelContract:
    """
    Properties of a trained matting model that the filter has to honour.

    ``pixel_scale`` maps 8-bit intensities into the range the network was
    trained on and its inverse maps the foreground prediction back.
    ``swap_rb`` reverses channel order on the way in and out.
    """

    pixel_scale: float = 1.0 / 255.0
    swap_rb: bool = False
    downsample_ratio: float = 0.25
    dtype: str = "float32"

    def __post_init__(self) -> None:
        if not 0.0 < self.downsample_ratio <= 1.0:
            raise ValueError(f"downsample_ratio must be in (0, 1], got {self.downsample_ratio}")
        if self.pixel_scale <= 0.0:
            raise ValueError(f"pixel_scale must be positive, got {self.pixel_scale}")
        if self.dtype not in ("float32", "float16"):
            raise ValueError(f"Unsupported tensor dtype '{self.dtype}'")

    @property
    def numpy_dtype(self) -> np.dtype:
        return np.dtype(self.dtype)

    def initial_state(self) -> RecurrentState:
        zeros = np.zeros((1, 1, 1, 1), dtype=self.numpy_dtype)
        return (zeros, zeros.copy(), zeros.copy(), zeros.copy())


class MattingFilter(Filter):
    """
    Background replacement with a recurrent video matting network.

    The engine receives ``[src, r1, r2, r3, r4, downsample_ratio]`` and must
    answer with ``[fgr, pha, r1, r2, r3, r4]``. The recurrent tensors of a
    successful call are fed into the next one; a failed call leaves both the
    frame and the recurrent state as they were.
    """

    def __init__(
        self,
        model_path: Optional[Union[str, Path]] = None,
        contract: Optional[ModelContract] = None,
        session_config: Optional[SessionConfig] = None,
        *,
        engine: Optional[InferenceEngine] = None,
        refinement: Optional[MatteRefinement] = None,
        observer: Optional[FrameObserver] = None,
    ) -> None:
        if engine is None:
            if model_path is None:
                raise BackendError("Either a model path or an inference engine is required.")
            engine = OnnxInferenceEngine(model_path, session_config)
        self.engine = engine
        self.contract = contract or ModelContract()
        self.refinement = refinement
        self.observer = observer
        self.frame_count = 0
        self._downsample_ratio = np.array([self.contract.downsample_ratio], dtype=np.float32)
        self._recurrent: Optional[RecurrentState] = self.contract.initial_state()

    @classmethod
    def from_config(cls, config, observer: Optional[FrameObserver] = None) -> "MattingFilter":
        return cls(
            config.resolve_model_path(),
            config.contract,
            config.session,
            refinement=config.refinement,
            observer=observer,
        )

    @property
    def recurrent_state(self) -> Optional[RecurrentState]:
        return self._recurrent

    @property
    def downsample_ratio(self) -> float:
        return self.contract.downsample_ratio

    def reset(self) -> None:
        self._recurrent = self.contract.initial_state()
        self.frame_count = 0

    def filter_inplace(self, src_image: np.ndarray, bg_image: np.ndarray) -> None:
        self._validate(src_image, bg_image)

        src = self._preprocess(src_image)
        recurrent, self._recurrent = self._recurrent, None
        try:
            outputs = self._infer(src, recurrent)
            fgr, pha = self._postprocess(outputs[0], outputs[1], src_image.shape[:2])
            composite = self._composite(fgr, bg_image, pha)
        except BaseException:
            self._recurrent = recurrent
            raise

        np.copyto(src_image, composite)
        self._recurrent = (outputs[2], outputs[3], outputs[4], outputs[5])
        self.frame_count += 1

        if self.observer is not None:
            self.observer(src_image, pha)

    @staticmethod
    def _validate(src_image: np.ndarray, bg_image: np.ndarray) -> None:
        ensure_frame(src_image, "source", writeable=True)
        ensure_frame(bg_image, "background")
        if src_image.shape != bg_image.shape:
            raise ValidationError(
                f"Camera image has size {src_image.shape[:2]} "
                f"but background image has size {bg_image.shape[:2]}."
            )

    def _preprocess(self, src_image: np.ndarray) -> np.ndarray:
        try:
            tensor = torch.from_numpy(src_image).permute(2, 0, 1).unsqueeze(0)
            tensor = tensor.to(torch.float32) * self.contract.pixel_scale
            if self.contract.swap_rb:
                tensor = tensor.flip(1)
            return tensor.contiguous().numpy().astype(self.contract.numpy_dtype, copy=False)
        except Exception as exc:
            raise BackendError(f"Failed to convert frame to a tensor: {exc}") from exc

    def _infer(self, src: np.ndarray, recurrent: RecurrentState) -> List[np.ndarray]:
        inputs = [src, *recurrent, self._downsample_ratio]
        try:
            outputs = self.engine.run(inputs)
        except FilterError:
            raise
        except Exception as exc:
            raise BackendError(str(exc)) from exc

        try:
            outputs = [np.asarray(output) for output in outputs]
        except TypeError as exc:
            raise LogicError(
                f"Expected a sequence of six output tensors, got {type(outputs).__name__}"
            ) from exc
        if len(outputs) != NUM_OUTPUTS:
            raise LogicError(f"Expected six output tensors, got {len(outputs)}")
        return outputs

    def _postprocess(
        self, fgr: np.ndarray, pha: np.ndarray, size: Sequence[int]
    ) -> Tuple[np.ndarray, np.ndarray]:
        height, width = size
        if fgr.shape != (1, 3, height, width):
            raise BackendError(
                f"Foreground tensor has shape {fgr.shape}, expected {(1, 3, height, width)}"
            )
        if pha.shape != (1, 1, height, width):
            raise BackendError(
                f"Alpha tensor has shape {pha.shape}, expected {(1, 1, height, width)}"
            )
        if not np.isfinite(fgr).all():
            raise BackendError("Foreground tensor contains non-finite values")

        try:
            fgr_t = torch.from_numpy(fgr.astype(np.float32, copy=False))
            if self.contract.swap_rb:
                fgr_t = fgr_t.flip(1)
            fgr_np = (fgr_t[0].permute(1, 2, 0) / self.contract.pixel_scale).numpy()

            pha_t = torch.from_numpy(pha.astype(np.float32, copy=False))[0, 0]
            pha_t = torch.nan_to_num(pha_t, nan=0.0, posinf=1.0, neginf=0.0).clamp(0, 1)
            pha_np = pha_t.numpy()

            refinement = self.refinement
            if refinement is not None and refinement.enabled:
                pha_np = refine_matte(
                    pha_np,
                    threshold=refinement.threshold,
                    dilate=refinement.dilate,
                    feather=refinement.feather,
                )
        except Exception as exc:
            raise BackendError(f"Failed to convert model outputs: {exc}") from exc

        return fgr_np, pha_np

    @staticmethod
    def _composite(fgr: np.ndarray, bg_image: np.ndarray, pha: np.ndarray) -> np.ndarray:
        try:
            return apply_mask(fgr, bg_image, pha, dtype=np.uint8)
        except ValueError as exc:
            raise BackendError(f"Compositing failed: {exc}") from exc

    def __repr__(self) -> str:
        return f"MattingFilter(engine={self.engine!r}, contract={self.contract!r})"
