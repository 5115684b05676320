from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
import pytest


@dataclass
class EngineCall:
    inputs: List[np.ndarray]
    outputs: List[np.ndarray] = field(default_factory=list)


class RecordingEngine:
    """
    Stand-in for an onnxruntime session.

    The foreground echoes the input image, the matte is a constant and the
    recurrent outputs are fresh tensors whose values identify the call.
    """

    def __init__(
        self,
        alpha: float = 1.0,
        num_outputs: int = 6,
        error: Optional[Exception] = None,
        fgr_shape: Optional[Sequence[int]] = None,
    ) -> None:
        self.alpha = alpha
        self.num_outputs = num_outputs
        self.error = error
        self.fgr_shape = fgr_shape
        self.calls: List[EngineCall] = []

    def run(self, inputs: Sequence[np.ndarray]) -> List[np.ndarray]:
        call = EngineCall(inputs=list(inputs))
        self.calls.append(call)
        if self.error is not None:
            raise self.error

        src = inputs[0]
        _, _, height, width = src.shape
        fgr = src.astype(np.float32)
        if self.fgr_shape is not None:
            fgr = np.zeros(self.fgr_shape, dtype=np.float32)
        pha = np.full((1, 1, height, width), self.alpha, dtype=np.float32)
        step = len(self.calls)
        recurrent = [
            np.full((1, 16 * (idx + 1), 2, 2), step * 10 + idx, dtype=src.dtype)
            for idx in range(4)
        ]
        call.outputs = [fgr, pha, *recurrent][: self.num_outputs]
        return call.outputs


@pytest.fixture
def make_engine():
    return RecordingEngine


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def frame(rng: np.random.Generator) -> np.ndarray:
    return rng.integers(0, 256, size=(24, 32, 3), dtype=np.uint8)


@pytest.fixture
def background(rng: np.random.Generator) -> np.ndarray:
    return rng.integers(0, 256, size=(24, 32, 3), dtype=np.uint8)
