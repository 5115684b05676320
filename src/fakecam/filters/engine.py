from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Protocol, Sequence, Tuple, Union

import numpy as np
import onnxruntime as ort
import torch

from ..errors import BackendError, LogicError

__all__ = ["InferenceEngine", "OnnxInferenceEngine", "SessionConfig"]


OPTIMIZATION_LEVELS: Dict[str, "ort.GraphOptimizationLevel"] = {
    "disable": ort.GraphOptimizationLevel.ORT_DISABLE_ALL,
    "basic": ort.GraphOptimizationLevel.ORT_ENABLE_BASIC,
    "extended": ort.GraphOptimizationLevel.ORT_ENABLE_EXTENDED,
    "all": ort.GraphOptimizationLevel.ORT_ENABLE_ALL,
}


class InferenceEngine(Protocol):
    """Synchronous engine taking and returning tensors in positional order."""

    def run(self, inputs: Sequence[np.ndarray]) -> Sequence[np.ndarray]:
        ...


@dataclass
class SessionConfig:
    device: str = "cpu"
    num_threads: int = 4
    optimization_level: str = "basic"
    use_tensorrt: bool = False

    def torch_device(self) -> torch.device:
        return torch.device(self.device)


class OnnxInferenceEngine:
    """
    ONNXRuntime session with positional inputs and outputs.
    """

    def __init__(self, model_path: Union[str, Path], config: SessionConfig | None = None) -> None:
        self.model_path = Path(model_path)
        self.config = config or SessionConfig()
        if not self.model_path.is_file():
            raise BackendError(f"Model file {self.model_path} does not exist.")
        if self.config.optimization_level not in OPTIMIZATION_LEVELS:
            raise BackendError(
                f"Unknown optimization level '{self.config.optimization_level}'. "
                f"Choices: {list(OPTIMIZATION_LEVELS)}"
            )

        try:
            self.session = self._load()
        except BackendError:
            raise
        except Exception as exc:
            raise BackendError(f"Failed to load model {self.model_path}: {exc}") from exc

        self.input_names: List[str] = [meta.name for meta in self.session.get_inputs()]
        self.output_names: List[str] = [meta.name for meta in self.session.get_outputs()]

    def _session_options(self) -> ort.SessionOptions:
        session_options = ort.SessionOptions()
        session_options.graph_optimization_level = OPTIMIZATION_LEVELS[self.config.optimization_level]
        if self.config.num_threads > 0:
            session_options.intra_op_num_threads = self.config.num_threads
        return session_options

    def _create_session(self, device: torch.device, *, tensorrt: bool) -> ort.InferenceSession:
        providers = self._build_providers(device, tensorrt=tensorrt)
        provider_names = [name for name, _ in providers]
        provider_options = [options for _, options in providers]
        return ort.InferenceSession(
            self.model_path.as_posix(),
            sess_options=self._session_options(),
            providers=provider_names,
            provider_options=provider_options,
        )

    def _load(self) -> ort.InferenceSession:
        device = self.config.torch_device()
        use_tensorrt = self.config.use_tensorrt and device.type == "cuda"

        try:
            session = self._create_session(device, tensorrt=use_tensorrt)
        except Exception:
            if not use_tensorrt:
                raise
            logging.warning("TensorRT provider failed to initialize; retrying without TensorRT.")
            session = self._create_session(device, tensorrt=False)

        if device.type == "cuda" and "CUDAExecutionProvider" not in session.get_providers():
            raise BackendError(
                "onnxruntime did not initialize the CUDAExecutionProvider. "
                "Install `onnxruntime-gpu` and ensure the NVIDIA driver/CUDA stack is available."
            )
        if use_tensorrt and "TensorrtExecutionProvider" not in session.get_providers():
            logging.warning(
                "TensorRT Execution Provider requested but not available; falling back to CUDA."
            )
        logging.info(
            "Loaded %s with providers %s", self.model_path.name, ", ".join(session.get_providers())
        )
        return session

    def _build_providers(
        self, device: torch.device, *, tensorrt: bool
    ) -> List[Tuple[str, Dict[str, str]]]:
        providers: List[Tuple[str, Dict[str, str]]] = [("CPUExecutionProvider", {})]
        if device.type != "cuda":
            return providers

        device_id = device.index if device.index is not None else 0
        cuda_options = {
            "device_id": str(device_id),
            "arena_extend_strategy": "kNextPowerOfTwo",
            "cudnn_conv_use_max_workspace": "1",
            "do_copy_in_default_stream": "1",
        }
        providers.insert(0, ("CUDAExecutionProvider", cuda_options))

        if tensorrt:
            trt_options = {
                "device_id": str(device_id),
                "trt_fp16_enable": "True",
                "trt_max_workspace_size": str(1 << 30),
            }
            providers.insert(0, ("TensorrtExecutionProvider", trt_options))

        return providers

    def run(self, inputs: Sequence[np.ndarray]) -> Sequence[np.ndarray]:
        if len(inputs) != len(self.input_names):
            raise LogicError(
                f"Model {self.model_path.name} expects {len(self.input_names)} inputs, "
                f"got {len(inputs)}"
            )
        ort_inputs = dict(zip(self.input_names, inputs))
        return self.session.run(self.output_names, ort_inputs)

    def __repr__(self) -> str:
        return f"OnnxInferenceEngine({self.model_path.as_posix()!r}, device={self.config.device!r})"
