from .base import Filter
from .engine import InferenceEngine, OnnxInferenceEngine, SessionConfig
from .noop import NoopFilter
from .rvm import FrameObserver, MattingFilter, ModelContract

__all__ = [
    "Filter",
    "NoopFilter",
    "MattingFilter",
    "ModelContract",
    "FrameObserver",
    "InferenceEngine",
    "OnnxInferenceEngine",
    "SessionConfig",
]
