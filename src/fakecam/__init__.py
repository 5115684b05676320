"""
Green-screen-free background replacement for live video.

A recurrent video matting network (RVM, run through onnxruntime) predicts
the person in each frame; the filter composites them over a background of
your choice, carrying the network's hidden state from frame to frame.
"""

from .compositing import MatteRefinement, apply_mask
from .config import MattingConfig, NoopConfig, create_filter
from .errors import BackendError, FilterError, LogicError, ValidationError
from .filters import Filter, MattingFilter, ModelContract, NoopFilter, SessionConfig
from .transform import FakecamTransform

__all__ = [
    "Filter",
    "NoopFilter",
    "MattingFilter",
    "ModelContract",
    "SessionConfig",
    "MatteRefinement",
    "MattingConfig",
    "NoopConfig",
    "create_filter",
    "apply_mask",
    "FakecamTransform",
    "FilterError",
    "ValidationError",
    "BackendError",
    "LogicError",
]
