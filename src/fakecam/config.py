from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Union

from .compositing import MatteRefinement
from .errors import FilterError
from .filters import Filter, MattingFilter, ModelContract, NoopFilter, SessionConfig
from .filters.rvm import FrameObserver
from .utils.downloads import download_file

__all__ = [
    "ModelSpec",
    "MODEL_REGISTRY",
    "DEFAULT_MODEL",
    "NoopConfig",
    "MattingConfig",
    "FilterConfig",
    "create_filter",
    "ensure_model",
]

RVM_RELEASE_URL = "https://github.com/PeterL1n/RobustVideoMatting/releases/download/v1.0.0/"


@dataclass(frozen=True)
class ModelSpec:
    name: str
    url: Optional[str]
    contract: ModelContract
    sha256: Optional[str] = None
    extension: str = ".onnx"

    def weights_path(self, root: Path) -> Path:
        return Path(root) / f"{self.name}{self.extension}"


MODEL_REGISTRY: Dict[str, ModelSpec] = {
    "rvm-mobilenetv3-fp32": ModelSpec(
        name="rvm_mobilenetv3_fp32",
        url=RVM_RELEASE_URL + "rvm_mobilenetv3_fp32.onnx",
        contract=ModelContract(pixel_scale=1.0 / 255.0, swap_rb=False, downsample_ratio=0.25),
    ),
    "rvm-mobilenetv3-fp16": ModelSpec(
        name="rvm_mobilenetv3_fp16",
        url=RVM_RELEASE_URL + "rvm_mobilenetv3_fp16.onnx",
        contract=ModelContract(
            pixel_scale=1.0 / 255.0, swap_rb=False, downsample_ratio=0.25, dtype="float16"
        ),
    ),
    "rvm-resnet50-fp32": ModelSpec(
        name="rvm_resnet50_fp32",
        url=RVM_RELEASE_URL + "rvm_resnet50_fp32.onnx",
        contract=ModelContract(pixel_scale=1.0 / 255.0, swap_rb=False, downsample_ratio=0.25),
    ),
    "rvm-resnet50-fp16": ModelSpec(
        name="rvm_resnet50_fp16",
        url=RVM_RELEASE_URL + "rvm_resnet50_fp16.onnx",
        contract=ModelContract(
            pixel_scale=1.0 / 255.0, swap_rb=False, downsample_ratio=0.25, dtype="float16"
        ),
    ),
}

DEFAULT_MODEL = "rvm-mobilenetv3-fp32"


def ensure_model(name: str, weights_dir: Path) -> Path:
    if name not in MODEL_REGISTRY:
        raise ValueError(f"Unknown model '{name}'. Choices: {list(MODEL_REGISTRY)}")
    spec = MODEL_REGISTRY[name]
    path = spec.weights_path(weights_dir)
    if path.exists() and path.stat().st_size > 0 and not spec.sha256:
        return path
    if not spec.url:
        raise RuntimeError(f"No download source available for model '{name}'.")
    return download_file(spec.url, path, spec.sha256)


@dataclass
class NoopConfig:
    kind: str = field(default="noop", init=False)


@dataclass
class MattingConfig:
    model_name: str = DEFAULT_MODEL
    model_path: Optional[Path] = None
    weights_dir: Path = field(default_factory=lambda: Path("~/.cache/fakecam").expanduser())
    download: bool = False
    contract: Optional[ModelContract] = None
    session: SessionConfig = field(default_factory=SessionConfig)
    refinement: Optional[MatteRefinement] = None
    kind: str = field(default="rvm", init=False)

    def __post_init__(self) -> None:
        if self.model_name not in MODEL_REGISTRY:
            raise ValueError(f"Unknown model '{self.model_name}'. Choices: {list(MODEL_REGISTRY)}")
        if self.contract is None:
            self.contract = MODEL_REGISTRY[self.model_name].contract

    def resolve_model_path(self) -> Path:
        if self.model_path is not None:
            return Path(self.model_path).expanduser()
        if self.download:
            return ensure_model(self.model_name, self.weights_dir)
        return MODEL_REGISTRY[self.model_name].weights_path(self.weights_dir)


FilterConfig = Union[NoopConfig, MattingConfig]


def create_filter(
    config: FilterConfig,
    *,
    fallback: bool = False,
    observer: Optional[FrameObserver] = None,
) -> Filter:
    """
    Build the filter described by ``config``.

    With ``fallback`` set, a matting filter whose model cannot be loaded is
    replaced by a :class:`NoopFilter` so the stream keeps flowing.
    """

    if isinstance(config, NoopConfig):
        return NoopFilter()
    if isinstance(config, MattingConfig):
        try:
            return MattingFilter.from_config(config, observer=observer)
        except (FilterError, OSError, ValueError) as exc:
            if not fallback:
                raise
            logging.warning("Matting filter unavailable (%s); frames pass through unchanged.", exc)
            return NoopFilter()
    raise TypeError(f"Unsupported filter configuration {config!r}")
