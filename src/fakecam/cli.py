from __future__ import annotations

import argparse
import json
import logging
from dataclasses import replace
from pathlib import Path
from statistics import mean
from typing import Dict, Optional, Sequence, Tuple

from .compositing import MatteRefinement
from .config import DEFAULT_MODEL, MODEL_REGISTRY, MattingConfig, NoopConfig
from .errors import FilterError
from .filters import SessionConfig
from .filters.engine import OPTIMIZATION_LEVELS
from .pipeline import BackgroundReplacer, PipelineConfig
from .transform import ERROR_POLICIES


def parse_color(value: str) -> Tuple[int, int, int]:
    try:
        parts = tuple(int(part) for part in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid color '{value}', expected R,G,B.") from None
    if len(parts) != 3 or not all(0 <= part <= 255 for part in parts):
        raise argparse.ArgumentTypeError(f"Invalid color '{value}', expected R,G,B in 0..255.")
    return parts  # type: ignore[return-value]


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Replace the background behind a person in a frame sequence without a green screen.",
    )
    parser.add_argument(
        "--input-dir",
        type=Path,
        required=True,
        help="Directory containing the source frames. Frames are processed in sorted order.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        required=True,
        help="Directory where composited PNG frames will be written.",
    )
    parser.add_argument(
        "--background",
        type=Path,
        default=None,
        help="Background image. It is resized to the frame size.",
    )
    parser.add_argument(
        "--color",
        type=parse_color,
        default=(0, 255, 0),
        help="Solid background color used when no background image is given (default: 0,255,0).",
    )
    parser.add_argument(
        "--filter",
        choices=["rvm", "noop"],
        default="rvm",
        help="Background replacement algorithm.",
    )
    parser.add_argument(
        "--model",
        type=Path,
        default=None,
        help="Path to an RVM ONNX export. Overrides --model-name.",
    )
    parser.add_argument(
        "--model-name",
        default=DEFAULT_MODEL,
        choices=list(MODEL_REGISTRY.keys()),
        help="Published RVM export to use. Available: " + ", ".join(MODEL_REGISTRY.keys()),
    )
    parser.add_argument(
        "--weights-dir",
        type=Path,
        default=Path("~/.cache/fakecam").expanduser(),
        help="Directory used to cache downloaded models.",
    )
    parser.add_argument(
        "--download",
        action="store_true",
        help="Download the model named by --model-name if it is not cached yet.",
    )
    parser.add_argument(
        "--downsample-ratio",
        type=float,
        default=None,
        help="Override the model's internal working resolution, in (0, 1].",
    )
    parser.add_argument(
        "--swap-rb",
        action="store_true",
        default=None,
        help="Feed the model BGR instead of RGB.",
    )
    parser.add_argument(
        "--device",
        type=str,
        default="cpu",
        help="Inference device, e.g. cpu or cuda:0.",
    )
    parser.add_argument(
        "--threads",
        type=int,
        default=4,
        help="Number of intra-op threads used by onnxruntime.",
    )
    parser.add_argument(
        "--optimization-level",
        choices=list(OPTIMIZATION_LEVELS.keys()),
        default="basic",
        help="onnxruntime graph optimization level.",
    )
    parser.add_argument(
        "--tensorrt",
        action="store_true",
        help="Try the TensorRT execution provider first (CUDA devices only).",
    )
    parser.add_argument(
        "--alpha-threshold",
        type=float,
        default=None,
        help="Optional hard threshold [0,1] applied to the alpha matte.",
    )
    parser.add_argument(
        "--refine-dilate",
        type=int,
        default=0,
        help="Optional number of 3x3 dilation iterations applied to the matte.",
    )
    parser.add_argument(
        "--refine-feather",
        type=int,
        default=0,
        help="Optional gaussian blur radius (pixels) to feather matte edges.",
    )
    parser.add_argument(
        "--on-error",
        choices=list(ERROR_POLICIES),
        default="passthrough",
        help="What to do with a frame the filter fails on.",
    )
    parser.add_argument(
        "--fallback",
        action="store_true",
        help="Pass frames through unchanged if the model cannot be loaded.",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Overwrite outputs even if the file already exists.",
    )
    parser.add_argument(
        "--json",
        dest="json_report",
        type=Path,
        default=None,
        help="Optional path to write a JSON timing report.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> PipelineConfig:
    if args.filter == "noop":
        filter_config = NoopConfig()
    else:
        contract = MODEL_REGISTRY[args.model_name].contract
        overrides = {}
        if args.downsample_ratio is not None:
            overrides["downsample_ratio"] = args.downsample_ratio
        if args.swap_rb is not None:
            overrides["swap_rb"] = args.swap_rb
        if overrides:
            contract = replace(contract, **overrides)

        filter_config = MattingConfig(
            model_name=args.model_name,
            model_path=args.model,
            weights_dir=args.weights_dir.expanduser(),
            download=args.download,
            contract=contract,
            session=SessionConfig(
                device=args.device,
                num_threads=args.threads,
                optimization_level=args.optimization_level,
                use_tensorrt=args.tensorrt,
            ),
            refinement=MatteRefinement(
                threshold=args.alpha_threshold,
                dilate=max(0, args.refine_dilate),
                feather=max(0, args.refine_feather),
            ),
        )

    return PipelineConfig(
        filter=filter_config,
        background=args.background.expanduser() if args.background else None,
        color=args.color,
        on_error=args.on_error,
        fallback=args.fallback,
    )


def run() -> None:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args.input_dir = args.input_dir.expanduser()
    args.output_dir = args.output_dir.expanduser()

    if not args.input_dir.exists():
        raise SystemExit(f"Input directory {args.input_dir} does not exist.")

    try:
        config = build_config(args)
        replacer = BackgroundReplacer(config)
    except (FilterError, ValueError, OSError) as exc:
        raise SystemExit(f"Failed to set up the filter: {exc}") from exc

    print(f"[+] Running filter: {replacer.transform.filter!r}")
    try:
        timings = replacer.process_directory(
            args.input_dir,
            args.output_dir,
            overwrite=args.overwrite,
        )
    except FilterError as exc:
        raise SystemExit(f"Stopped: {exc}") from exc

    if not timings:
        print("    No frames processed (perhaps outputs already exist?).")
        return

    total_time = sum(timings.values())
    avg_time = mean(timings.values())
    print(
        f"    Processed {len(timings)} frames | total {total_time:.2f}s | avg {avg_time:.3f}s"
        f" | {replacer.failed_frames} failed"
    )

    if args.json_report:
        report: Dict[str, float] = {
            "frames": len(timings),
            "failed_frames": replacer.failed_frames,
            "total_seconds": total_time,
            "avg_seconds": avg_time,
        }
        args.json_report.parent.mkdir(parents=True, exist_ok=True)
        with args.json_report.open("w", encoding="utf-8") as handle:
            json.dump(report, handle, indent=2)
        print(f"[+] Wrote timing report to {args.json_report}")


if __name__ == "__main__":
    run()
