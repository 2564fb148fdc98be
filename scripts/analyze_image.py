#!/usr/bin/env python3
"""
Grade an H&E image with the histograde pipeline.

Decodes the image with OpenCV, runs deconvolution -> enhancement ->
segmentation -> morphometry -> scoring -> aggregation, and prints the
result as JSON.

Usage:
    python scripts/analyze_image.py tile.png --profile lung
    python scripts/analyze_image.py tile.png --config my_config.json \
        --threshold otsu --workers 4 --output result.json

Exit codes:
    0  success
    2  invalid input or configuration
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Setup path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from histograde.config import PipelineConfig
from histograde.errors import HistogradeError
from histograde.pipeline import GradingPipeline
from histograde.profiles import DEFAULT_PROFILE, get_profile, get_profile_choices
from histograde.utils.image_utils import load_image

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def parse_threshold(value: str):
    """'otsu' or an integer 0-255."""
    if value.lower() == "otsu":
        return "otsu"
    try:
        return int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"threshold must be an integer or 'otsu', got '{value}'")


def build_config(args) -> PipelineConfig:
    config = get_profile(args.profile)
    if args.config:
        config = PipelineConfig.from_json(args.config, base=config)

    overrides = {}
    if args.threshold is not None:
        overrides["segmentation_threshold"] = args.threshold
    if args.workers is not None:
        overrides["n_workers"] = args.workers
    if overrides:
        config = config.with_overrides(**overrides)
    return config


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Grade an H&E image")
    parser.add_argument("image", type=str,
                        help="Image file (PNG, JPEG, TIFF)")
    parser.add_argument("--profile", type=str, default=DEFAULT_PROFILE, choices=get_profile_choices(),
                        help="Tissue profile (weights and grade bands)")
    parser.add_argument("--config", type=str, default=None,
                        help="JSON file overriding profile values")
    parser.add_argument("--threshold", type=parse_threshold, default=None,
                        help="Segmentation threshold 0-255 or 'otsu'")
    parser.add_argument("--workers", type=int, default=None,
                        help="Worker threads for deconvolution/enhancement")
    parser.add_argument("--output", type=str, default=None,
                        help="Write the JSON result to this file instead of stdout")
    parser.add_argument("--verbose", action="store_true",
                        help="Debug logging")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = build_config(args)
        pipeline = GradingPipeline(config)
        buffer = load_image(args.image)
        logger.info(f"Loaded {args.image} ({buffer.width}x{buffer.height}), profile '{args.profile}'")
        result = pipeline.analyze(buffer)
    except HistogradeError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 2

    payload = result.to_dict()
    payload["image"] = str(args.image)
    payload["profile"] = args.profile
    text = json.dumps(payload, indent=2)

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(text)
        logger.info(f"Result written to {output_path}")
    else:
        print(text)

    logger.info(f"Grade: {result.grade} (score {result.overall_score:.3f}, confidence {result.overall_confidence:.3f})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
