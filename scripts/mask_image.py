"""
scripts/mask_image.py

Mask a single image file with MaskingPipeline and write the result plus a
JSON report (counts, regions, style). Pass --seed for reproducible regions.

Usage:
python3 scripts/mask_image.py --input photo.jpg --output photo_masked.png --style pixelate --seed 7
"""

import argparse
import json
import logging
import random
import sys
from pathlib import Path

# ensure repo root on sys.path
repo_root_str = str(Path(__file__).resolve().parents[1])
if repo_root_str not in sys.path:
    sys.path.insert(0, repo_root_str)

from pii_masker.core.config import SETTINGS  # noqa: E402
from pii_masker.core.errors import ProcessingError  # noqa: E402
from pii_masker.core.pipeline import MaskingPipeline  # noqa: E402

logging.basicConfig(level=logging.INFO)
log = logging.getLogger("mask_image")


def main(argv=None):
    parser = argparse.ArgumentParser()
    parser.add_argument("--input", required=True, help="Path to an image file (PNG/JPG/GIF/WebP)")
    parser.add_argument("--output", help="Where to write the masked image (default: <input>_masked.png)")
    parser.add_argument("--style", default=SETTINGS.mask.default_style, choices=["blackbar", "blur", "pixelate"])
    parser.add_argument("--seed", type=int, help="Seed for region synthesis")
    parser.add_argument("--out-json", help="Optional output JSON report path")
    args = parser.parse_args(argv)

    img_path = Path(args.input)
    if not img_path.exists():
        log.error("Input image not found: %s", img_path)
        return 2

    out_path = Path(args.output) if args.output else img_path.with_name(img_path.stem + "_masked.png")
    rng = random.Random(args.seed) if args.seed is not None else None

    pipeline = MaskingPipeline(SETTINGS)
    try:
        result = pipeline.process_file(img_path, style=args.style, output_path=out_path, rng=rng)
    except ProcessingError as e:
        log.error("Processing failed: %s", e)
        return 1

    report = result.to_report()
    log.info("Detected: %s", report["detectedPII"])
    if args.out_json:
        Path(args.out_json).write_text(json.dumps(report, indent=2))
        print("Wrote report to", args.out_json)
    print("Wrote masked image to", out_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
