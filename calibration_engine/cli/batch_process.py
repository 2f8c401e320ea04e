"""
Batch calibration: lock gains on one reference shot, then correct a folder.

    calibration-batch REFERENCE INPUT_DIR OUTPUT_DIR [--patch X Y SIZE | --auto]
"""
import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from tqdm import tqdm

# Load environment variables first
load_dotenv()

from ..models.region import PatchRegion
from ..pipeline.calibration_session import CalibrationSession
from ..pipeline.frame_pipeline import FramePipeline
from ..services.image_service import ImageService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Calibrate on a neutral patch and correct a batch of images.")
    parser.add_argument("reference", type=Path, help="Image containing the neutral reference patch")
    parser.add_argument("input_dir", type=Path, help="Folder of images to correct")
    parser.add_argument("output_dir", type=Path, help="Where corrected PNGs are written")
    where = parser.add_mutually_exclusive_group()
    where.add_argument("--patch", nargs=3, type=int, metavar=("X", "Y", "SIZE"),
                       help="Patch region in reference pixels (default: centre box)")
    where.add_argument("--auto", action="store_true", help="Locate the patch automatically")
    parser.add_argument("--crop", action="store_true", help="Crop output to the configured rectangle")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def run(args: argparse.Namespace, pipeline: FramePipeline | None = None) -> int:
    pipeline = pipeline or FramePipeline()
    image_service = ImageService()
    session = CalibrationSession()

    reference = image_service.load(args.reference)
    if args.auto:
        region = None
    elif args.patch:
        region = PatchRegion(*args.patch)
    else:
        region = pipeline.default_region(reference)

    result = pipeline.calibrate(reference, region)
    if not session.apply(result):
        reason = result.reason.value if result.reason else result.status.value
        logger.error("Calibration failed: %s %s", reason, result.detail)
        return 2

    args.output_dir.mkdir(parents=True, exist_ok=True)
    total = len(image_service.list_gallery(args.input_dir))
    soft = []
    corrected_count = 0
    for img in tqdm(image_service.stream_gallery(args.input_dir), total=total, desc="render", ncols=70):
        name = img.path.stem
        focus = pipeline.focus_or_none(img)
        if focus is not None and focus.blurry:
            soft.append(img.path.name)
        frame = pipeline.crop(img) if args.crop else img
        corrected = pipeline.render(frame, session.gains)
        corrected.path = args.output_dir / f"{name}_corrected.png"
        image_service.save(corrected)
        corrected_count += 1

    print(f"Corrected {corrected_count} images -> {args.output_dir}")
    print(f"Gains: r={session.gains.r:.4f} g={session.gains.g:.4f} b={session.gains.b:.4f}")
    if soft:
        print(f"Soft focus ({len(soft)}): {', '.join(soft)}")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
