#!/usr/bin/env python3
"""
CLI interface for the document capture module.

Usage:
    python -m document_capture -i photo.jpg
    python -m document_capture -i photo.jpg -o page.png --overlay outline.png
    python -m document_capture --video preview.mp4 -o pages/
"""

import argparse
import logging
import sys
from pathlib import Path

import cv2

from .config import PipelineConfig
from .detector import QuadrilateralDetector
from .edge_map import EDGE_METHODS
from .enhancer import ImageEnhancer, enhancement_names
from .errors import ScannerError
from .rectifier import PerspectiveRectifier
from .session import ScanSession
from .utils import iter_video_frames, load_image, setup_logging
from .visualizer import QuadOverlay

logger = logging.getLogger("document_capture")


def parse_args(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog='python -m document_capture',
        description='Detect a document in a photo and produce a rectified scan',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:

  # Rectify a photo (writes photo_rectified.png next to the input)
  python -m document_capture -i photo.jpg

  # Choose the output and also save the detected outline
  python -m document_capture -i photo.jpg -o page.png --overlay outline.png

  # Clean up the page for printing
  python -m document_capture -i photo.jpg --enhance black_and_white

  # Replay a recorded preview, saving every automatic capture
  python -m document_capture --video preview.mp4 -o pages/

Settings not given on the command line are read from SCANNER_* environment
variables (a .env file is honoured).
        """
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        '-i', '--input',
        help='Input image'
    )
    source.add_argument(
        '--video',
        help='Recorded preview to replay through a scanning session'
    )

    parser.add_argument(
        '-o', '--output',
        help='Output file for --input, output directory for --video'
    )
    parser.add_argument(
        '--overlay',
        help='Also save the input with the detected outline drawn on it'
    )
    parser.add_argument(
        '--min-area-ratio',
        type=float,
        help='Minimum document area as a fraction of the frame (default 0.10)'
    )
    parser.add_argument(
        '--epsilon',
        type=float,
        help='Polygon simplification factor of the contour perimeter (default 0.02)'
    )
    parser.add_argument(
        '--edge-method',
        choices=EDGE_METHODS,
        help='Edge extraction method (default canny)'
    )
    parser.add_argument(
        '--enhance',
        choices=enhancement_names(),
        help='Enhancement applied to the rectified page (default original)'
    )
    parser.add_argument(
        '--log-level',
        help='Logging level (default INFO)'
    )

    return parser.parse_args(argv)


def build_config(args) -> PipelineConfig:
    return PipelineConfig.from_env(
        min_area_ratio=args.min_area_ratio,
        approx_epsilon_factor=args.epsilon,
        edge_method=args.edge_method,
        enhancement=args.enhance,
        log_level=args.log_level,
    )


def process_image(args, config: PipelineConfig) -> Path:
    """
    Detect and rectify a single photo.

    Returns:
        Path of the rectified image

    Raises:
        ScannerError: unreadable input or no document found
    """
    input_path = Path(args.input)
    image = load_image(input_path)

    detector = QuadrilateralDetector(
        min_area_ratio=config.min_area_ratio,
        approx_epsilon_factor=config.approx_epsilon_factor,
        edge_method=config.edge_method,
    )
    quad = detector.detect(image)
    if quad is None:
        raise ScannerError(f"No document found in {input_path.name}")

    logger.info("Document corners: %s", quad.to_list())

    if args.overlay:
        cv2.imwrite(args.overlay, QuadOverlay().draw(image, quad))
        logger.info("Overlay saved: %s", args.overlay)

    rectified = PerspectiveRectifier().rectify(image, quad)
    rectified = ImageEnhancer().enhance(rectified, config.enhancement)

    if args.output:
        output_path = Path(args.output)
    else:
        output_path = input_path.with_name(f"{input_path.stem}_rectified.png")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(output_path), rectified):
        raise ScannerError(f"Failed to write {output_path}")
    return output_path


def process_video(args, config: PipelineConfig) -> int:
    """
    Replay a video through a ScanSession and save every capture.

    Returns:
        Number of captured pages
    """
    output_dir = Path(args.output or Path(args.video).stem + "_pages")
    output_dir.mkdir(parents=True, exist_ok=True)

    captured_count = 0
    with ScanSession(config) as session:
        for result, captured in session.run(iter_video_frames(args.video)):
            if captured is None:
                continue
            captured_count += 1
            page_path = output_dir / f"page_{captured_count:03d}.png"
            cv2.imwrite(str(page_path), captured)
            logger.info("Page %d saved: %s", captured_count, page_path)
    return captured_count


def main(argv=None):
    """Main CLI function"""
    args = parse_args(argv)

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.log_level)

    if args.input and not Path(args.input).exists():
        print(f"Error: input file not found: {args.input}", file=sys.stderr)
        sys.exit(1)
    if args.video and not Path(args.video).exists():
        print(f"Error: video file not found: {args.video}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.video:
            count = process_video(args, config)
            if count == 0:
                print("Error: no document was captured", file=sys.stderr)
                sys.exit(1)
            print(f"Done: {count} page(s) captured")
        else:
            output_path = process_image(args, config)
            print(f"Done: {output_path}")
    except (ScannerError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
