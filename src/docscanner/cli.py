#!/usr/bin/env python3
"""
DocScanner CLI: turn document photos into a clean PDF from the terminal.

Usage:
    python -m docscanner <command> [options]

Commands:
    scan        Rectify, enhance and assemble photos into a PDF
    detect      Print the document corners found in a photo
    presets     List quality presets

Examples:
    docscanner scan page1.jpg page2.jpg -o contract.pdf --title "Contract"
    docscanner scan *.jpg -o out.pdf --preset best --page-size a4
    docscanner scan photo.jpg -o out.pdf --strategy hough --thumbnails thumbs/
    docscanner detect photo.jpg --strategy heuristic_fast
    docscanner presets

Exit codes:
    0   success
    1   a page failed or the PDF could not be assembled
    2   invalid usage
"""

import argparse
import logging
import mimetypes
import sys
from pathlib import Path

from docscanner.config import APP_DESCRIPTION, APP_VERSION
from docscanner.services.boundary_detection import BoundaryDetector, DetectionStrategy
from docscanner.services.models import PageStatus
from docscanner.services.pdf_assembly import PageSizeMode, estimate_pdf_size
from docscanner.services.pixel_buffer import decode_image
from docscanner.services.processor import BatchProcessor
from docscanner.services.quality_presets import (
    PRESET_DESCRIPTIONS,
    PRESETS,
    QualityPreset,
    ScannerConfig,
    estimate_processing_time,
)
from docscanner.utils.exceptions import DocScannerError, EncodeFailure, ResourceExhausted
from docscanner.utils.format_utils import format_duration_ms, format_file_size
from docscanner.utils.logger import setup_logging

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with subcommands."""
    p = argparse.ArgumentParser(
        prog="docscanner",
        description=APP_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging (DEBUG)")
    p.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")

    sub = p.add_subparsers(dest="command", help="Available commands")

    # --- scan ---
    scan_p = sub.add_parser("scan", help="Rectify photos and assemble them into a PDF")
    scan_p.add_argument("inputs", type=Path, nargs="+", help="Photos in page order")
    scan_p.add_argument("-o", "--output", type=Path, required=True, help="Output PDF file")
    scan_p.add_argument(
        "--preset",
        choices=[p.value for p in QualityPreset],
        default=QualityPreset.AUTO.value,
        help="Quality preset (default: auto)",
    )
    scan_p.add_argument("--title", type=str, default=None, help="Document title (default: output name)")
    scan_p.add_argument(
        "--strategy",
        choices=[s.value for s in DetectionStrategy if s.final_output_allowed],
        default=DetectionStrategy.AUTO.value,
        help="Boundary detection strategy (default: auto)",
    )
    scan_p.add_argument("--thumbnails", type=Path, default=None, help="Directory for page thumbnails")
    scan_p.add_argument(
        "--page-size",
        choices=[m.value for m in PageSizeMode],
        default=PageSizeMode.IMAGE.value,
        help="PDF page size: image dimensions, A4 or Letter (default: image)",
    )
    scan_p.add_argument("--color", action="store_true", help="Keep colour instead of grayscale")
    scan_p.add_argument("--bw", action="store_true", help="Black-and-white (adaptive threshold)")
    scan_p.add_argument("--workers", type=int, default=None, help="Worker threads (default: auto)")

    # --- detect ---
    detect_p = sub.add_parser("detect", help="Print the detected document corners")
    detect_p.add_argument("input", type=Path, help="Photo")
    detect_p.add_argument(
        "--strategy",
        choices=[s.value for s in DetectionStrategy],
        default=DetectionStrategy.AUTO.value,
        help="Boundary detection strategy (default: auto)",
    )

    # --- presets ---
    sub.add_parser("presets", help="List quality presets")

    return p


def _read_inputs(paths: list[Path]) -> list[tuple[Path, bytes, str | None]]:
    inputs = []
    for path in paths:
        mime_type, _ = mimetypes.guess_type(path.name)
        inputs.append((path, path.read_bytes(), mime_type))
    return inputs


def _write_thumbnails(directory: Path, results) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for result in results:
        if result.ok:
            target = directory / f"page_{result.index + 1:03d}.jpg"
            target.write_bytes(result.page.thumbnail_bytes)


def _cmd_scan(args, logger) -> int:
    """Handle the 'scan' command."""
    config = ScannerConfig.from_preset(
        args.preset,
        strategy=DetectionStrategy.from_name(args.strategy),
        page_size=PageSizeMode.from_name(args.page_size),
        max_workers=args.workers,
    )
    if args.color or args.bw:
        config = config.with_quality(grayscale=not args.color, black_and_white=args.bw)

    title = args.title or args.output.stem
    logger.info(
        f"Scanning {len(args.inputs)} photo(s), estimated "
        f"{estimate_processing_time(len(args.inputs), config.quality)}s"
    )

    def on_progress(done: int, total: int) -> None:
        print(f"Processed {done}/{total} pages", file=sys.stderr)

    with BatchProcessor(config, progress_callback=on_progress) as processor:
        for path, data, mime_type in _read_inputs(args.inputs):
            try:
                processor.capture(data, mime_type)
            except ResourceExhausted as e:
                logger.error(f"Not accepting {path.name}: {e}")
                return EXIT_FAILURE

        results = processor.process_batch()
        failed = [r for r in results if r.status == PageStatus.ERROR]
        for r in failed:
            print(f"Page {r.index + 1} ({args.inputs[r.index].name}) failed: {r.error}", file=sys.stderr)

        if args.thumbnails:
            _write_thumbnails(args.thumbnails, results)

        pages = processor.collect_processed(results)
        if not pages:
            print("Error: no page could be processed", file=sys.stderr)
            return EXIT_FAILURE

        estimate = estimate_pdf_size(pages)
        try:
            pdf_bytes = processor.assemble(results, title)
        except EncodeFailure as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_FAILURE

    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_bytes(pdf_bytes)
    print(
        f"Wrote {args.output} ({len(pages)} pages, {format_file_size(len(pdf_bytes))}; "
        f"estimated {format_file_size(estimate)})"
    )
    return EXIT_FAILURE if failed else EXIT_OK


def _cmd_detect(args, logger) -> int:
    """Handle the 'detect' command."""
    buf = decode_image(args.input.read_bytes(), mimetypes.guess_type(args.input.name)[0])
    detector = BoundaryDetector(strategy=DetectionStrategy.from_name(args.strategy))
    try:
        result = detector.detect(buf)
    except DocScannerError as e:
        logger.debug(str(e))
        print("not found")
        return EXIT_FAILURE

    q = result.quad
    print(f"strategy:     {result.strategy.value} ({format_duration_ms(result.duration_ms)})")
    print(f"image:        {buf.width}x{buf.height}")
    print(f"top_left:     {q.top_left.x:.1f}, {q.top_left.y:.1f}")
    print(f"top_right:    {q.top_right.x:.1f}, {q.top_right.y:.1f}")
    print(f"bottom_right: {q.bottom_right.x:.1f}, {q.bottom_right.y:.1f}")
    print(f"bottom_left:  {q.bottom_left.x:.1f}, {q.bottom_left.y:.1f}")
    print(f"area:         {q.area / (buf.width * buf.height):.1%} of image")
    return EXIT_OK


def _cmd_presets(args, logger) -> int:
    """Handle the 'presets' command."""
    for preset in QualityPreset:
        name, description = PRESET_DESCRIPTIONS[preset]
        print(f"{preset.value:<9} {name}: {description}")
        settings = PRESETS.get(preset)
        if settings is not None:
            print(
                f"{'':<9} {settings.target_width}x{settings.target_height}, "
                f"quality {settings.jpeg_quality:.2f}, max {settings.max_file_size_mb:g} MB, "
                f"contrast {settings.contrast_factor}, brightness {settings.brightness_target:g}, "
                f"batch {settings.batch_size}, {'parallel' if settings.parallel else 'sequential'}"
            )
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_USAGE

    setup_logging(args.verbose)
    logger = logging.getLogger("docscanner.cli")

    for path in getattr(args, "inputs", None) or [getattr(args, "input", None)]:
        if path is not None and not path.is_file():
            print(f"Error: {path} not found", file=sys.stderr)
            return EXIT_USAGE

    handlers = {
        "scan": _cmd_scan,
        "detect": _cmd_detect,
        "presets": _cmd_presets,
    }

    try:
        return handlers[args.command](args, logger)
    except DocScannerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
