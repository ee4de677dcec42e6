"""Command-line interface for the reverse alpha watermark remover."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from config import DEFAULT_CONFIG_PATH, config_base_dir, load_config
from core import BatchItem, BatchResult, BatchWatermarkProcessor, WatermarkRemover, utils
from core.logger import get_logger, setup_logging

logger = get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="alpha-unblend",
        description="Remove a known semi-transparent corner watermark by reverse alpha blending.",
    )
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help=f"Path to configuration YAML (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--log-level",
        help="Override logging level (e.g. INFO, DEBUG).",
    )
    parser.add_argument(
        "--log-file",
        help="Override log file path.",
    )
    parser.add_argument(
        "--mode",
        choices=["auto", "offloaded", "direct"],
        help="Override the execution strategy (default from config).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    image_parser = subparsers.add_parser("image", help="Process a single image file.")
    image_parser.add_argument("-i", "--input", required=True, help="Path to the input image.")
    image_parser.add_argument(
        "-o",
        "--output",
        help="Path for the restored image (default: '<name>_(watermark removed).png' beside the input).",
    )

    detect_parser = subparsers.add_parser(
        "detect", help="Report whether an image carries the overlay, without writing anything."
    )
    detect_parser.add_argument("-i", "--input", required=True, help="Path to the input image.")
    detect_parser.add_argument("--json", action="store_true", help="Print diagnostics as JSON.")

    batch_parser = subparsers.add_parser("batch", help="Process several images one after another.")
    source = batch_parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "-m",
        "--manifest",
        help="Path to a YAML or JSON manifest listing {input, output} entries.",
    )
    source.add_argument("-d", "--input-dir", help="Process every supported image in a directory.")
    batch_parser.add_argument(
        "--output-dir",
        help="Directory for restored images (default: beside each input).",
    )
    batch_parser.add_argument(
        "--halt-on-error",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Stop processing remaining items after the first failure.",
    )

    return parser


def _apply_logging_overrides(overrides: Dict[str, Any], args: argparse.Namespace) -> None:
    if args.log_level:
        overrides.setdefault("logging", {})["level"] = args.log_level.upper()
    if args.log_file:
        logging_overrides = overrides.setdefault("logging", {})
        file_overrides = logging_overrides.setdefault("file", {})
        file_overrides["enabled"] = True
        file_overrides["filename"] = args.log_file


def _apply_processing_overrides(overrides: Dict[str, Any], args: argparse.Namespace) -> None:
    if args.mode:
        overrides.setdefault("dispatcher", {})["mode"] = args.mode
    if args.command == "batch" and args.halt_on_error is not None:
        overrides.setdefault("batch", {})["halt_on_error"] = args.halt_on_error


def _configure_logging(config: Dict[str, Any]) -> None:
    logging_settings = config.get("logging", {})
    setup_logging(logging_settings, force=True)


def _load_manifest(path: Path) -> Iterable[Dict[str, Any]]:
    content = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        data = yaml.safe_load(content)
    else:
        data = json.loads(content)
    if not isinstance(data, list):
        raise ValueError("Batch manifest must be a list of job entries.")
    return data


def _prepare_batch_items(entries: Iterable[Dict[str, Any]], output_dir: Optional[Path]) -> List[BatchItem]:
    items: List[BatchItem] = []
    for entry in entries:
        if isinstance(entry, str):
            entry = {"input": entry}
        input_path = entry.get("input")
        if not input_path:
            raise ValueError("Batch entry must include an 'input' field.")
        output_path = entry.get("output")
        if output_path is None and output_dir is not None:
            output_path = output_dir / Path(input_path).name
        items.append(BatchItem(input_path=input_path, output_path=output_path))
    return items


def _scan_directory(directory: Path) -> List[Dict[str, Any]]:
    if not directory.is_dir():
        raise FileNotFoundError(f"Input directory not found: {directory}")
    return [
        {"input": str(path)}
        for path in sorted(directory.iterdir())
        if path.is_file() and path.suffix.lower() in utils.SUPPORTED_IMAGE_EXTENSIONS
    ]


def _run_image(args: argparse.Namespace, remover: WatermarkRemover) -> int:
    result = remover.process_file(Path(args.input), Path(args.output) if args.output else None)
    if result.overlay_detected:
        logger.info("Image processed successfully: %s", result.output_path)
    else:
        logger.info("No watermark detected; image copied to %s", result.output_path)
    return 0


def _run_detect(args: argparse.Namespace, remover: WatermarkRemover) -> int:
    buffer = utils.load_image(Path(args.input))
    height, width = buffer.shape[:2]
    detection = remover.detect(buffer)
    if detection is None:
        logger.error("No template available for %sx%s image %s", width, height, args.input)
        return 1
    report = {
        "input": str(args.input),
        "width": width,
        "height": height,
        "present": detection.present,
        "diagnostics": detection.diagnostics(),
    }
    if args.json:
        print(json.dumps(report, indent=2))
    else:
        print(
            f"{args.input}: {'watermark detected' if detection.present else 'no watermark'} "
            f"(diff={detection.diff:.1f})"
        )
    return 0


def _summarize_batch(results: List[BatchResult]) -> int:
    success = sum(1 for r in results if r.success)
    detected = sum(1 for r in results if r.success and r.overlay_detected)
    failures = [r for r in results if not r.success]
    logger.info(
        "Batch complete. Successes: %s (watermark removed: %s) | Failures: %s",
        success,
        detected,
        len(failures),
    )
    for result in failures:
        logger.error("Failed job for %s: %s", result.input_path, result.error)
    return 0 if not failures else 1


def _run_batch(args: argparse.Namespace, config: Dict[str, Any], remover: WatermarkRemover) -> int:
    if args.manifest:
        source = Path(args.manifest)
        entries = _load_manifest(source)
    else:
        source = Path(args.input_dir)
        entries = _scan_directory(source)
    output_dir = Path(args.output_dir) if args.output_dir else None
    items = _prepare_batch_items(entries, output_dir)
    logger.info("Processing %s batch item(s) from %s", len(items), source)
    processor = BatchWatermarkProcessor(remover, config=config)
    results = processor.process(items)
    return _summarize_batch(results)


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    overrides: Dict[str, Any] = {}
    _apply_logging_overrides(overrides, args)
    _apply_processing_overrides(overrides, args)

    config = load_config(args.config, overrides=overrides or None)
    _configure_logging(config)

    try:
        with WatermarkRemover.from_config(config, base_dir=config_base_dir(args.config)) as remover:
            if args.command == "image":
                return _run_image(args, remover)
            if args.command == "detect":
                return _run_detect(args, remover)
            if args.command == "batch":
                return _run_batch(args, config, remover)
            parser.error(f"Unknown command: {args.command}")  # pragma: no cover
    except Exception as exc:  # pragma: no cover - command failure path
        logger.exception("Command failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
