from __future__ import annotations

import argparse
import logging
import math
from pathlib import Path

from tqdm import tqdm

from .artifacts import write_run_manifest_json
from .contracts import ConvertConfig, ConvertError, ProgressCallbacks
from .module import run_convert_webp_dir

# Exit codes: 0 ok, 1 nothing done (no images / overwrite declined), 2 failure.
_NOTHING_DONE_CODES = {"CONVERT_NO_IMAGES_FOUND", "CONVERT_OVERWRITE_DECLINED"}


def _page_width_arg(value: str) -> float | None:
    if value.strip().lower() == "auto":
        return None
    try:
        width = float(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected a number of points or 'auto', got {value!r}") from e
    if not (math.isfinite(width) and width > 0):
        raise argparse.ArgumentTypeError("page width must be a finite number > 0")
    return width


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="webp-to-pdf",
        description="Convert all WebP images in a directory into one paginated PDF.",
    )
    p.add_argument("input_dir", nargs="?", default=".", type=Path, help="Input directory (default: current directory).")
    p.add_argument(
        "output_name",
        nargs="?",
        default="output.pdf",
        help="Output PDF file name, resolved against input_dir (default: output.pdf).",
    )
    p.add_argument(
        "--page-width",
        type=_page_width_arg,
        default=None,
        help="Square page size in PDF points, or 'auto' to use the first image's pixel width (default: auto).",
    )
    p.add_argument("--max-width", type=int, default=800, help="Downscale images wider than this (pixels).")
    p.add_argument("--quality", type=int, default=60, help="JPEG quality used for embedded images (1..95).")
    p.add_argument("--no-recursive", action="store_true", help="Only scan the top level of input_dir.")
    p.add_argument("-y", "--yes", action="store_true", help="Overwrite an existing output file without asking.")
    p.add_argument("--out-manifest", type=Path, default=None, help="Optional JSON run manifest output file.")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return p


def _prompt_overwrite(path: Path) -> bool:
    try:
        answer = input(f"File {path} already exists. Overwrite? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


class _TqdmProgress:
    """Two progress bars: images normalized, images placed into pages."""

    def __init__(self) -> None:
        self._bars: dict[str, tqdm] = {}

    def _advance(self, key: str, desc: str, done: int, total: int) -> None:
        bar = self._bars.get(key)
        if bar is None:
            bar = self._bars[key] = tqdm(total=total, desc=desc, unit="img")
        bar.update(done - bar.n)

    def on_normalize(self, done: int, total: int) -> None:
        self._advance("normalize", "Processing images", done, total)

    def on_place(self, done: int, total: int) -> None:
        self._advance("place", "Building PDF", done, total)

    def on_image_skipped(self, source_path: str, error: ConvertError) -> None:
        tqdm.write(f"skipped {source_path}: {error.message}")

    def callbacks(self) -> ProgressCallbacks:
        return ProgressCallbacks(
            on_normalize=self.on_normalize,
            on_place=self.on_place,
            on_image_skipped=self.on_image_skipped,
        )

    def close(self) -> None:
        for bar in self._bars.values():
            bar.close()


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = ConvertConfig(
            max_width=args.max_width,
            jpeg_quality=args.quality,
            page_width=args.page_width,
            recursive=not args.no_recursive,
        )
    except ValueError as e:
        print(f"Error: {e}")
        return 2

    progress = _TqdmProgress()
    try:
        result = run_convert_webp_dir(
            config=config,
            input_dir=args.input_dir,
            output_name=args.output_name,
            confirm_overwrite=(lambda _path: True) if args.yes else _prompt_overwrite,
            callbacks=progress.callbacks(),
        )
    finally:
        progress.close()

    if args.out_manifest is not None:
        write_run_manifest_json(result=result, out_manifest=args.out_manifest)

    skipped = sum(1 for img in result.images if not img.ok)
    if result.ok:
        print(
            f"PDF written: {result.output_path} pages={result.page_count} "
            f"images={len(result.images) - skipped} skipped={skipped} elapsed={result.elapsed_s:.2f}s"
        )
        return 0

    last = result.errors[-1] if result.errors else None
    print(f"Failed: {last.message if last else 'unknown error'} elapsed={result.elapsed_s:.2f}s")
    if last is not None and last.code in _NOTHING_DONE_CODES:
        return 1
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
