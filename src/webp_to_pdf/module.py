from __future__ import annotations

import asyncio
import logging
import math
import time
from pathlib import Path
from typing import Any, Callable, Sequence

from .contracts import (
    ConvertConfig,
    ConvertError,
    ConvertResult,
    ConvertRunResult,
    DecodeError,
    EncodeError,
    ImageOutcome,
    InputNotFoundError,
    NoImagesFoundError,
    NormalizedImage,
    ProgressCallbacks,
    SourceImage,
    WriteError,
)
from .data_access import (
    read_source_image,
    relpath_for,
    resolve_input_dir,
    resolve_output_path,
    scan_image_files,
    sha256_bytes,
    write_output_bytes,
)
from .document import PdfDocumentBuilder, pdfium_version
from .engines import ImageNormalizationEngine, get_engine
from .tiling import tile_image

log = logging.getLogger(__name__)

ConfirmOverwrite = Callable[[Path], bool]


def compute_batch_size(total: int, *, config: ConvertConfig | None = None) -> int:
    """
    clamp(ceil(total / divisor), min, max): bounds in-flight images per batch.
    """
    cfg = config or ConvertConfig()
    return min(cfg.max_batch_size, max(cfg.min_batch_size, math.ceil(total / cfg.batch_divisor)))


def plan_batches(total: int, batch_size: int) -> list[range]:
    """
    Contiguous index ranges covering [0, total) in order.
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be > 0")
    return [range(start, min(start + batch_size, total)) for start in range(0, total, batch_size)]


def _notify(hook: Callable[[int, int], None] | None, done: int, total: int) -> None:
    if hook is not None:
        hook(done, total)


def _normalize_from_loader(
    *, engine: ImageNormalizationEngine, load: Callable[[int], SourceImage], index: int, source_path: str, config: ConvertConfig
) -> NormalizedImage | ConvertError:
    try:
        source = load(index)
    except OSError as e:
        return ConvertError(
            code="CONVERT_READ_FAILED",
            message="Failed to read source image",
            detail={"source_path": source_path, "error": str(e)},
        )
    try:
        return engine.normalize(source=source, config=config)
    except DecodeError as e:
        return ConvertError(
            code="CONVERT_DECODE_FAILED",
            message="Source image could not be decoded",
            detail={"source_path": source_path, "error": str(e)},
        )
    except EncodeError as e:
        return ConvertError(
            code="CONVERT_ENCODE_FAILED",
            message="Image could not be re-encoded as JPEG",
            detail={"source_path": source_path, "error": str(e)},
        )


async def _run_pipeline(
    *,
    source_paths: Sequence[str],
    load: Callable[[int], SourceImage],
    config: ConvertConfig,
    callbacks: ProgressCallbacks,
) -> ConvertResult:
    engine = get_engine(config.engine)
    total = len(source_paths)
    batch_size = compute_batch_size(total, config=config)
    batches = plan_batches(total, batch_size)

    meta: dict[str, Any] = {
        "batch_size": batch_size,
        "batch_count": len(batches),
        "engine": engine.backend_id(),
        "engine_version": engine.backend_version(),
        "pdf_backend": "pypdfium2",
        "pdf_backend_version": pdfium_version(),
    }

    page_width = config.page_width
    outcomes: list[ImageOutcome] = []
    errors: list[ConvertError] = []
    normalized_done = 0
    placed_done = 0

    document = PdfDocumentBuilder()
    try:
        for batch_num, batch in enumerate(batches, start=1):
            results = await asyncio.gather(
                *(
                    asyncio.to_thread(
                        _normalize_from_loader,
                        engine=engine,
                        load=load,
                        index=i,
                        source_path=source_paths[i],
                        config=config,
                    )
                    for i in batch
                )
            )
            normalized_done += len(batch)
            _notify(callbacks.on_normalize, normalized_done, total)

            # Page assembly stays sequential and in input order.
            for i, res in zip(batch, results):
                source_path = source_paths[i]
                if isinstance(res, ConvertError):
                    log.warning("Skipping %s: %s (%s)", source_path, res.message, res.code)
                    errors.append(res)
                    outcomes.append(ImageOutcome(source_path=source_path, ok=False, error_code=res.code))
                    if callbacks.on_image_skipped is not None:
                        callbacks.on_image_skipped(source_path, res)
                else:
                    if page_width is None:
                        page_width = float(res.pixel_width)
                    placements = tile_image(res, page_width)
                    document.append_image(res, placements)
                    outcomes.append(
                        ImageOutcome(
                            source_path=source_path,
                            ok=True,
                            pixel_width=res.pixel_width,
                            pixel_height=res.pixel_height,
                            page_count=len(placements),
                        )
                    )
                placed_done += 1
                _notify(callbacks.on_place, placed_done, total)

            # Release this batch's encoded buffers before normalizing the next one.
            del results
            log.debug("Batch %d/%d done (%d/%d images)", batch_num, len(batches), placed_done, total)

        page_count = document.page_count
        if page_count == 0:
            errors.append(
                ConvertError(
                    code="CONVERT_NO_PAGES",
                    message="No image could be converted; no document produced",
                    detail={"image_count": total},
                )
            )
            return ConvertResult(
                ok=False,
                pdf_bytes=None,
                page_count=0,
                page_width=page_width,
                images=outcomes,
                errors=errors,
                meta=meta,
            )

        pdf_bytes = document.finalize()
    finally:
        document.close()

    meta["pdf_sha256"] = sha256_bytes(pdf_bytes)
    return ConvertResult(
        ok=True,
        pdf_bytes=pdf_bytes,
        page_count=page_count,
        page_width=page_width,
        images=outcomes,
        errors=errors,
        meta=meta,
    )


async def convert_images(
    sources: Sequence[SourceImage],
    *,
    config: ConvertConfig | None = None,
    callbacks: ProgressCallbacks | None = None,
) -> ConvertResult:
    """
    Convert in-memory source images into one PDF, in input order.

    Images that fail to decode or encode are skipped and recorded in `errors`.
    """

    return await _run_pipeline(
        source_paths=[s.source_path for s in sources],
        load=sources.__getitem__,
        config=config or ConvertConfig(),
        callbacks=callbacks or ProgressCallbacks(),
    )


def convert_images_sync(
    sources: Sequence[SourceImage],
    *,
    config: ConvertConfig | None = None,
    callbacks: ProgressCallbacks | None = None,
) -> ConvertResult:
    return asyncio.run(convert_images(sources, config=config, callbacks=callbacks))


def run_convert_webp_dir(
    *,
    config: ConvertConfig,
    input_dir: Path,
    output_name: str | Path = "output.pdf",
    confirm_overwrite: ConfirmOverwrite | None = None,
    callbacks: ProgressCallbacks | None = None,
) -> ConvertRunResult:
    """
    Preferred programmatic entrypoint.

    Input: a directory scanned for `config.pattern`
    Output: one PDF at `input_dir / output_name` + JSON-ready run result
    """

    started = time.perf_counter()
    meta: dict[str, Any] = {}

    def _elapsed() -> float:
        return round(time.perf_counter() - started, 3)

    def _failed(
        code: str,
        message: str,
        detail: dict[str, Any],
        *,
        output_path: Path | None = None,
        images: list[ImageOutcome] | None = None,
        errors: list[ConvertError] | None = None,
    ) -> ConvertRunResult:
        return ConvertRunResult(
            ok=False,
            input_dir=str(input_dir),
            output_path=str(output_path) if output_path is not None else None,
            written=False,
            page_count=0,
            images=images or [],
            errors=[*(errors or []), ConvertError(code=code, message=message, detail=detail)],
            elapsed_s=_elapsed(),
            meta=meta,
        )

    try:
        root = resolve_input_dir(input_dir)
    except InputNotFoundError as e:
        log.error("%s", e)
        return _failed("CONVERT_INPUT_NOT_FOUND", "Input directory not found", {"input_dir": str(input_dir)})

    output_path = resolve_output_path(input_dir=root, output_name=output_name)
    if output_path.exists():
        if confirm_overwrite is None or not confirm_overwrite(output_path):
            log.info("Output %s exists and overwrite was declined", output_path)
            return _failed(
                "CONVERT_OVERWRITE_DECLINED",
                "Output file exists and overwrite was declined",
                {"output_path": str(output_path)},
                output_path=output_path,
            )

    try:
        files = scan_image_files(root, pattern=config.pattern, recursive=config.recursive, exclude=output_path)
    except NoImagesFoundError as e:
        log.info("%s", e)
        return _failed(
            "CONVERT_NO_IMAGES_FOUND",
            "No images found in input directory",
            {"input_dir": str(root), "pattern": config.pattern, "recursive": config.recursive},
            output_path=output_path,
        )

    log.info("Converting %d image(s) from %s", len(files), root)
    result = asyncio.run(
        _run_pipeline(
            source_paths=[relpath_for(p, root=root) for p in files],
            load=lambda i: read_source_image(files[i], root=root),
            config=config,
            callbacks=callbacks or ProgressCallbacks(),
        )
    )
    meta.update(result.meta)
    meta["page_width"] = result.page_width

    if not result.ok or result.pdf_bytes is None:
        return ConvertRunResult(
            ok=False,
            input_dir=str(root),
            output_path=str(output_path),
            written=False,
            page_count=0,
            images=result.images,
            errors=result.errors,
            elapsed_s=_elapsed(),
            meta=meta,
        )

    try:
        write_output_bytes(output_path, result.pdf_bytes)
    except WriteError as e:
        elapsed = _elapsed()
        log.error("%s (elapsed %.2fs)", e, elapsed)
        return _failed(
            "CONVERT_WRITE_FAILED",
            "Failed to write output PDF",
            {"output_path": str(output_path), "error": str(e)},
            output_path=output_path,
            images=result.images,
            errors=result.errors,
        )

    elapsed = _elapsed()
    log.info("Wrote %s (%d pages) in %.2fs", output_path, result.page_count, elapsed)
    return ConvertRunResult(
        ok=True,
        input_dir=str(root),
        output_path=str(output_path),
        written=True,
        page_count=result.page_count,
        images=result.images,
        errors=result.errors,
        elapsed_s=elapsed,
        meta=meta,
    )
