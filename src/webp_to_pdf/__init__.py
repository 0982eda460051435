"""
WebP directory -> single paginated PDF.

Pipeline:
- Normalize: decode each image, bound its width, re-encode as JPEG (concurrent, batched).
- Tile: split each scaled image across square pages of one fixed width.
- Assemble: append pages in input order into one PDF document.
"""

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
    NormalizeEngineName,
    PagePlacement,
    ProgressCallbacks,
    SourceImage,
    WebpToPdfError,
    WriteError,
)
from .engines import normalize_image
from .module import (
    compute_batch_size,
    convert_images,
    convert_images_sync,
    plan_batches,
    run_convert_webp_dir,
)
from .tiling import page_count_for, tile_image

__all__ = [
    "ConvertConfig",
    "ConvertError",
    "ConvertResult",
    "ConvertRunResult",
    "DecodeError",
    "EncodeError",
    "ImageOutcome",
    "InputNotFoundError",
    "NoImagesFoundError",
    "NormalizedImage",
    "NormalizeEngineName",
    "PagePlacement",
    "ProgressCallbacks",
    "SourceImage",
    "WebpToPdfError",
    "WriteError",
    "compute_batch_size",
    "convert_images",
    "convert_images_sync",
    "normalize_image",
    "page_count_for",
    "plan_batches",
    "run_convert_webp_dir",
    "tile_image",
]
