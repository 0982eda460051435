from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable


class NormalizeEngineName(str, Enum):
    """
    Image normalization backend identifiers.
    """

    PILLOW = "pillow"


class WebpToPdfError(Exception):
    pass


class InputNotFoundError(WebpToPdfError):
    pass


class NoImagesFoundError(WebpToPdfError):
    pass


class DecodeError(WebpToPdfError):
    pass


class EncodeError(WebpToPdfError):
    pass


class WriteError(WebpToPdfError):
    pass


@dataclass(frozen=True, slots=True)
class ConvertError:
    code: str
    message: str
    detail: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class SourceImage:
    source_path: str  # input-dir-relative POSIX path when scanned from disk
    data: bytes


@dataclass(frozen=True, slots=True)
class NormalizedImage:
    encoded_bytes: bytes  # baseline JPEG
    pixel_width: int
    pixel_height: int
    source_path: str = ""

    def __post_init__(self) -> None:
        if self.pixel_width <= 0 or self.pixel_height <= 0:
            raise ValueError(
                f"pixel dimensions must be positive, got {self.pixel_width}x{self.pixel_height}"
            )


@dataclass(frozen=True, slots=True)
class PagePlacement:
    # PDF points, origin at the bottom-left corner of the page.
    page_width: float
    page_height: float
    image_draw_x: float
    image_draw_y: float
    image_draw_width: float
    image_draw_height: float


@dataclass(frozen=True, slots=True)
class ImageOutcome:
    source_path: str
    ok: bool
    pixel_width: int | None = None
    pixel_height: int | None = None
    page_count: int = 0
    error_code: str | None = None


@dataclass(frozen=True, slots=True)
class ConvertResult:
    ok: bool
    pdf_bytes: bytes | None
    page_count: int
    page_width: float | None
    images: list[ImageOutcome]
    errors: list[ConvertError]
    meta: dict[str, Any]


@dataclass(frozen=True, slots=True)
class ConvertRunResult:
    ok: bool
    input_dir: str
    output_path: str | None
    written: bool
    page_count: int
    images: list[ImageOutcome]
    errors: list[ConvertError]
    elapsed_s: float
    meta: dict[str, Any]


@dataclass(frozen=True)
class ProgressCallbacks:
    """Hooks the orchestrator calls to report progress. All optional."""

    on_normalize: Callable[[int, int], None] | None = None
    on_place: Callable[[int, int], None] | None = None
    on_image_skipped: Callable[[str, ConvertError], None] | None = None


@dataclass(frozen=True, slots=True)
class ConvertConfig:
    """
    Conversion parameters.

    - `page_width=None` sizes pages to the first normalized image's pixel width
    - no environment variable reads in this package
    """

    max_width: int = 800
    jpeg_quality: int = 60
    jpeg_progressive: bool = False
    jpeg_optimize: bool = True
    page_width: float | None = None  # PDF points; None => first normalized image pixel width
    batch_divisor: int = 10
    min_batch_size: int = 3
    max_batch_size: int = 8
    recursive: bool = True
    pattern: str = "*.webp"
    engine: NormalizeEngineName = NormalizeEngineName.PILLOW

    def __post_init__(self) -> None:
        if self.max_width <= 0:
            raise ValueError("max_width must be a positive integer")
        if not (1 <= self.jpeg_quality <= 95):
            raise ValueError("jpeg_quality must be within [1, 95]")
        if self.page_width is not None and not (math.isfinite(self.page_width) and self.page_width > 0):
            raise ValueError("page_width must be a finite number > 0 (or None for first-image width)")
        if self.batch_divisor <= 0:
            raise ValueError("batch_divisor must be > 0")
        if not (1 <= self.min_batch_size <= self.max_batch_size):
            raise ValueError("batch sizes must satisfy 1 <= min_batch_size <= max_batch_size")
