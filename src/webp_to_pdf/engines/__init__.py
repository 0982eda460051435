"""
Image normalization engines (decode -> optional downscale -> JPEG re-encode).
"""

from __future__ import annotations

from ..contracts import ConvertConfig, NormalizedImage, NormalizeEngineName, SourceImage
from .base import ImageNormalizationEngine
from .pillow_engine import PillowEngine


def get_engine(engine: NormalizeEngineName) -> ImageNormalizationEngine:
    if engine == NormalizeEngineName.PILLOW:
        return PillowEngine()
    raise ValueError(f"Unsupported normalization engine: {engine}")


def normalize_image(
    source_bytes: bytes, *, config: ConvertConfig | None = None, source_path: str = ""
) -> NormalizedImage:
    cfg = config or ConvertConfig()
    return get_engine(cfg.engine).normalize(
        source=SourceImage(source_path=source_path, data=source_bytes), config=cfg
    )


__all__ = ["ImageNormalizationEngine", "PillowEngine", "get_engine", "normalize_image"]
