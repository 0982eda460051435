from __future__ import annotations

from abc import ABC, abstractmethod

from ..contracts import ConvertConfig, NormalizedImage, SourceImage


class ImageNormalizationEngine(ABC):
    """
    Image normalization engine abstraction.

    Engines must:
    - Decode one source image and re-encode it as a PDF-embeddable JPEG
    - Downscale to `config.max_width` when wider, never upscale
    - Be a pure function of the source bytes and config
    - Raise DecodeError / EncodeError for per-image failures
    """

    @abstractmethod
    def backend_id(self) -> str:
        raise NotImplementedError

    def backend_version(self) -> str | None:
        return None

    @abstractmethod
    def normalize(self, *, source: SourceImage, config: ConvertConfig) -> NormalizedImage:
        raise NotImplementedError
