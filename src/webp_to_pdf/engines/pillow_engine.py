from __future__ import annotations

from io import BytesIO

from PIL import Image, UnidentifiedImageError

from ..contracts import ConvertConfig, DecodeError, EncodeError, NormalizedImage, SourceImage
from .base import ImageNormalizationEngine

_WHITE = (255, 255, 255)


def _scaled_size(width: int, height: int, *, max_width: int) -> tuple[int, int]:
    """
    Proportional size with width bounded by `max_width`. Never enlarges.
    """
    if width <= max_width:
        return width, height
    return max_width, max(1, round(height * max_width / width))


def _to_jpeg_mode(img: Image.Image) -> Image.Image:
    # JPEG has no alpha channel: composite transparent images onto white.
    # Covers alpha bands (RGBA, LA, PA, ...) and palette/info["transparency"].
    if img.has_transparency_data:
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, _WHITE)
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if img.mode in ("RGB", "L"):
        return img
    return img.convert("RGB")


class PillowEngine(ImageNormalizationEngine):
    def backend_id(self) -> str:
        return "pillow"

    def backend_version(self) -> str | None:
        import PIL

        return getattr(PIL, "__version__", None)

    def normalize(self, *, source: SourceImage, config: ConvertConfig) -> NormalizedImage:
        try:
            img = Image.open(BytesIO(source.data))
            img.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError) as e:
            raise DecodeError(f"Cannot decode image {source.source_path or '<bytes>'}: {e}") from e

        with img:
            width, height = img.size
            if width <= 0 or height <= 0:
                raise DecodeError(f"Image has empty dimensions: {width}x{height}")

            target = _scaled_size(width, height, max_width=config.max_width)
            try:
                out_img = _to_jpeg_mode(img)
                if target != (width, height):
                    out_img = out_img.resize(target, Image.Resampling.LANCZOS)

                buffer = BytesIO()
                out_img.save(
                    buffer,
                    format="JPEG",
                    quality=config.jpeg_quality,
                    progressive=config.jpeg_progressive,
                    optimize=config.jpeg_optimize,
                )
            except (OSError, ValueError, KeyError) as e:
                raise EncodeError(f"Cannot encode image {source.source_path or '<bytes>'} as JPEG: {e}") from e

            final_width, final_height = out_img.size

        return NormalizedImage(
            encoded_bytes=buffer.getvalue(),
            pixel_width=int(final_width),
            pixel_height=int(final_height),
            source_path=source.source_path,
        )
