from __future__ import annotations

import math

from .contracts import NormalizedImage, PagePlacement


def _scaled_height(*, pixel_width: int, pixel_height: int, page_width: float) -> float:
    # pixel_height * (page_width / pixel_width), with a single rounding step so that
    # exact multiples of page_width stay exact.
    return pixel_height * page_width / pixel_width


def page_count_for(*, pixel_width: int, pixel_height: int, page_width: float) -> int:
    """
    Number of square pages `tile_image` emits for an image of this size.
    """
    if not (math.isfinite(page_width) and page_width > 0):
        raise ValueError("page_width must be a finite number > 0")
    scaled_height = _scaled_height(pixel_width=pixel_width, pixel_height=pixel_height, page_width=page_width)
    count = 1
    while count * page_width < scaled_height:
        count += 1
    return count


def tile_image(image: NormalizedImage, page_width: float) -> list[PagePlacement]:
    """
    Split one image across `page_width x page_width` pages.

    The image is scaled to the page width and drawn at full size on every page;
    each page shifts it up by one page height so that consecutive pages show
    consecutive vertical slices, top to bottom. Pages are square whatever the
    image aspect ratio.
    """

    if not (math.isfinite(page_width) and page_width > 0):
        raise ValueError("page_width must be a finite number > 0")

    scaled_height = _scaled_height(
        pixel_width=image.pixel_width, pixel_height=image.pixel_height, page_width=page_width
    )

    placements: list[PagePlacement] = []
    page_index = 0
    offset_y = 0.0
    while True:
        placements.append(
            PagePlacement(
                page_width=page_width,
                page_height=page_width,
                image_draw_x=0.0,
                image_draw_y=page_width - scaled_height + offset_y,
                image_draw_width=page_width,
                image_draw_height=scaled_height,
            )
        )
        page_index += 1
        offset_y = page_index * page_width
        if not offset_y < scaled_height:
            break
    return placements
