from __future__ import annotations

from io import BytesIO
from typing import Sequence

from .contracts import NormalizedImage, PagePlacement


def _require_pdfium():
    try:
        import pypdfium2 as pdfium  # type: ignore

        return pdfium
    except ImportError as e:
        raise RuntimeError("Missing dependency: pypdfium2 is required for PDF assembly.") from e


def pdfium_version() -> str | None:
    try:
        import pypdfium2 as pdfium  # type: ignore

        return getattr(pdfium, "__version__", None)
    except ImportError:
        return None


class PdfDocumentBuilder:
    """
    Append-only PDF document.

    Pages are added in call order and the document is serialized once by
    `finalize()`; nothing can be appended afterwards.
    """

    def __init__(self) -> None:
        self._pdfium = _require_pdfium()
        self._pdf = self._pdfium.PdfDocument.new()
        self._page_count = 0
        self._finalized = False

    @property
    def page_count(self) -> int:
        return self._page_count

    @property
    def finalized(self) -> bool:
        return self._finalized

    def append_image(self, image: NormalizedImage, placements: Sequence[PagePlacement]) -> int:
        """
        Add one page per placement, each drawing `image` at the placement's box.
        Returns the number of pages added.
        """
        if self._finalized:
            raise RuntimeError("Document already finalized")

        pdfium = self._pdfium
        for placement in placements:
            page_index = self._page_count
            page = self._pdf.new_page(placement.page_width, placement.page_height)
            pdf_image = None
            completed = False
            try:
                # Each page needs its own image object; the JPEG stream is copied in.
                pdf_image = pdfium.PdfImage.new(self._pdf)
                pdf_image.load_jpeg(BytesIO(image.encoded_bytes), inline=True)
                matrix = (
                    pdfium.PdfMatrix()
                    .scale(placement.image_draw_width, placement.image_draw_height)
                    .translate(placement.image_draw_x, placement.image_draw_y)
                )
                pdf_image.set_matrix(matrix)
                page.insert_obj(pdf_image)
                page.gen_content()
                completed = True
            finally:
                if pdf_image is not None:
                    pdf_image.close()
                page.close()
                if not completed:
                    # No half-built pages.
                    self._pdf.del_page(page_index)
            self._page_count += 1
        return len(placements)

    def finalize(self) -> bytes:
        if self._finalized:
            raise RuntimeError("Document already finalized")
        buffer = BytesIO()
        try:
            self._pdf.save(buffer)
        finally:
            self._finalized = True
            self._pdf.close()
        return buffer.getvalue()

    def close(self) -> None:
        if not self._finalized:
            self._finalized = True
            self._pdf.close()
