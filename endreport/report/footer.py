from __future__ import annotations

import logging
from datetime import datetime

from reportlab.lib.units import mm


logger = logging.getLogger(__name__)

FOOTER_FONT = 'helv'
FOOTER_FONT_SIZE = 8.0
FOOTER_COLOR = (150 / 255, 150 / 255, 150 / 255)
FOOTER_BASELINE_FROM_BOTTOM = 10 * mm


def footer_text(page_number: int, page_count: int, generated_at: datetime) -> str:
    stamp = generated_at.strftime('%d/%m/%Y %H:%M:%S')
    return f'Page {page_number} of {page_count} | Generated on {stamp}'


def count_pages(pdf_bytes: bytes) -> int:
    import pymupdf as fitz

    with fitz.open(stream=pdf_bytes, filetype='pdf') as document:
        return document.page_count


def stamp_page_footers(pdf_bytes: bytes, generated_at: datetime) -> bytes:
    """Write ``Page i of N | Generated on ...`` centred at the bottom of every page.

    Runs over the final document, after attachments were merged, so ``N`` is the
    real page count. On failure the unstamped bytes are returned.
    """
    try:
        import pymupdf as fitz
    except Exception as exc:
        logger.warning('PyMuPDF unavailable for footer stamping: %s', exc)
        return pdf_bytes

    document = None
    try:
        document = fitz.open(stream=pdf_bytes, filetype='pdf')
        page_count = document.page_count
        for index in range(page_count):
            page = document.load_page(index)
            text = footer_text(index + 1, page_count, generated_at)
            text_width = fitz.get_text_length(text, fontname=FOOTER_FONT, fontsize=FOOTER_FONT_SIZE)
            rect = page.rect
            page.insert_text(
                fitz.Point(rect.x0 + (rect.width - text_width) / 2, rect.y1 - FOOTER_BASELINE_FROM_BOTTOM),
                text,
                fontname=FOOTER_FONT,
                fontsize=FOOTER_FONT_SIZE,
                color=FOOTER_COLOR,
            )
        return document.tobytes(garbage=3, deflate=True)
    except Exception as exc:
        logger.warning('Failed to stamp page footers: %s', exc)
        return pdf_bytes
    finally:
        if document is not None:
            document.close()
