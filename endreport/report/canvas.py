from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

from reportlab.lib import colors
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen.canvas import Canvas

from .layout import (
    FIELD_FONT_SIZE,
    FONT_REGULAR,
    HEADER_OFFSET,
    LINE_HEIGHT,
    MARGIN,
    PAGE_HEIGHT,
    PAGE_WIDTH,
    wrap_text,
)


logger = logging.getLogger(__name__)

ColorLike = Any


class CanvasState(str, Enum):
    no_page = 'no_page'
    page_open = 'page_open'
    finalized = 'finalized'


@dataclass(frozen=True)
class TextStyle:
    font_name: str = FONT_REGULAR
    font_size: float = FIELD_FONT_SIZE
    color: ColorLike = (0, 0, 0)
    align: str = 'left'


@dataclass
class PageState:
    number: int
    cursor_y: float
    max_cursor_y: float
    content_bottom: float = 0.0
    has_background: bool = False


def to_color(value: ColorLike) -> colors.Color:
    if isinstance(value, colors.Color):
        return value
    if isinstance(value, str):
        return colors.HexColor(value)
    if isinstance(value, Sequence) and len(value) == 3:
        red, green, blue = (float(part) for part in value)
        return colors.Color(red / 255.0, green / 255.0, blue / 255.0)
    raise ValueError(f'unsupported color value: {value!r}')


def tint(value: ColorLike, amount: float) -> colors.Color:
    """Blend a color towards white; ``amount`` 0 keeps it, 1 gives white."""
    base = to_color(value)
    mix = min(1.0, max(0.0, amount))
    return colors.Color(
        base.red + (1.0 - base.red) * mix,
        base.green + (1.0 - base.green) * mix,
        base.blue + (1.0 - base.blue) * mix,
    )


def image_reader(image: bytes | ImageReader) -> ImageReader:
    if isinstance(image, ImageReader):
        return image
    return ImageReader(io.BytesIO(image))


class PageCanvas:
    """Forward-only drawing surface over a reportlab canvas.

    Coordinates are millimetres measured from the top-left corner. Only the
    last page can be drawn on; starting a new page closes the previous one.
    """

    def __init__(
        self,
        *,
        title: str | None = None,
        author: str | None = None,
        producer: str | None = None,
        page_width: float = PAGE_WIDTH,
        page_height: float = PAGE_HEIGHT,
        margin: float = MARGIN,
        header_offset: float = HEADER_OFFSET,
    ) -> None:
        self.page_width = page_width
        self.page_height = page_height
        self.margin = margin
        self.header_offset = header_offset
        self.pages: list[PageState] = []
        self.state = CanvasState.no_page

        self._buffer = io.BytesIO()
        self._canvas = Canvas(self._buffer, pagesize=(page_width * mm, page_height * mm), invariant=1)
        if title:
            self._canvas.setTitle(title)
        if author:
            self._canvas.setAuthor(author)
        if producer:
            self._canvas.setProducer(producer)

    @property
    def content_top(self) -> float:
        return self.margin + self.header_offset

    @property
    def content_bottom(self) -> float:
        return self.page_height - self.margin

    @property
    def content_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def current_page(self) -> PageState:
        if not self.pages:
            raise RuntimeError('no page has been started')
        return self.pages[-1]

    @property
    def cursor_y(self) -> float:
        return self.current_page.cursor_y

    @cursor_y.setter
    def cursor_y(self, value: float) -> None:
        page = self.current_page
        page.cursor_y = float(value)
        page.max_cursor_y = max(page.max_cursor_y, page.cursor_y)

    @property
    def at_page_top(self) -> bool:
        return bool(self.pages) and self.current_page.cursor_y <= self.content_top

    def new_page(self, background: bytes | ImageReader | None = None) -> PageState:
        self._require_open(allow_no_page=True)
        if self.pages:
            self._canvas.showPage()

        page = PageState(number=len(self.pages) + 1, cursor_y=self.content_top, max_cursor_y=self.content_top)
        self.pages.append(page)
        self.state = CanvasState.page_open

        if background is not None:
            try:
                self._canvas.drawImage(
                    image_reader(background),
                    0,
                    0,
                    width=self.page_width * mm,
                    height=self.page_height * mm,
                    mask='auto',
                )
                page.has_background = True
            except Exception as exc:
                logger.warning('Failed to stamp background template on page %s: %s', page.number, exc)
        return page

    def draw_text(
        self,
        text: Any,
        x: float,
        y: float,
        style: TextStyle = TextStyle(),
        *,
        max_width: float | None = None,
        line_height: float = LINE_HEIGHT,
    ) -> int:
        """Draw text with its first baseline at ``y``; returns the number of lines drawn."""
        self._require_open()
        value = '' if text is None else str(text)
        if max_width is not None:
            lines = wrap_text(value, max_width, font_name=style.font_name, font_size=style.font_size)
        else:
            lines = [value] if value else []
        if not lines:
            return 0

        self._canvas.setFont(style.font_name, style.font_size)
        self._canvas.setFillColor(to_color(style.color))
        for index, line in enumerate(lines):
            baseline = y + index * line_height
            pdf_x = x * mm
            pdf_y = self._pdf_y(baseline)
            if style.align == 'center':
                self._canvas.drawCentredString(pdf_x, pdf_y, line)
            elif style.align == 'right':
                self._canvas.drawRightString(pdf_x, pdf_y, line)
            else:
                self._canvas.drawString(pdf_x, pdf_y, line)
            self._mark(baseline)
        return len(lines)

    def draw_rect(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        *,
        fill_color: ColorLike | None = None,
        stroke_color: ColorLike | None = None,
        line_width: float = 0.1,
    ) -> None:
        self._require_open()
        self._apply_paint(fill_color, stroke_color, line_width)
        self._canvas.rect(
            x * mm,
            self._pdf_y(y + height),
            width * mm,
            height * mm,
            stroke=1 if stroke_color is not None else 0,
            fill=1 if fill_color is not None else 0,
        )
        self._mark(y + height)

    def draw_round_rect(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        radius: float,
        *,
        fill_color: ColorLike,
    ) -> None:
        self._require_open()
        self._apply_paint(fill_color, None, 0.1)
        self._canvas.roundRect(x * mm, self._pdf_y(y + height), width * mm, height * mm, radius * mm, stroke=0, fill=1)
        self._mark(y + height)

    def draw_circle(self, cx: float, cy: float, radius: float, *, fill_color: ColorLike) -> None:
        self._require_open()
        self._apply_paint(fill_color, None, 0.1)
        self._canvas.circle(cx * mm, self._pdf_y(cy), radius * mm, stroke=0, fill=1)
        self._mark(cy + radius)

    def draw_line(
        self,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        *,
        color: ColorLike = (200, 200, 200),
        line_width: float = 0.1,
    ) -> None:
        self._require_open()
        self._canvas.setStrokeColor(to_color(color))
        self._canvas.setLineWidth(line_width * mm)
        self._canvas.line(x1 * mm, self._pdf_y(y1), x2 * mm, self._pdf_y(y2))
        self._mark(max(y1, y2))

    def draw_image(self, image: bytes | ImageReader, x: float, y: float, width: float, height: float) -> None:
        self._require_open()
        self._canvas.drawImage(
            image_reader(image),
            x * mm,
            self._pdf_y(y + height),
            width=width * mm,
            height=height * mm,
            mask='auto',
        )
        self._mark(y + height)

    def finalize(self) -> bytes:
        """Serialize the document. The canvas accepts no further drawing afterwards."""
        if self.state is CanvasState.finalized:
            raise RuntimeError('document is already finalized')
        if not self.pages:
            self.new_page()
        self._canvas.save()
        self.state = CanvasState.finalized
        return self._buffer.getvalue()

    def _pdf_y(self, y: float) -> float:
        return (self.page_height - y) * mm

    def _apply_paint(self, fill_color: ColorLike | None, stroke_color: ColorLike | None, line_width: float) -> None:
        if fill_color is not None:
            self._canvas.setFillColor(to_color(fill_color))
        if stroke_color is not None:
            self._canvas.setStrokeColor(to_color(stroke_color))
            self._canvas.setLineWidth(line_width * mm)

    def _mark(self, y: float) -> None:
        page = self.current_page
        page.content_bottom = max(page.content_bottom, float(y))

    def _require_open(self, *, allow_no_page: bool = False) -> None:
        if self.state is CanvasState.finalized:
            raise RuntimeError('document is finalized; no further drawing is allowed')
        if self.state is CanvasState.no_page and not allow_no_page:
            raise RuntimeError('no page has been started')
