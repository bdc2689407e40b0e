from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from .canvas import ColorLike, TextStyle, tint
from .formatting import NOT_SPECIFIED, display_value
from .layout import (
    BLOCK_GAP,
    CAPTION_HEIGHT,
    COLUMN_GAP,
    DEFAULT_TABLE_OPTIONS,
    FIELD_FONT_SIZE,
    FIELD_LABEL_BASELINE,
    FIELD_VALUE_BASELINE,
    FONT_BOLD,
    FONT_ITALIC,
    FONT_REGULAR,
    LINE_HEIGHT,
    NOTICE_HEIGHT,
    PARAGRAPH_FONT_SIZE,
    PARAGRAPH_GAP,
    SECTION_HEADER_HEIGHT,
    SUBSECTION_HEADER_HEIGHT,
    TableOptions,
    cell_available_width,
    cell_lines,
    coerce_headers,
    coerce_rows,
    column_count,
    column_value_lines,
    estimate_section_block,
    estimate_summary_height,
    field_height_for_lines,
    field_value_lines,
    fit_rows,
    table_row_heights,
    two_column_width,
    wrap_text,
)
from .pagination import PaginationController


LABEL_COLOR = (85, 85, 85)
VALUE_COLOR = (0, 0, 0)
MUTED_COLOR = (150, 150, 150)
ACCENT_COLOR = (25, 118, 210)
BODY_COLOR = (33, 33, 33)
WHITE = (255, 255, 255)

DEFAULT_SECTION_COLOR = '#1976d2'
DEFAULT_SUBSECTION_COLOR = '#4caf50'

NO_DATA_TEXT = 'No data available'


@dataclass
class TableRender:
    row_heights: list[float]
    drawn_row_heights: list[float] = field(default_factory=list)
    start_page: int = 0
    end_page: int = 0
    header_repeats: int = 0

    @property
    def page_breaks(self) -> int:
        return self.end_page - self.start_page


class SectionRenderer:
    """Draws headers, fields, tables and free text at the pagination cursor."""

    def __init__(self, pager: PaginationController) -> None:
        self.pager = pager
        self.canvas = pager.canvas

    @property
    def left(self) -> float:
        return self.canvas.margin

    @property
    def width(self) -> float:
        return self.canvas.content_width

    # Headers

    def add_section_header(self, number: int | str, title: str, color: ColorLike = DEFAULT_SECTION_COLOR) -> None:
        self.pager.check_page_break(SECTION_HEADER_HEIGHT)
        self._draw_section_header(number, title, color)

    def add_section_header_with_page_break(
        self,
        number: int | str,
        title: str,
        estimated_content_height: float,
        color: ColorLike = DEFAULT_SECTION_COLOR,
    ) -> None:
        self.pager.check_section_page_break(estimate_section_block(SECTION_HEADER_HEIGHT, estimated_content_height))
        self._draw_section_header(number, title, color)

    def add_subsection_header(self, number: str, title: str, color: ColorLike = DEFAULT_SUBSECTION_COLOR) -> None:
        self.pager.check_page_break(SUBSECTION_HEADER_HEIGHT)
        self._draw_subsection_header(number, title, color)

    def add_subsection_header_with_page_break(
        self,
        number: str,
        title: str,
        estimated_content_height: float,
        color: ColorLike = DEFAULT_SUBSECTION_COLOR,
    ) -> None:
        self.pager.check_section_page_break(estimate_section_block(SUBSECTION_HEADER_HEIGHT, estimated_content_height))
        self._draw_subsection_header(number, title, color)

    def _draw_section_header(self, number: int | str, title: str, color: ColorLike) -> None:
        top = self.pager.cursor_y
        self.canvas.draw_rect(self.left, top, self.width, 12.0, fill_color=tint(color, 0.88))
        self.canvas.draw_circle(self.left + 7.0, top + 6.0, 4.5, fill_color=color)
        self.canvas.draw_text(
            str(number),
            self.left + 7.0,
            top + 7.5,
            TextStyle(font_name=FONT_BOLD, font_size=12, color=WHITE, align='center'),
        )
        self.canvas.draw_text(
            title,
            self.left + 15.0,
            top + 8.3,
            TextStyle(font_name=FONT_BOLD, font_size=16, color=color),
        )
        self.pager.advance(SECTION_HEADER_HEIGHT)

    def _draw_subsection_header(self, number: str, title: str, color: ColorLike) -> None:
        top = self.pager.cursor_y
        self.canvas.draw_round_rect(self.left, top, 20.0, 6.0, 3.0, fill_color=color)
        self.canvas.draw_text(
            str(number),
            self.left + 10.0,
            top + 4.3,
            TextStyle(font_name=FONT_BOLD, font_size=10, color=WHITE, align='center'),
        )
        self.canvas.draw_text(
            title,
            self.left + 25.0,
            top + 4.5,
            TextStyle(font_name=FONT_BOLD, font_size=12, color=color),
        )
        self.pager.advance(SUBSECTION_HEADER_HEIGHT)

    # Fields

    def add_field(self, label: str, value: Any, multiline: bool = False, *, placeholder: str = NOT_SPECIFIED) -> float:
        text = display_value(value, placeholder)
        lines = field_value_lines(text, multiline=multiline, width=self.width)
        height = field_height_for_lines(len(lines))
        self.pager.check_page_break(height)
        self._draw_field(self.left, self.pager.cursor_y, label, lines)
        self.pager.advance(height)
        return height

    def add_field_two_columns(
        self,
        label_left: str,
        value_left: Any,
        label_right: str,
        value_right: Any,
        multiline: bool = False,
        *,
        placeholder: str = NOT_SPECIFIED,
    ) -> float:
        column_width = two_column_width(self.width)
        left_lines = column_value_lines(display_value(value_left, placeholder), width=column_width, multiline=multiline)
        right_lines = column_value_lines(display_value(value_right, placeholder), width=column_width, multiline=multiline)
        height = max(field_height_for_lines(len(left_lines)), field_height_for_lines(len(right_lines)))

        self.pager.check_page_break(height)
        top = self.pager.cursor_y
        self._draw_field(self.left, top, label_left, left_lines)
        self._draw_field(self.left + column_width + COLUMN_GAP, top, label_right, right_lines)
        self.pager.advance(height)
        return height

    def _draw_field(self, x: float, top: float, label: str, lines: Sequence[str]) -> None:
        self.canvas.draw_text(
            f'{label}:',
            x,
            top + FIELD_LABEL_BASELINE,
            TextStyle(font_name=FONT_BOLD, font_size=FIELD_FONT_SIZE, color=LABEL_COLOR),
        )
        value_style = TextStyle(font_name=FONT_REGULAR, font_size=FIELD_FONT_SIZE, color=VALUE_COLOR)
        for index, line in enumerate(lines):
            self.canvas.draw_text(line, x, top + FIELD_VALUE_BASELINE + index * LINE_HEIGHT, value_style)

    # Tables

    def add_table(
        self,
        headers: Sequence[Any],
        rows: Any,
        options: TableOptions = DEFAULT_TABLE_OPTIONS,
    ) -> TableRender:
        header_cells = coerce_headers(headers)
        columns = column_count(header_cells, coerce_rows(rows))
        data_rows = fit_rows(rows, columns)
        if not data_rows:
            self.add_notice(NO_DATA_TEXT)
            page = self.pager.page_number
            return TableRender(row_heights=[], start_page=page, end_page=page)

        heights = table_row_heights(header_cells, data_rows, options, content_width=self.width)
        header_height = heights[0] if header_cells else 0.0
        data_heights = heights[1:] if header_cells else heights
        column_width = self.width / columns
        available = cell_available_width(columns, options, content_width=self.width)

        total = sum(heights)
        if total <= self.pager.usable_height:
            self.pager.check_page_break(total + options.trailing_pad)
        else:
            self.pager.check_page_break(header_height + data_heights[0])

        result = TableRender(row_heights=heights, start_page=self.pager.page_number)
        segment_top = self.pager.cursor_y
        segment_heights: list[float] = []
        if header_cells:
            self._draw_table_header(header_cells, header_height, column_width, available, options)
            segment_heights.append(header_height)
            result.drawn_row_heights.append(header_height)

        for index, (row, height) in enumerate(zip(data_rows, data_heights)):
            if self.pager.needs_break(height):
                self._draw_table_grid(segment_top, segment_heights, columns, column_width, options)
                self.pager.new_page()
                segment_top = self.pager.cursor_y
                segment_heights = []
                if header_cells:
                    self._draw_table_header(header_cells, header_height, column_width, available, options)
                    segment_heights.append(header_height)
                    result.header_repeats += 1

            row_top = self.pager.cursor_y
            if index % 2 == 1:
                self.canvas.draw_rect(self.left, row_top, self.width, height, fill_color=options.alternate_row_color)
            self._draw_cells(row, row_top, column_width, available, options, bold=False, color=VALUE_COLOR)
            self.pager.advance(height)
            segment_heights.append(height)
            result.drawn_row_heights.append(height)

        self._draw_table_grid(segment_top, segment_heights, columns, column_width, options)
        result.end_page = self.pager.page_number
        self.pager.advance(options.trailing_pad)
        return result

    def _draw_table_header(
        self,
        header_cells: Sequence[str],
        height: float,
        column_width: float,
        available: float,
        options: TableOptions,
    ) -> None:
        top = self.pager.cursor_y
        self.canvas.draw_rect(self.left, top, self.width, height, fill_color=options.header_color)
        self._draw_cells(header_cells, top, column_width, available, options, bold=True, color=WHITE)
        self.pager.advance(height)

    def _draw_cells(
        self,
        cells: Sequence[str],
        top: float,
        column_width: float,
        available: float,
        options: TableOptions,
        *,
        bold: bool,
        color: ColorLike,
    ) -> None:
        style = TextStyle(font_name=FONT_BOLD if bold else FONT_REGULAR, font_size=options.font_size, color=color)
        for column, cell in enumerate(cells):
            x = self.left + column * column_width + options.padding
            for line_index, line in enumerate(cell_lines(cell, available, options, bold=bold)):
                self.canvas.draw_text(line, x, top + options.padding + 3.0 + line_index * options.line_height, style)

    def _draw_table_grid(
        self,
        top: float,
        heights: Sequence[float],
        columns: int,
        column_width: float,
        options: TableOptions,
    ) -> None:
        if not heights:
            return
        bottom = top + sum(heights)
        self.canvas.draw_rect(self.left, top, self.width, bottom - top, stroke_color=options.border_color)
        line_y = top
        for height in heights[:-1]:
            line_y += height
            self.canvas.draw_line(self.left, line_y, self.left + self.width, line_y, color=options.border_color)
        for column in range(1, columns):
            line_x = self.left + column * column_width
            self.canvas.draw_line(line_x, top, line_x, bottom, color=options.border_color)

    # Free text

    def add_caption(
        self,
        text: str,
        *,
        color: ColorLike = LABEL_COLOR,
        font_size: float = 10,
        gap_before: float = BLOCK_GAP,
        keep_with_next: float = 0.0,
    ) -> None:
        self.pager.advance(gap_before)
        self.pager.check_page_break(CAPTION_HEIGHT + keep_with_next)
        self.canvas.draw_text(
            text,
            self.left,
            self.pager.cursor_y + 5.0,
            TextStyle(font_name=FONT_BOLD, font_size=font_size, color=color),
        )
        self.pager.advance(CAPTION_HEIGHT)

    def add_notice(self, text: str) -> None:
        self.pager.check_page_break(NOTICE_HEIGHT)
        self.canvas.draw_text(
            text,
            self.left,
            self.pager.cursor_y + 4.0,
            TextStyle(font_name=FONT_ITALIC, font_size=9, color=MUTED_COLOR),
            max_width=self.width,
        )
        self.pager.advance(NOTICE_HEIGHT)

    def add_summary(self, title: str, bullets: Sequence[str] = (), *, color: ColorLike = ACCENT_COLOR) -> None:
        height = estimate_summary_height(len(bullets))
        self.pager.check_page_break(height)
        top = self.pager.cursor_y
        self.canvas.draw_text(title, self.left, top + 4.0, TextStyle(font_name=FONT_BOLD, font_size=9, color=color))
        bullet_style = TextStyle(font_name=FONT_REGULAR, font_size=9, color=LABEL_COLOR)
        for index, bullet in enumerate(bullets, start=1):
            self.canvas.draw_text(bullet, self.left, top + 4.0 + index * LINE_HEIGHT, bullet_style)
        self.pager.advance(height)

    def add_paragraph(
        self,
        text: str,
        *,
        bold: bool = False,
        font_size: float = PARAGRAPH_FONT_SIZE,
        color: ColorLike = BODY_COLOR,
        indent: float = 0.0,
        bullet: str | None = None,
    ) -> None:
        font_name = FONT_BOLD if bold else FONT_REGULAR
        lines = wrap_text(text, self.width - indent, font_name=font_name, font_size=font_size) or ['']
        style = TextStyle(font_name=font_name, font_size=font_size, color=color)
        for index, line in enumerate(lines):
            self.pager.check_page_break(LINE_HEIGHT)
            baseline = self.pager.cursor_y + 3.0
            if bullet and index == 0:
                self.canvas.draw_text(bullet, self.left + max(0.0, indent - 4.0), baseline, style)
            self.canvas.draw_text(line, self.left + indent, baseline, style)
            self.pager.advance(LINE_HEIGHT)
        self.pager.advance(PARAGRAPH_GAP)

    def add_bullets(self, items: Sequence[str], **kwargs: Any) -> None:
        for item in items:
            self.add_paragraph(item, indent=5.0, bullet='•', **kwargs)

    def add_spacing(self, height: float) -> None:
        self.pager.advance(height)
