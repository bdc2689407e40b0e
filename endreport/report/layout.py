"""Page geometry and height estimation for the end product report.

Everything here is pure: nothing touches a canvas or a cursor. The renderer
uses the same wrapping and row-height functions when it draws, so estimated
and drawn heights cannot drift apart.

All lengths are millimetres; font sizes are points.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics

from .formatting import cell_text


PAGE_WIDTH = A4[0] / mm
PAGE_HEIGHT = A4[1] / mm
MARGIN = 20.0
HEADER_OFFSET = 30.0
CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN
CONTENT_TOP = MARGIN + HEADER_OFFSET
CONTENT_BOTTOM = PAGE_HEIGHT - MARGIN
USABLE_HEIGHT = CONTENT_BOTTOM - CONTENT_TOP

FONT_REGULAR = 'Helvetica'
FONT_BOLD = 'Helvetica-Bold'
FONT_ITALIC = 'Helvetica-Oblique'

LINE_HEIGHT = 4.0
SECTION_HEADER_HEIGHT = 17.0
SUBSECTION_HEADER_HEIGHT = 12.0
SECTION_GAP = 10.0
BLOCK_GAP = 5.0

FIELD_HEIGHT = 8.0
FIELD_FONT_SIZE = 9.0
FIELD_LABEL_BASELINE = 3.0
FIELD_VALUE_BASELINE = 7.0
MULTILINE_THRESHOLD = 50
COLUMN_GAP = 6.0

CAPTION_HEIGHT = 8.0
NOTICE_HEIGHT = 8.0
NO_DATA_HEIGHT = NOTICE_HEIGHT
PARAGRAPH_FONT_SIZE = 9.0
PARAGRAPH_GAP = 2.0


@dataclass(frozen=True)
class TableOptions:
    header_color: tuple[int, int, int] = (25, 118, 210)
    alternate_row_color: tuple[int, int, int] = (245, 245, 245)
    border_color: tuple[int, int, int] = (200, 200, 200)
    font_size: float = 8.0
    min_row_height: float = 6.0
    padding: float = 2.0
    line_height: float = LINE_HEIGHT
    trailing_pad: float = 5.0


DEFAULT_TABLE_OPTIONS = TableOptions()


def measure_text_width(text: str, *, font_name: str, font_size: float) -> float:
    """Width of ``text`` in millimetres."""
    if not text:
        return 0.0
    try:
        return float(pdfmetrics.stringWidth(text, font_name, font_size)) / mm
    except Exception:
        pass

    width = 0.0
    for char in text:
        if char.isspace():
            width += font_size * 0.45
        elif ord(char) > 127:
            width += font_size * 0.98
        else:
            width += font_size * 0.56
    return width / mm


def _split_token_by_width(token: str, *, max_width: float, font_name: str, font_size: float) -> list[str]:
    chunks: list[str] = []
    current = ''
    for char in token:
        candidate = f'{current}{char}'
        if measure_text_width(candidate, font_name=font_name, font_size=font_size) <= max_width:
            current = candidate
            continue
        if current:
            chunks.append(current)
            current = char
            continue
        chunks.append(char)
        current = ''
    if current:
        chunks.append(current)
    return chunks


def wrap_text(
    text: Any,
    max_width: float,
    *,
    font_name: str = FONT_REGULAR,
    font_size: float = FIELD_FONT_SIZE,
) -> list[str]:
    """Greedy word wrap at ``max_width`` mm; words wider than a line are split by character."""
    value = '' if text is None else str(text)
    if not value:
        return []
    limit = max(1.0, float(max_width))

    lines: list[str] = []
    for paragraph in value.replace('\r\n', '\n').split('\n'):
        words = paragraph.split()
        if not words:
            lines.append('')
            continue
        current = ''
        for word in words:
            candidate = f'{current} {word}' if current else word
            if measure_text_width(candidate, font_name=font_name, font_size=font_size) <= limit:
                current = candidate
                continue
            if current:
                lines.append(current)
                current = ''
            if measure_text_width(word, font_name=font_name, font_size=font_size) <= limit:
                current = word
                continue
            chunks = _split_token_by_width(word, max_width=limit, font_name=font_name, font_size=font_size)
            lines.extend(chunks[:-1])
            current = chunks[-1] if chunks else ''
        if current:
            lines.append(current)
    return lines


def coerce_rows(rows: Any) -> list[list[str]]:
    if not isinstance(rows, (list, tuple)):
        return []
    normalized: list[list[str]] = []
    for row in rows:
        if isinstance(row, (list, tuple)):
            normalized.append([cell_text(cell) for cell in row])
        else:
            normalized.append([cell_text(row)])
    return normalized


def coerce_headers(headers: Any) -> list[str]:
    if not isinstance(headers, (list, tuple)):
        return []
    return [cell_text(header) for header in headers]


def column_count(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> int:
    if headers:
        return len(headers)
    return max((len(row) for row in rows), default=1) or 1


def fit_rows(rows: Any, columns: int) -> list[list[str]]:
    """Rows clipped to ``columns`` cells; cells past the last column are not drawn."""
    return [row[:columns] for row in coerce_rows(rows)]


def cell_available_width(columns: int, options: TableOptions = DEFAULT_TABLE_OPTIONS, *, content_width: float = CONTENT_WIDTH) -> float:
    return content_width / max(1, columns) - 2 * options.padding


def cell_lines(text: str, available_width: float, options: TableOptions, *, bold: bool = False) -> list[str]:
    return wrap_text(
        text,
        available_width,
        font_name=FONT_BOLD if bold else FONT_REGULAR,
        font_size=options.font_size,
    )


def _row_height(cells: Iterable[str], available_width: float, options: TableOptions, *, bold: bool) -> float:
    height = options.min_row_height
    for cell in cells:
        lines = cell_lines(cell, available_width, options, bold=bold)
        if not lines:
            continue
        height = max(height, len(lines) * options.line_height + options.padding)
    return height


def table_row_heights(
    headers: Any,
    rows: Any,
    options: TableOptions = DEFAULT_TABLE_OPTIONS,
    *,
    content_width: float = CONTENT_WIDTH,
) -> list[float]:
    """Heights of the header row (when present) followed by every data row."""
    header_cells = coerce_headers(headers)
    columns = column_count(header_cells, coerce_rows(rows))
    data_rows = fit_rows(rows, columns)
    available = cell_available_width(columns, options, content_width=content_width)

    heights: list[float] = []
    if header_cells:
        heights.append(_row_height(header_cells, available, options, bold=True))
    for row in data_rows:
        heights.append(_row_height(row, available, options, bold=False))
    return heights


def estimate_table_height(
    headers: Any,
    rows: Any,
    options: TableOptions = DEFAULT_TABLE_OPTIONS,
    *,
    content_width: float = CONTENT_WIDTH,
) -> float:
    if not coerce_rows(rows):
        return NO_DATA_HEIGHT
    heights = table_row_heights(headers, rows, options, content_width=content_width)
    return sum(heights) + options.trailing_pad


def field_value_lines(value: str, *, multiline: bool = False, width: float = CONTENT_WIDTH) -> list[str]:
    if multiline and len(value) > MULTILINE_THRESHOLD:
        return wrap_text(value, width, font_name=FONT_REGULAR, font_size=FIELD_FONT_SIZE) or ['']
    return [' '.join(value.split()) or value]


def field_height_for_lines(line_count: int) -> float:
    return max(FIELD_HEIGHT, line_count * LINE_HEIGHT + 4.0)


def estimate_field_height(value: str, *, multiline: bool = False, width: float = CONTENT_WIDTH) -> float:
    return field_height_for_lines(len(field_value_lines(value, multiline=multiline, width=width)))


def two_column_width(content_width: float = CONTENT_WIDTH) -> float:
    return (content_width - COLUMN_GAP) / 2


def column_value_lines(value: str, *, width: float, multiline: bool = False) -> list[str]:
    """Lines of a value inside one column; always wrapped so it never runs into the next column."""
    text = value if multiline else ' '.join(value.split())
    return wrap_text(text, width, font_name=FONT_REGULAR, font_size=FIELD_FONT_SIZE) or ['']


def estimate_two_column_height(
    left_value: str,
    right_value: str,
    *,
    multiline: bool = False,
    content_width: float = CONTENT_WIDTH,
) -> float:
    width = two_column_width(content_width)
    return max(
        field_height_for_lines(len(column_value_lines(left_value, width=width, multiline=multiline))),
        field_height_for_lines(len(column_value_lines(right_value, width=width, multiline=multiline))),
    )


def estimate_field_block(values: Iterable[str], *, multiline: bool = False, width: float = CONTENT_WIDTH) -> float:
    return sum(estimate_field_height(value, multiline=multiline, width=width) for value in values)


def estimate_paragraph_height(
    text: str,
    *,
    width: float = CONTENT_WIDTH,
    font_name: str = FONT_REGULAR,
    font_size: float = PARAGRAPH_FONT_SIZE,
    line_height: float = LINE_HEIGHT,
) -> float:
    lines = wrap_text(text, width, font_name=font_name, font_size=font_size)
    return max(1, len(lines)) * line_height + PARAGRAPH_GAP


def estimate_summary_height(bullet_count: int) -> float:
    return (1 + bullet_count) * LINE_HEIGHT + 4.0


def estimate_section_block(header_height: float, content_height: float) -> float:
    return header_height + max(0.0, content_height)
