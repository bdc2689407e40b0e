from __future__ import annotations

import logging

from reportlab.lib.utils import ImageReader

from .canvas import PageCanvas, PageState, image_reader


logger = logging.getLogger(__name__)


class PaginationController:
    """Owns the page number and vertical cursor of a ``PageCanvas``.

    Every drawing helper asks for space *before* drawing. When the request does
    not fit below the cursor, a new page is opened with the background template
    stamped again and the cursor reset to the top of the content area.
    """

    def __init__(self, canvas: PageCanvas, *, background: bytes | None = None) -> None:
        self.canvas = canvas
        self._background: ImageReader | None = None
        if background:
            try:
                self._background = image_reader(background)
                self._background.getSize()
            except Exception as exc:
                logger.warning('Background template is not a readable image; continuing without it: %s', exc)
                self._background = None

    @property
    def page_number(self) -> int:
        return self.canvas.page_count

    @property
    def cursor_y(self) -> float:
        return self.canvas.cursor_y

    @property
    def limit_y(self) -> float:
        return self.canvas.content_bottom

    @property
    def remaining_height(self) -> float:
        return max(0.0, self.limit_y - self.cursor_y)

    @property
    def usable_height(self) -> float:
        return self.canvas.content_bottom - self.canvas.content_top

    def start(self) -> PageState:
        return self.new_page()

    def new_page(self) -> PageState:
        page = self.canvas.new_page(self._background)
        logger.debug('Opened report page %s', page.number)
        return page

    def fits(self, required_height: float) -> bool:
        return self.cursor_y + max(0.0, required_height) <= self.limit_y

    def needs_break(self, required_height: float) -> bool:
        # A fresh page is as good as it gets; breaking again would only add blank pages.
        return not self.fits(required_height) and not self.canvas.at_page_top

    def check_page_break(self, required_height: float) -> bool:
        """Open a new page when ``required_height`` does not fit; returns True on a break."""
        if not self.needs_break(required_height):
            return False
        self.new_page()
        return True

    def check_section_page_break(self, estimated_total_height: float) -> bool:
        """Keep a header together with its content, capped at one usable page."""
        return self.check_page_break(min(max(0.0, estimated_total_height), self.usable_height))

    def advance(self, height: float) -> None:
        self.canvas.cursor_y = min(self.cursor_y + max(0.0, height), self.limit_y)
