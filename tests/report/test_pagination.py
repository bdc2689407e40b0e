from __future__ import annotations

import logging

import pytest

from endreport.report.canvas import PageCanvas
from endreport.report.layout import CONTENT_BOTTOM, CONTENT_TOP, USABLE_HEIGHT
from endreport.report.pagination import PaginationController

from tests.samples import make_png


@pytest.fixture
def pager() -> PaginationController:
    controller = PaginationController(PageCanvas())
    controller.start()
    return controller


def test_start_opens_first_page_at_content_top(pager):
    assert pager.page_number == 1
    assert pager.cursor_y == CONTENT_TOP
    assert pager.usable_height == USABLE_HEIGHT


def test_check_page_break_only_when_block_does_not_fit(pager):
    pager.advance(100)

    assert pager.check_page_break(pager.remaining_height) is False
    assert pager.check_page_break(pager.remaining_height + 1) is True
    assert pager.page_number == 2
    assert pager.cursor_y == CONTENT_TOP


def test_fresh_page_never_breaks_again(pager):
    assert pager.check_page_break(USABLE_HEIGHT * 3) is False
    assert pager.page_number == 1


def test_section_break_is_capped_at_one_page(pager):
    pager.advance(1)

    assert pager.check_section_page_break(USABLE_HEIGHT * 5) is True
    assert pager.check_section_page_break(USABLE_HEIGHT * 5) is False
    assert pager.page_number == 2


def test_advance_is_clamped_to_content_bottom(pager):
    pager.advance(USABLE_HEIGHT + 50)

    assert pager.cursor_y == CONTENT_BOTTOM
    assert pager.canvas.current_page.max_cursor_y == CONTENT_BOTTOM


def test_background_is_stamped_on_every_page():
    canvas = PageCanvas()
    pager = PaginationController(canvas, background=make_png(8, 8))
    pager.start()
    pager.new_page()

    assert [page.has_background for page in canvas.pages] == [True, True]


def test_unreadable_background_is_dropped_with_warning(caplog):
    canvas = PageCanvas()
    with caplog.at_level(logging.WARNING):
        pager = PaginationController(canvas, background=b'definitely not an image')
    pager.start()

    assert canvas.pages[0].has_background is False
    assert 'Background template is not a readable image' in caplog.text


def test_drawing_after_finalize_is_rejected(pager):
    pager.canvas.finalize()

    with pytest.raises(RuntimeError):
        pager.new_page()
    with pytest.raises(RuntimeError):
        pager.canvas.finalize()
