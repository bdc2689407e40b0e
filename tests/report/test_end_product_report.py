from __future__ import annotations

import asyncio
import io
import logging

import httpx
import pytest
from pypdf import PdfReader

from endreport.report.end_product_report import (
    ReportGenerationError,
    build_end_product_report_pdf,
    compose_end_product_report,
    generate_end_product_report,
    load_background_template,
    save_report,
)
from endreport.report.layout import CONTENT_BOTTOM
from endreport.report.sections import (
    consumed_material_rows,
    ingredient_rows,
    production_history_rows,
)
from endreport.types import ReportInput

from tests.samples import make_pdf, make_png


def _text(pdf_bytes: bytes) -> str:
    return '\n'.join(page.extract_text() or '' for page in PdfReader(io.BytesIO(pdf_bytes)).pages)


def _generate(report_input, settings, generated_at, routes=None, **kwargs):
    routes = routes or {}

    def handler(request: httpx.Request) -> httpx.Response:
        return routes.get(str(request.url), httpx.Response(404))

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await generate_end_product_report(
                report_input,
                settings=settings,
                client=client,
                generated_at=generated_at,
                **kwargs,
            )

    return asyncio.run(run())


def test_mo42_scenario(mo42_input, settings, generated_at):
    report = _generate(mo42_input, settings, generated_at)

    assert report.file_name == 'End_Product_Report_MO_MO-42_2024-03-15.pdf'
    assert ingredient_rows(mo42_input.task['recipe']) == [['VitC', '500', 'mg', '-', '-']]
    text = _text(report.content)
    assert 'VitC' in text
    assert text.count('No production history data') >= 2
    assert report.merged_attachments == []


def test_empty_data_sections_render_notices(settings, generated_at):
    report_input = ReportInput.model_validate({'task': {'id': 'bare-task'}})

    report = _generate(report_input, settings, generated_at)
    text = _text(report.content)

    assert report.page_count >= 2
    for notice in (
        'No consumed materials recorded',
        'No clinical research documents attached',
        'No physicochemical attachments from related purchase orders',
        'No quality control reports for this task',
        'No allergen information provided for this product',
        'No data available',
    ):
        assert notice in text


def test_missing_task_fails_before_drawing(settings):
    with pytest.raises(ReportGenerationError, match='Task data is required'):
        build_end_product_report_pdf(ReportInput(), settings=settings)

    with pytest.raises(ReportGenerationError):
        _generate(ReportInput.model_validate({'task': {}}), settings, None)


def test_every_section_is_drawn_in_order(full_input, settings, generated_at):
    text = _text(build_end_product_report_pdf(full_input, generated_at=generated_at, settings=settings))

    titles = [
        'Product identification',
        'TDS Specification',
        'Active Ingredients',
        'Physicochemical properties',
        'Production',
        'Quality control',
        'Allergens',
        'Disclaimer & Terms of Use',
        'Additional attachments',
    ]
    positions = [text.index(title) for title in titles]
    assert positions == sorted(positions)
    assert 'Acme Labs reserves the right' in text.replace('\n', ' ')


def test_content_never_crosses_bottom_margin(full_input, settings, generated_at):
    composed = compose_end_product_report(full_input, generated_at=generated_at, settings=settings)

    assert composed.page_count >= 3
    for page in composed.pages:
        assert page.content_bottom <= CONTENT_BOTTOM
        assert page.max_cursor_y <= CONTENT_BOTTOM


def test_page_count_is_deterministic(full_input, settings, generated_at):
    first = compose_end_product_report(full_input, generated_at=generated_at, settings=settings)
    second = compose_end_product_report(full_input, generated_at=generated_at, settings=settings)

    assert first.page_count == second.page_count
    assert first.pdf_bytes == second.pdf_bytes


def test_attachments_are_merged_and_footers_count_every_page(full_input, settings, generated_at):
    routes = {
        'https://files.test/study.pdf': httpx.Response(200, content=make_pdf(2, 'Study')),
        'https://files.test/label.png': httpx.Response(200, content=make_png(30, 30)),
    }

    report = _generate(full_input, settings, generated_at, routes)

    assert report.merged_attachments == ['study.pdf', 'label.png']
    assert len(report.failed_attachments) == 1
    assert report.failed_attachments[0].startswith('coa-mg.pdf')
    assert report.page_count == report.base_page_count + 3

    pages = PdfReader(io.BytesIO(report.content)).pages
    total = len(pages)
    assert f'Page 1 of {total} | Generated on 15/03/2024 09:30:05' in pages[0].extract_text()
    assert f'Page {total} of {total}' in pages[-1].extract_text()


def test_no_attachments_flag_skips_merge(full_input, settings, generated_at):
    report = _generate(full_input, settings, generated_at, include_attachments=False)

    assert report.page_count == report.base_page_count
    assert report.failed_attachments == []


def test_background_template_is_optional(caplog):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500))) as client:
            return await load_background_template('https://files.test/template.png', client=client)

    with caplog.at_level(logging.WARNING):
        assert asyncio.run(run()) is None
    assert 'Could not load background template' in caplog.text


def test_background_template_from_local_file(tmp_path, mo42_input, settings, generated_at):
    template = tmp_path / 'template.png'
    template.write_bytes(make_png(21, 30))

    report = _generate(mo42_input, settings, generated_at, template_source=str(template))

    assert report.page_count == report.base_page_count


def test_save_report_writes_into_output_dir(tmp_path, mo42_input, settings, generated_at):
    report = _generate(mo42_input, settings, generated_at)

    path = save_report(report, tmp_path)

    assert path == tmp_path / report.file_name
    assert path.read_bytes() == report.content
    assert not list(tmp_path.glob('*.tmp'))


def test_consumed_materials_are_grouped_by_lot(full_input):
    rows = consumed_material_rows(full_input.task, full_input.materials)

    assert rows == [
        ['Magnesium citrate', 'LOT-1', '5', 'kg', '01/06/2025'],
        ['Pyridoxine', 'LOT-9', '0.5', 'kg', 'Not specified'],
    ]


def test_production_history_has_totals_row(full_input):
    rows = production_history_rows(full_input.production_history, 'pcs')

    assert len(rows) == 3
    assert rows[-1] == ['Total:', '', '150.000 pcs', '360 min']
