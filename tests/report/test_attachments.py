from __future__ import annotations

import asyncio
import io
import logging

import httpx
import pytest
from pypdf import PdfReader

from endreport.report.attachments import (
    AttachmentMergeResult,
    collect_report_attachments,
    detect_attachment_kind,
    fetch_attachment_bytes,
    merge_attachments,
    render_image_page,
)
from endreport.types import Attachment, AttachmentType, ReportInput

from tests.samples import make_pdf, make_png


def _client(routes: dict[str, httpx.Response]) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        response = routes.get(str(request.url))
        if response is None:
            return httpx.Response(404)
        return response

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _merge(base: bytes, attachments: list[Attachment], routes: dict[str, httpx.Response], **kwargs) -> AttachmentMergeResult:
    async def run() -> AttachmentMergeResult:
        async with _client(routes) as client:
            return await merge_attachments(base, attachments, client=client, **kwargs)

    return asyncio.run(run())


def _page_count(pdf_bytes: bytes) -> int:
    return len(PdfReader(io.BytesIO(pdf_bytes)).pages)


def test_partial_failure_merges_the_rest_in_order(caplog):
    base = make_pdf(2, 'Base')
    attachments = [
        Attachment(file_url='https://files.test/a.pdf', file_name='a.pdf'),
        Attachment(file_url='https://files.test/missing.pdf', file_name='missing.pdf'),
        Attachment(file_url='https://files.test/c.pdf', file_name='c.pdf'),
    ]
    routes = {
        'https://files.test/a.pdf': httpx.Response(200, content=make_pdf(1, 'First')),
        'https://files.test/c.pdf': httpx.Response(200, content=make_pdf(3, 'Third')),
    }

    with caplog.at_level(logging.WARNING):
        result = _merge(base, attachments, routes)

    assert result.merged == ['a.pdf', 'c.pdf']
    assert [failure.file_name for failure in result.failed] == ['missing.pdf']
    assert result.added_pages == 4
    assert _page_count(result.pdf_bytes) == 6
    assert 'Failed to fetch attachment missing.pdf' in caplog.text

    pages = PdfReader(io.BytesIO(result.pdf_bytes)).pages
    assert 'First page 1' in pages[2].extract_text()
    assert 'Third page 1' in pages[3].extract_text()


def test_nothing_merged_leaves_base_untouched():
    attachments = [Attachment(file_url='https://files.test/gone.pdf', file_name='gone.pdf')]

    result = _merge(make_pdf(1), attachments, {})

    assert result.pdf_bytes is None
    assert result.changed is False
    assert len(result.failed) == 1


def test_empty_attachment_list_is_a_no_op():
    result = _merge(make_pdf(1), [], {})

    assert result == AttachmentMergeResult()


def test_image_attachment_becomes_one_captioned_page():
    attachments = [Attachment(file_url='https://files.test/label.png', file_name='label.png', file_type='png')]
    routes = {'https://files.test/label.png': httpx.Response(200, content=make_png(40, 20))}

    result = _merge(make_pdf(1), attachments, routes)

    assert result.merged == ['label.png']
    assert result.added_pages == 1
    last = PdfReader(io.BytesIO(result.pdf_bytes)).pages[-1]
    assert 'label.png' in last.extract_text()


def test_corrupt_pdf_is_skipped_with_warning(caplog):
    attachments = [Attachment(file_url='https://files.test/bad.pdf', file_name='bad.pdf')]
    routes = {'https://files.test/bad.pdf': httpx.Response(200, content=b'this is not a pdf at all')}

    with caplog.at_level(logging.WARNING):
        result = _merge(make_pdf(1), attachments, routes)

    assert result.merged == []
    assert result.failed[0].file_name == 'bad.pdf'


def test_deadline_marks_pending_attachments_as_failed():
    async def slow_handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200, content=make_pdf(1))

    attachments = [
        Attachment(file_url='https://files.test/slow-1.pdf', file_name='slow-1.pdf'),
        Attachment(file_url='https://files.test/slow-2.pdf', file_name='slow-2.pdf'),
    ]

    async def run() -> AttachmentMergeResult:
        async with httpx.AsyncClient(transport=httpx.MockTransport(slow_handler)) as client:
            return await merge_attachments(make_pdf(1), attachments, client=client, deadline_seconds=0.2)

    result = asyncio.run(run())

    assert result.pdf_bytes is None
    assert [failure.reason for failure in result.failed] == ['attachment deadline exceeded'] * 2


def test_cancel_event_skips_remaining_fetches():
    attachments = [Attachment(file_url='https://files.test/a.pdf', file_name='a.pdf')]
    routes = {'https://files.test/a.pdf': httpx.Response(200, content=make_pdf(1))}

    async def run() -> AttachmentMergeResult:
        cancel = asyncio.Event()
        cancel.set()
        async with _client(routes) as client:
            return await merge_attachments(make_pdf(1), attachments, client=client, cancel_event=cancel)

    result = asyncio.run(run())

    assert result.merged == []
    assert 'AttachmentCancelled' in result.failed[0].reason


def test_oversized_attachment_is_rejected():
    attachment = Attachment(file_url='https://files.test/big.pdf', file_name='big.pdf')
    routes = {'https://files.test/big.pdf': httpx.Response(200, content=b'%PDF-' + b'0' * 100)}

    async def run() -> bytes:
        async with _client(routes) as client:
            return await fetch_attachment_bytes(attachment, client=client, timeout_seconds=1.0, max_bytes=10)

    with pytest.raises(ValueError, match='too large'):
        asyncio.run(run())


def test_local_paths_are_read_from_disk(tmp_path):
    path = tmp_path / 'local.pdf'
    path.write_bytes(make_pdf(2))

    result = _merge(make_pdf(1), [Attachment(file_url=str(path), file_name='local.pdf')], {})

    assert result.added_pages == 2


def test_collect_prefers_explicit_list():
    report_input = ReportInput.model_validate(
        {
            'task': {'id': 't'},
            'attachments': [{'fileUrl': 'https://files.test/x.pdf', 'fileName': 'x.pdf', 'fileType': 'PDF'}],
            'additionalAttachments': [{'fileName': 'y.pdf', 'downloadURL': 'https://files.test/y.pdf'}],
        }
    )

    collected = collect_report_attachments(report_input)

    assert [item.file_name for item in collected] == ['x.pdf']
    assert collected[0].file_type is AttachmentType.pdf


def test_collect_derives_list_from_metadata(full_input):
    collected = collect_report_attachments(full_input)

    assert [item.file_name for item in collected] == ['study.pdf', 'coa-mg.pdf', 'label.png']
    assert collected[-1].file_type is AttachmentType.png


def test_detect_kind_trusts_magic_bytes_over_declared_type():
    assert detect_attachment_kind(make_png(), AttachmentType.pdf) is AttachmentType.png
    assert detect_attachment_kind(make_pdf(), AttachmentType.png) is AttachmentType.pdf
    assert detect_attachment_kind(b'unknown', AttachmentType.jpg) is AttachmentType.jpg


def test_render_image_page_is_a_single_page_pdf():
    assert _page_count(render_image_page(make_png(100, 300), 'tall.png')) == 1


def test_zero_deadline_is_already_exceeded():
    async def slow_handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200, content=make_pdf(1))

    attachments = [Attachment(file_url='https://files.test/late.pdf', file_name='late.pdf')]

    async def run() -> AttachmentMergeResult:
        async with httpx.AsyncClient(transport=httpx.MockTransport(slow_handler)) as client:
            return await merge_attachments(make_pdf(1), attachments, client=client, deadline_seconds=0)

    result = asyncio.run(run())

    assert result.pdf_bytes is None
    assert result.merged == []
    assert [failure.reason for failure in result.failed] == ['attachment deadline exceeded']
