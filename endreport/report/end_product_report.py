from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx

from endreport.config import Settings, get_settings
from endreport.storage import reports_root, safe_file_name, write_bytes_atomic
from endreport.types import GeneratedReport, ReportInput, utcnow

from .attachments import collect_report_attachments, fetch_source_bytes, merge_attachments
from .canvas import PageCanvas, PageState
from .footer import count_pages, stamp_page_footers
from .formatting import report_file_name
from .pagination import PaginationController
from .renderer import SectionRenderer
from .sections import SECTIONS, ReportContext


logger = logging.getLogger(__name__)


class ReportGenerationError(RuntimeError):
    pass


@dataclass
class ComposedReport:
    pdf_bytes: bytes
    pages: list[PageState] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)


def _require_task(report_input: ReportInput) -> dict[str, Any]:
    task = report_input.task
    if not task:
        raise ReportGenerationError('Task data is required for generating the report')
    return task


async def load_background_template(
    source: str | None,
    *,
    client: httpx.AsyncClient,
    timeout_seconds: float = 10.0,
) -> bytes | None:
    """Fetch the page background image. Any failure yields ``None``."""
    if not source:
        return None
    try:
        content = await asyncio.wait_for(
            fetch_source_bytes(source, client=client, timeout_seconds=timeout_seconds),
            timeout=timeout_seconds,
        )
    except Exception as exc:
        logger.warning('Could not load background template from %s: %s', source, exc)
        return None
    if not content:
        logger.warning('Background template at %s is empty; continuing without it', source)
        return None
    return content


def compose_end_product_report(
    report_input: ReportInput,
    *,
    background: bytes | None = None,
    generated_at: datetime | None = None,
    settings: Settings | None = None,
) -> ComposedReport:
    task = _require_task(report_input)
    cfg = settings or get_settings()
    stamp = generated_at or utcnow()

    canvas = PageCanvas(
        title=f"{cfg.pdf_title} - MO {task.get('moNumber') or task.get('id') or ''}".strip(),
        author=cfg.pdf_author,
        producer=cfg.pdf_producer,
    )
    pager = PaginationController(canvas, background=background)
    pager.start()
    renderer = SectionRenderer(pager)
    context = ReportContext(data=report_input, task=task, generated_at=stamp)

    for render in SECTIONS:
        render(renderer, context)

    pdf_bytes = canvas.finalize()
    logger.info('Composed end product report with %s pages', canvas.page_count)
    return ComposedReport(pdf_bytes=pdf_bytes, pages=list(canvas.pages))


def build_end_product_report_pdf(
    report_input: ReportInput,
    *,
    background: bytes | None = None,
    generated_at: datetime | None = None,
    settings: Settings | None = None,
) -> bytes:
    return compose_end_product_report(
        report_input,
        background=background,
        generated_at=generated_at,
        settings=settings,
    ).pdf_bytes


async def generate_end_product_report(
    report_input: ReportInput,
    *,
    settings: Settings | None = None,
    client: httpx.AsyncClient | None = None,
    generated_at: datetime | None = None,
    template_source: str | None = None,
    include_attachments: bool = True,
    cancel_event: asyncio.Event | None = None,
) -> GeneratedReport:
    """Compose the report, append its attachments and stamp page footers.

    A missing task is rejected before anything is drawn. A missing background
    template and failing attachments only degrade the output; any other error
    is raised as ``ReportGenerationError``.
    """
    task = _require_task(report_input)
    cfg = settings or get_settings()
    stamp = generated_at or utcnow()

    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=cfg.attachment_timeout_seconds, follow_redirects=True)
    try:
        background = await load_background_template(
            template_source if template_source is not None else cfg.template_source,
            client=http,
            timeout_seconds=cfg.template_timeout_seconds,
        )
        composed = compose_end_product_report(report_input, background=background, generated_at=stamp, settings=cfg)

        pdf_bytes = composed.pdf_bytes
        merged: list[str] = []
        failed: list[str] = []
        if include_attachments:
            merge = await merge_attachments(
                pdf_bytes,
                collect_report_attachments(report_input),
                client=http,
                timeout_seconds=cfg.attachment_timeout_seconds,
                max_concurrency=cfg.attachment_max_concurrency,
                deadline_seconds=cfg.attachment_deadline_seconds,
                cancel_event=cancel_event,
                max_bytes=cfg.max_attachment_bytes,
            )
            if merge.pdf_bytes is not None:
                pdf_bytes = merge.pdf_bytes
            merged = list(merge.merged)
            failed = [f'{failure.file_name}: {failure.reason}' for failure in merge.failed]

        pdf_bytes = stamp_page_footers(pdf_bytes, stamp)
        report = GeneratedReport(
            file_name=report_file_name(task, stamp),
            content=pdf_bytes,
            page_count=count_pages(pdf_bytes),
            base_page_count=composed.page_count,
            merged_attachments=merged,
            failed_attachments=failed,
            generated_at=stamp,
        )
    except ReportGenerationError:
        raise
    except Exception as exc:
        logger.error('End product report generation failed: %s', exc)
        raise ReportGenerationError(f'Failed to generate PDF report: {exc}') from exc
    finally:
        if owns_client:
            await http.aclose()

    logger.info(
        'Generated %s (%s pages, %s attachments merged, %s failed)',
        report.file_name,
        report.page_count,
        len(report.merged_attachments),
        len(report.failed_attachments),
    )
    return report


def save_report(report: GeneratedReport, output_dir: Path | None = None) -> Path:
    path = reports_root(output_dir) / safe_file_name(report.file_name)
    write_bytes_atomic(path, report.content)
    logger.info('Saved report to %s', path)
    return path
