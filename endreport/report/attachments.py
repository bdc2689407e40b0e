from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Sequence
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx
from pypdf import PageObject, PdfReader, PdfWriter
from reportlab.lib.utils import ImageReader

from endreport.types import Attachment, AttachmentType, ReportInput

from .canvas import PageCanvas, TextStyle
from .formatting import attachment_type_from_name
from .layout import FONT_REGULAR, MARGIN, PAGE_HEIGHT, PAGE_WIDTH


logger = logging.getLogger(__name__)

IMAGE_CAPTION_SPACE = 15.0
DEFAULT_MAX_ATTACHMENT_BYTES = 50 * 1024 * 1024

_PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'
_JPEG_SIGNATURE = b'\xff\xd8\xff'


class AttachmentCancelled(RuntimeError):
    pass


@dataclass
class AttachmentFailure:
    file_name: str
    reason: str


@dataclass
class AttachmentMergeResult:
    pdf_bytes: bytes | None = None
    merged: list[str] = field(default_factory=list)
    failed: list[AttachmentFailure] = field(default_factory=list)
    added_pages: int = 0

    @property
    def changed(self) -> bool:
        return self.pdf_bytes is not None


def _attachment_rows(report_input: ReportInput) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = list(report_input.clinical_attachments)
    for group in report_input.ingredient_attachments.values():
        rows.extend(group)
    rows.extend(report_input.additional_attachments)
    return rows


def collect_report_attachments(report_input: ReportInput) -> list[Attachment]:
    """Merge list for a report: the explicit list if given, else every linked attachment."""
    if report_input.attachments is not None:
        return list(report_input.attachments)

    collected: list[Attachment] = []
    for row in _attachment_rows(report_input):
        url = str(row.get('downloadURL') or row.get('fileUrl') or '').strip()
        name = str(row.get('fileName') or '').strip()
        if not url or not name:
            continue
        collected.append(Attachment(file_url=url, file_name=name, file_type=attachment_type_from_name(name)))
    return collected


def detect_attachment_kind(content: bytes, declared: AttachmentType) -> AttachmentType:
    head = content[:1024]
    if b'%PDF-' in head:
        return AttachmentType.pdf
    if head.startswith(_PNG_SIGNATURE):
        return AttachmentType.png
    if head.startswith(_JPEG_SIGNATURE):
        return AttachmentType.jpeg
    return declared


async def fetch_source_bytes(source: str, *, client: httpx.AsyncClient, timeout_seconds: float) -> bytes:
    """Read bytes from an http(s) URL, a ``file://`` URL or a local path."""
    location = str(source or '').strip()
    if not location:
        raise ValueError('empty source location')

    parsed = urlparse(location)
    if parsed.scheme in ('http', 'https'):
        response = await client.get(location, timeout=timeout_seconds)
        response.raise_for_status()
        return response.content

    path = Path(url2pathname(parsed.path)) if parsed.scheme == 'file' else Path(location).expanduser()
    return await asyncio.to_thread(path.read_bytes)


async def fetch_attachment_bytes(
    attachment: Attachment,
    *,
    client: httpx.AsyncClient,
    timeout_seconds: float,
    max_bytes: int = DEFAULT_MAX_ATTACHMENT_BYTES,
) -> bytes:
    content = await fetch_source_bytes(attachment.file_url, client=client, timeout_seconds=timeout_seconds)
    if not content:
        raise ValueError(f'attachment is empty: {attachment.file_name}')
    if len(content) > max_bytes:
        raise ValueError(f'attachment too large: {len(content)} bytes, max allowed {max_bytes} bytes')
    return content


def _repair_with_pymupdf(content: bytes) -> bytes | None:
    try:
        import pymupdf as fitz
    except Exception as exc:
        logger.warning('PyMuPDF unavailable for attachment repair: %s', exc)
        return None

    document = None
    try:
        document = fitz.open(stream=content, filetype='pdf')
        if document.is_encrypted and not document.authenticate(''):
            return None
        return document.tobytes(garbage=3, deflate=True)
    except Exception as exc:
        logger.warning('PyMuPDF could not repair attachment PDF: %s', exc)
        return None
    finally:
        if document is not None:
            document.close()


def _open_pdf(content: bytes) -> PdfReader:
    try:
        reader = PdfReader(io.BytesIO(content))
        len(reader.pages)
    except Exception as exc:
        repaired = _repair_with_pymupdf(content)
        if repaired is None:
            raise ValueError(f'unreadable PDF: {exc}') from exc
        reader = PdfReader(io.BytesIO(repaired))

    if reader.is_encrypted:
        try:
            decrypted = reader.decrypt('')
        except Exception as exc:
            raise ValueError('PDF is encrypted') from exc
        if not decrypted:
            raise ValueError('PDF is encrypted')
    return reader


def render_image_page(content: bytes, caption: str) -> bytes:
    """One A4 page with the image scaled to fit inside the margins, centred, captioned below."""
    image = ImageReader(io.BytesIO(content))
    image_width, image_height = image.getSize()
    if image_width <= 0 or image_height <= 0:
        raise ValueError('image has no pixels')

    max_width = PAGE_WIDTH - 2 * MARGIN
    max_height = PAGE_HEIGHT - 2 * MARGIN - IMAGE_CAPTION_SPACE
    scale = min(max_width / image_width, max_height / image_height)
    width = image_width * scale
    height = image_height * scale
    x = (PAGE_WIDTH - width) / 2
    y = MARGIN + (max_height - height) / 2

    page = PageCanvas(header_offset=0.0)
    page.new_page()
    page.draw_image(image, x, y, width, height)
    page.draw_text(
        caption,
        PAGE_WIDTH / 2,
        y + height + 8.0,
        TextStyle(font_name=FONT_REGULAR, font_size=10, color=(85, 85, 85), align='center'),
        max_width=max_width,
    )
    return page.finalize()


def attachment_pages(attachment: Attachment, content: bytes) -> list[PageObject]:
    kind = detect_attachment_kind(content, attachment.file_type)
    if kind is AttachmentType.pdf:
        pages = list(_open_pdf(content).pages)
        if not pages:
            raise ValueError('PDF has no pages')
        return pages
    return list(PdfReader(io.BytesIO(render_image_page(content, attachment.file_name))).pages)


async def _fetch_guarded(
    attachment: Attachment,
    *,
    client: httpx.AsyncClient,
    semaphore: asyncio.Semaphore,
    timeout_seconds: float,
    max_bytes: int,
    cancel_event: asyncio.Event | None,
) -> bytes:
    async with semaphore:
        if cancel_event is not None and cancel_event.is_set():
            raise AttachmentCancelled('attachment merge cancelled')
        return await asyncio.wait_for(
            fetch_attachment_bytes(attachment, client=client, timeout_seconds=timeout_seconds, max_bytes=max_bytes),
            timeout=timeout_seconds,
        )


def _describe(exc: BaseException) -> str:
    message = str(exc).strip()
    return f'{type(exc).__name__}: {message}' if message else type(exc).__name__


async def merge_attachments(
    base_pdf: bytes,
    attachments: Iterable[Attachment] | None,
    *,
    client: httpx.AsyncClient | None = None,
    timeout_seconds: float = 30.0,
    max_concurrency: int = 1,
    deadline_seconds: float | None = None,
    cancel_event: asyncio.Event | None = None,
    max_bytes: int = DEFAULT_MAX_ATTACHMENT_BYTES,
) -> AttachmentMergeResult:
    """Append attachment pages to ``base_pdf``.

    Attachments are fetched with at most ``max_concurrency`` in flight and
    merged in input order. A failing attachment is logged and skipped. When
    nothing could be merged the result carries no bytes.
    """
    items: Sequence[Attachment] = list(attachments or [])
    result = AttachmentMergeResult()
    if not items:
        return result

    writer = PdfWriter()
    for page in PdfReader(io.BytesIO(base_pdf)).pages:
        writer.add_page(page)

    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=True)
    semaphore = asyncio.Semaphore(max(1, int(max_concurrency)))
    loop = asyncio.get_running_loop()
    deadline_at = loop.time() + deadline_seconds if deadline_seconds is not None else None

    tasks = [
        asyncio.create_task(
            _fetch_guarded(
                attachment,
                client=http,
                semaphore=semaphore,
                timeout_seconds=timeout_seconds,
                max_bytes=max_bytes,
                cancel_event=cancel_event,
            )
        )
        for attachment in items
    ]

    try:
        for index, (attachment, task) in enumerate(zip(items, tasks)):
            remaining = None if deadline_at is None else max(0.0, deadline_at - loop.time())
            done, _ = await asyncio.wait({task}, timeout=remaining)
            if not done:
                for pending in tasks[index:]:
                    pending.cancel()
                await asyncio.gather(*tasks[index:], return_exceptions=True)
                for skipped in items[index:]:
                    logger.warning('Attachment deadline exceeded; skipping %s', skipped.file_name)
                    result.failed.append(AttachmentFailure(skipped.file_name, 'attachment deadline exceeded'))
                break

            if task.cancelled():
                error: BaseException | None = AttachmentCancelled('fetch cancelled')
            else:
                error = task.exception()
            if error is not None:
                logger.warning(
                    'Failed to fetch attachment %s from %s: %s',
                    attachment.file_name,
                    attachment.file_url,
                    _describe(error),
                )
                result.failed.append(AttachmentFailure(attachment.file_name, _describe(error)))
                continue

            try:
                pages = attachment_pages(attachment, task.result())
                for page in pages:
                    writer.add_page(page)
            except Exception as exc:
                logger.warning('Failed to merge attachment %s: %s', attachment.file_name, _describe(exc))
                result.failed.append(AttachmentFailure(attachment.file_name, _describe(exc)))
                continue

            result.merged.append(attachment.file_name)
            result.added_pages += len(pages)
            logger.info('Merged attachment %s (%s pages)', attachment.file_name, len(pages))
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if owns_client:
            await http.aclose()

    if not result.merged:
        logger.info('No attachments merged; keeping the base report unchanged')
        return result

    output = io.BytesIO()
    writer.write(output)
    result.pdf_bytes = output.getvalue()
    return result
