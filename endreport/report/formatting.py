from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, timezone
from typing import Any, Mapping

from endreport.types import AttachmentType


logger = logging.getLogger(__name__)

NOT_SPECIFIED = 'Not specified'
NOT_PROVIDED = 'Not provided'
INVALID_DATE = 'Invalid date'
DATE_ERROR = 'Date error'

_FILE_SIZE_UNITS = ('B', 'KB', 'MB', 'GB')
_FILE_TYPE_LABELS = {
    'pdf': 'PDF',
    'doc': 'DOC',
    'docx': 'DOCX',
    'jpg': 'JPG',
    'jpeg': 'JPEG',
    'png': 'PNG',
    'gif': 'GIF',
    'txt': 'TXT',
}
_CAMEL_BOUNDARY = re.compile(r'(?<!^)([A-Z])')


def format_number(value: Any) -> str:
    if isinstance(value, bool):
        return 'Yes' if value else 'No'
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return f'{value:g}'
    return str(value)


def display_value(value: Any, placeholder: str = NOT_SPECIFIED) -> str:
    if value is None:
        return placeholder
    if isinstance(value, (list, tuple)):
        items = [display_value(item, '') for item in value]
        joined = ', '.join(item for item in items if item)
        return joined or placeholder
    if isinstance(value, (int, float)):
        return format_number(value)
    text = str(value).strip()
    return text or placeholder


def cell_text(value: Any, default: str = '') -> str:
    """Table cell coercion: falsy values other than zero become the default."""
    if value is None or value == '':
        return default
    return display_value(value, default)


def coerce_datetime(value: Any) -> datetime | None:
    """Parse the date shapes stored upstream. Raises ValueError on unparseable input."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, Mapping):
        seconds = value.get('seconds', value.get('_seconds'))
        if seconds is None:
            raise ValueError(f'unsupported timestamp mapping: {value!r}')
        nanos = value.get('nanoseconds', value.get('_nanoseconds')) or 0
        return datetime.fromtimestamp(float(seconds) + float(nanos) / 1e9, tz=timezone.utc)
    if isinstance(value, bool):
        raise ValueError(f'unsupported date value: {value!r}')
    if isinstance(value, (int, float)):
        # Millisecond epochs are what browsers serialize.
        seconds = float(value) / 1000.0 if abs(float(value)) > 1e11 else float(value)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    text = str(value).strip()
    if not text:
        return None
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return datetime.fromisoformat(text)


def _format_with(value: Any, pattern: str, placeholder: str) -> str:
    try:
        parsed = coerce_datetime(value)
    except ValueError:
        return INVALID_DATE
    except (OverflowError, OSError, TypeError) as exc:
        logger.warning('Failed to format date value %r: %s', value, exc)
        return DATE_ERROR
    if parsed is None:
        return placeholder
    return parsed.strftime(pattern)


def format_date(value: Any, placeholder: str = NOT_SPECIFIED) -> str:
    return _format_with(value, '%d/%m/%Y', placeholder)


def format_datetime(value: Any, placeholder: str = NOT_SPECIFIED) -> str:
    return _format_with(value, '%d/%m/%Y, %H:%M', placeholder)


def format_file_size(size: Any) -> str:
    try:
        value = float(size)
    except (TypeError, ValueError):
        return '-'
    if value <= 0 or not math.isfinite(value):
        return '0 B'
    index = max(0, min(int(math.floor(math.log(value, 1024))), len(_FILE_SIZE_UNITS) - 1))
    scaled = round(value / (1024**index), 1)
    return f'{format_number(scaled)} {_FILE_SIZE_UNITS[index]}'


def file_extension(file_name: Any) -> str:
    name = str(file_name or '')
    if '.' not in name:
        return ''
    return name.rsplit('.', 1)[-1].strip().lower()


def file_type_label(file_name: Any) -> str:
    return _FILE_TYPE_LABELS.get(file_extension(file_name), 'FILE')


def attachment_type_from_name(file_name: Any) -> AttachmentType:
    try:
        return AttachmentType(file_extension(file_name))
    except ValueError:
        return AttachmentType.pdf


def humanize_key(key: str) -> str:
    spaced = _CAMEL_BOUNDARY.sub(r' \1', str(key or '')).replace('_', ' ').lower().strip()
    return spaced[:1].upper() + spaced[1:]


def report_file_name(task: Mapping[str, Any], generated_at: datetime) -> str:
    identifier = str(task.get('moNumber') or task.get('id') or 'unknown').strip()
    return f'End_Product_Report_MO_{identifier}_{generated_at.date().isoformat()}.pdf'
