from __future__ import annotations

import re
from pathlib import Path

from .config import get_settings


_UNSAFE_FILE_CHARS = re.compile(r'[^0-9A-Za-z._-]+')


def reports_root(output_dir: Path | None = None) -> Path:
    root = output_dir if output_dir is not None else get_settings().output_dir
    root.mkdir(parents=True, exist_ok=True)
    return root


def safe_file_name(name: str) -> str:
    token = _UNSAFE_FILE_CHARS.sub('_', str(name or '').strip()).strip('._')
    if not token:
        raise ValueError(f'invalid file name: {name!r}')
    return token


def write_bytes_atomic(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + '.tmp')
    tmp.write_bytes(content)
    tmp.replace(path)
