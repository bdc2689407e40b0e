from __future__ import annotations

import pytest

from endreport.storage import reports_root, safe_file_name, write_bytes_atomic


def test_safe_file_name_replaces_unsafe_characters():
    assert safe_file_name('End Product/Report: MO#1.pdf') == 'End_Product_Report_MO_1.pdf'


@pytest.mark.parametrize('name', ['', '   ', '///', None])
def test_safe_file_name_rejects_empty_names(name):
    with pytest.raises(ValueError):
        safe_file_name(name)


def test_reports_root_creates_directory(tmp_path):
    target = tmp_path / 'nested' / 'reports'

    assert reports_root(target) == target
    assert target.is_dir()


def test_write_bytes_atomic_replaces_existing_file(tmp_path):
    path = tmp_path / 'report.pdf'
    path.write_bytes(b'old')

    write_bytes_atomic(path, b'new content')

    assert path.read_bytes() == b'new content'
    assert not (tmp_path / 'report.pdf.tmp').exists()
