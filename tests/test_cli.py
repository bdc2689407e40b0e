from __future__ import annotations

import json

import main
from endreport.config import get_settings


def _write_input(tmp_path, payload) -> str:
    path = tmp_path / 'task.json'
    path.write_text(json.dumps(payload), encoding='utf-8')
    return str(path)


def test_generate_writes_pdf_and_prints_summary(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv('ENDREPORT_TEMPLATE_SOURCE', str(tmp_path / 'missing-template.png'))
    get_settings.cache_clear()
    source = _write_input(tmp_path, {'task': {'moNumber': 'MO-42', 'recipe': {'ingredients': []}}})
    out_dir = tmp_path / 'out'

    try:
        code = main.main(['generate', '--input', source, '--output-dir', str(out_dir), '--no-attachments'])
    finally:
        get_settings.cache_clear()

    payload = json.loads(capsys.readouterr().out)
    assert code == 0
    assert payload['status'] == 'completed'
    assert payload['file_name'].startswith('End_Product_Report_MO_MO-42_')
    assert (out_dir / payload['file_name']).read_bytes().startswith(b'%PDF')


def test_generate_without_task_reports_error(tmp_path, capsys):
    source = _write_input(tmp_path, {'companyData': {'name': 'Acme'}})

    code = main.main(['generate', '--input', source, '--no-attachments', '--template', ''])

    assert code == 1
    assert 'Task data is required' in json.loads(capsys.readouterr().out)['message']


def test_missing_input_file(tmp_path, capsys):
    code = main.main(['attachments', '--input', str(tmp_path / 'nope.json')])

    assert code == 2
    assert json.loads(capsys.readouterr().out)['status'] == 'error'


def test_attachments_lists_merge_candidates(tmp_path, capsys):
    source = _write_input(
        tmp_path,
        {
            'task': {'id': 't'},
            'additionalAttachments': [{'fileName': 'photo.jpg', 'downloadURL': 'https://files.test/photo.jpg'}],
        },
    )

    code = main.main(['attachments', '--input', source])

    payload = json.loads(capsys.readouterr().out)
    assert code == 0
    assert payload['count'] == 1
    assert payload['attachments'][0]['file_type'] == 'jpg'
