from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path

from pydantic import ValidationError

from endreport.config import get_settings
from endreport.report.attachments import collect_report_attachments
from endreport.report.end_product_report import (
    ReportGenerationError,
    generate_end_product_report,
    save_report,
)
from endreport.types import ReportInput


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _load_input(path_value: str) -> ReportInput | dict:
    path = Path(path_value).expanduser().resolve()
    if not path.exists() or not path.is_file():
        return {'status': 'error', 'message': f'Input not found: {path}'}
    try:
        raw = json.loads(path.read_text(encoding='utf-8'))
        return ReportInput.model_validate(raw)
    except (json.JSONDecodeError, ValidationError) as exc:
        return {'status': 'error', 'message': f'Invalid report input {path}: {exc}'}


def cmd_generate(args: argparse.Namespace) -> int:
    loaded = _load_input(args.input)
    if isinstance(loaded, dict):
        _print_json(loaded)
        return 2

    try:
        report = asyncio.run(
            generate_end_product_report(
                loaded,
                settings=get_settings(),
                template_source=args.template,
                include_attachments=not args.no_attachments,
            )
        )
    except ReportGenerationError as exc:
        _print_json({'status': 'error', 'message': str(exc)})
        return 1

    output_dir = Path(args.output_dir).expanduser() if args.output_dir else None
    path = save_report(report, output_dir)
    payload = {'status': 'completed', 'path': str(path)}
    payload.update(report.summary())
    _print_json(payload)
    return 0


def cmd_attachments(args: argparse.Namespace) -> int:
    loaded = _load_input(args.input)
    if isinstance(loaded, dict):
        _print_json(loaded)
        return 2

    attachments = collect_report_attachments(loaded)
    _print_json(
        {
            'count': len(attachments),
            'attachments': [attachment.model_dump(mode='json') for attachment in attachments],
        }
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='End product report composer CLI')
    sub = parser.add_subparsers(dest='command', required=True)

    generate = sub.add_parser('generate', help='Compose the end product report PDF for a manufacturing order')
    generate.add_argument('--input', required=True, help='Path to the report input JSON')
    generate.add_argument('--output-dir', required=False, help='Directory for the generated PDF')
    generate.add_argument('--template', required=False, help='Background template path or URL')
    generate.add_argument('--no-attachments', action='store_true', help='Skip merging attachment files')
    generate.set_defaults(func=cmd_generate)

    attachments = sub.add_parser('attachments', help='List the attachments that would be merged')
    attachments.add_argument('--input', required=True, help='Path to the report input JSON')
    attachments.set_defaults(func=cmd_attachments)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    return int(args.func(args))


if __name__ == '__main__':
    raise SystemExit(main())
