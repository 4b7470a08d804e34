from __future__ import annotations

import argparse
import asyncio
import json
import logging
import mimetypes
from datetime import date
from pathlib import Path

from schooldesk.adapters.assets import AssetLoader
from schooldesk.adapters.telegram import TelegramNotifier
from schooldesk.config import get_settings
from schooldesk.errors import SchoolDeskError
from schooldesk.leave_service import STAFF_COLLECTION, LeaveService
from schooldesk.pdf.codec import decode_data_uri, encode_data_uri
from schooldesk.pdf.director_stamp import stamp_director_command
from schooldesk.pdf.receive_stamp import stamp_receive_number
from schooldesk.storage import JsonDocumentStore
from schooldesk.types import DirectorStampRequest, LeaveType, ReceiveStampRequest, StaffMember, StampStage


logger = logging.getLogger(__name__)


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _file_to_data_uri(path_value: str | None) -> tuple[str | None, str | None]:
    if not path_value:
        return None, None
    path = Path(path_value).expanduser().resolve()
    if not path.exists() or not path.is_file():
        raise FileNotFoundError(f'File not found: {path}')
    mime = mimetypes.guess_type(path.name)[0] or 'application/octet-stream'
    return encode_data_uri(path.read_bytes(), mime), mime


def _write_output(data_uri: str, output: str) -> Path:
    out_path = Path(output).expanduser().resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(decode_data_uri(data_uri))
    return out_path


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


class _LoggingObserver:
    def on_stage(self, stage: StampStage) -> None:
        logger.info('Director stamp stage: %s', stage.value)


def _build_service() -> LeaveService:
    return LeaveService(
        JsonDocumentStore(),
        TelegramNotifier.from_settings(),
        assets=AssetLoader.from_settings(),
    )


def _find_staff(service: LeaveService, staff_id: str) -> StaffMember | None:
    return next((s for s in service.list_staff() if s.id == staff_id), None)


def cmd_stamp_receive(args: argparse.Namespace) -> int:
    pdf_uri, _ = _file_to_data_uri(args.pdf)
    logo_uri, _ = _file_to_data_uri(args.logo)
    request = ReceiveStampRequest(
        file_base64=pdf_uri or '',
        book_number=args.book_number,
        date=args.date,
        time=args.time,
        school_name=args.school_name,
        school_logo_base64=logo_uri,
    )
    result = asyncio.run(stamp_receive_number(request))
    out_path = _write_output(result, args.out)
    _print_json({'status': 'ok', 'output_path': str(out_path)})
    return 0


def cmd_stamp_command(args: argparse.Namespace) -> int:
    source_uri, source_mime = _file_to_data_uri(args.source)
    signature_uri, _ = _file_to_data_uri(args.signature)
    logo_uri, _ = _file_to_data_uri(args.logo)
    command_text = args.command_text or ''
    if args.command_file:
        command_text = Path(args.command_file).read_text(encoding='utf-8')

    request = DirectorStampRequest(
        file_url=source_uri,
        file_type=source_mime or 'new',
        command_text=command_text,
        director_name=args.director_name,
        director_position=args.director_position,
        signature_image_base64=signature_uri,
        school_name=args.school_name,
        school_logo_base64=logo_uri,
        target_page=args.target_page,
        signature_scale=args.signature_scale,
        signature_y_offset=args.signature_y_offset,
    )
    result = asyncio.run(stamp_director_command(request, observer=_LoggingObserver()))
    out_path = _write_output(result, args.out)
    _print_json({'status': 'ok', 'output_path': str(out_path)})
    return 0


def cmd_leave_form(args: argparse.Namespace) -> int:
    signature_uri, _ = _file_to_data_uri(args.director_signature)
    emblem_uri, _ = _file_to_data_uri(args.emblem)
    service = _build_service()
    try:
        result = asyncio.run(
            service.render_official_form(
                args.request_id,
                school_name=args.school_name,
                director_signature_base64=signature_uri,
                official_emblem_base64=emblem_uri,
                director_signature_scale=args.signature_scale,
                director_signature_y_offset=args.signature_y_offset,
            )
        )
    except KeyError as exc:
        _print_json({'status': 'error', 'message': str(exc.args[0])})
        return 2
    out_path = _write_output(result, args.out)
    _print_json({'status': 'ok', 'request_id': args.request_id, 'output_path': str(out_path)})
    return 0


def cmd_add_staff(args: argparse.Namespace) -> int:
    signature_uri, _ = _file_to_data_uri(args.signature)
    staff = StaffMember(
        id=args.id,
        name=args.name,
        position=args.position,
        school_id=args.school_id,
        roles=args.role or [],
        signature_base64=signature_uri,
        telegram_chat_id=args.telegram_chat_id,
    )
    JsonDocumentStore().put(STAFF_COLLECTION, staff.id, staff.model_dump(mode='json', by_alias=True))
    _print_json({'status': 'ok', 'staff_id': staff.id})
    return 0


def cmd_submit_leave(args: argparse.Namespace) -> int:
    service = _build_service()
    teacher = _find_staff(service, args.teacher_id)
    if teacher is None:
        _print_json({'status': 'error', 'message': f'Staff member not found: {args.teacher_id}'})
        return 2
    request = asyncio.run(
        service.submit(
            teacher,
            leave_type=LeaveType(args.type),
            start_date=_parse_date(args.start_date),
            end_date=_parse_date(args.end_date),
            reason=args.reason,
            start_time=args.start_time,
            end_time=args.end_time,
            contact_info=args.contact_info or '',
            mobile_phone=args.mobile_phone or '',
        )
    )
    _print_json({'status': 'ok', 'request': request.model_dump(mode='json', by_alias=True)})
    return 0


def cmd_decide_leave(args: argparse.Namespace) -> int:
    service = _build_service()
    director = _find_staff(service, args.director_id)
    if director is None or not director.is_director:
        _print_json({'status': 'error', 'message': f'Director not found: {args.director_id}'})
        return 2
    try:
        request = asyncio.run(service.decide(args.request_id, director, approved=args.decision == 'approve'))
    except KeyError as exc:
        _print_json({'status': 'error', 'message': str(exc.args[0])})
        return 2
    _print_json({'status': 'ok', 'request': request.model_dump(mode='json', by_alias=True)})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='SchoolDesk official document CLI')
    sub = parser.add_subparsers(dest='command', required=True)

    receive = sub.add_parser('stamp-receive', help='Stamp a receive number on page 1 of a PDF')
    receive.add_argument('--pdf', required=True, help='Path to the source PDF')
    receive.add_argument('--book-number', required=True)
    receive.add_argument('--date', required=True)
    receive.add_argument('--time', required=True)
    receive.add_argument('--school-name', required=False)
    receive.add_argument('--logo', required=False, help='PNG/JPEG school logo')
    receive.add_argument('--out', required=True, help='Output PDF path')
    receive.set_defaults(func=cmd_stamp_receive)

    command = sub.add_parser('stamp-command', help='Stamp a director command box')
    command.add_argument('--source', required=False, help='PDF or image; omit for a blank sheet')
    command.add_argument('--command-text', required=False)
    command.add_argument('--command-file', required=False, help='UTF-8 text file with the command')
    command.add_argument('--director-name', required=True)
    command.add_argument('--director-position', required=False)
    command.add_argument('--signature', required=False, help='Signature image')
    command.add_argument('--school-name', required=False)
    command.add_argument('--logo', required=False)
    command.add_argument('--target-page', type=int, default=1)
    command.add_argument('--signature-scale', type=float, default=1.0)
    command.add_argument('--signature-y-offset', type=float, default=0.0)
    command.add_argument('--out', required=True)
    command.set_defaults(func=cmd_stamp_command)

    leave_form = sub.add_parser('leave-form', help='Render the official leave form of a stored request')
    leave_form.add_argument('--request-id', required=True)
    leave_form.add_argument('--school-name', required=False)
    leave_form.add_argument('--director-signature', required=False)
    leave_form.add_argument('--emblem', required=False)
    leave_form.add_argument('--signature-scale', type=float, default=1.0)
    leave_form.add_argument('--signature-y-offset', type=float, default=0.0)
    leave_form.add_argument('--out', required=True)
    leave_form.set_defaults(func=cmd_leave_form)

    staff = sub.add_parser('add-staff', help='Create or update a staff record')
    staff.add_argument('--id', required=True)
    staff.add_argument('--name', required=True)
    staff.add_argument('--position', default='ครู')
    staff.add_argument('--school-id', required=False)
    staff.add_argument('--role', action='append', help='Repeatable, e.g. --role TEACHER --role DIRECTOR')
    staff.add_argument('--signature', required=False)
    staff.add_argument('--telegram-chat-id', required=False)
    staff.set_defaults(func=cmd_add_staff)

    submit = sub.add_parser('submit-leave', help='Submit a leave request')
    submit.add_argument('--teacher-id', required=True)
    submit.add_argument('--type', required=True, choices=[t.value for t in LeaveType])
    submit.add_argument('--start-date', required=True, help='YYYY-MM-DD')
    submit.add_argument('--end-date', required=True, help='YYYY-MM-DD')
    submit.add_argument('--reason', required=True)
    submit.add_argument('--start-time', required=False)
    submit.add_argument('--end-time', required=False)
    submit.add_argument('--contact-info', required=False)
    submit.add_argument('--mobile-phone', required=False)
    submit.set_defaults(func=cmd_submit_leave)

    decide = sub.add_parser('decide-leave', help='Approve or reject a leave request')
    decide.add_argument('--request-id', required=True)
    decide.add_argument('--director-id', required=True)
    decide.add_argument('--decision', required=True, choices=['approve', 'reject'])
    decide.set_defaults(func=cmd_decide_leave)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=get_settings().log_level.upper())
    try:
        return int(args.func(args))
    except (SchoolDeskError, FileNotFoundError) as exc:
        _print_json({'status': 'error', 'message': str(exc)})
        return 2


if __name__ == '__main__':
    raise SystemExit(main())
