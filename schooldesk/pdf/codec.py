from __future__ import annotations

import base64
import binascii
import logging
from datetime import date, datetime


logger = logging.getLogger(__name__)

THAI_MONTHS = (
    'มกราคม',
    'กุมภาพันธ์',
    'มีนาคม',
    'เมษายน',
    'พฤษภาคม',
    'มิถุนายน',
    'กรกฎาคม',
    'สิงหาคม',
    'กันยายน',
    'ตุลาคม',
    'พฤศจิกายน',
    'ธันวาคม',
)
BUDDHIST_ERA_OFFSET = 543
DATE_PLACEHOLDER = '....................'

_PNG_MAGIC = b'\x89PNG\r\n\x1a\n'
_JPEG_MAGIC = b'\xff\xd8\xff'


def _split_data_uri(data_uri: str) -> tuple[str, str]:
    header, sep, payload = data_uri.partition(',')
    if not sep:
        return '', data_uri
    return header, payload


def decode_data_uri(data_uri: str | None) -> bytes:
    """Decode ``data:<mime>;base64,<payload>`` or a bare base64 string.

    Malformed input is logged and yields an empty buffer instead of raising.
    """
    if not data_uri:
        return b''
    _, payload = _split_data_uri(str(data_uri))
    token = ''.join(payload.split())
    missing_padding = -len(token) % 4
    if missing_padding in (1, 2):
        token += '=' * missing_padding
    try:
        return base64.b64decode(token, validate=True)
    except (binascii.Error, ValueError) as exc:
        logger.warning('Error converting base64 payload: %s', exc)
        return b''


def encode_data_uri(data: bytes, mime: str = 'application/pdf') -> str:
    return f'data:{mime};base64,{base64.b64encode(data).decode("ascii")}'


def image_kind(data_uri: str | None, data: bytes | None = None) -> str | None:
    """Return ``'png'`` or ``'jpeg'`` from the data-URI header, else from magic bytes."""
    header, _ = _split_data_uri(str(data_uri or ''))
    header = header.lower()
    if 'png' in header:
        return 'png'
    if 'jpeg' in header or 'jpg' in header:
        return 'jpeg'
    if data:
        if data.startswith(_PNG_MAGIC):
            return 'png'
        if data.startswith(_JPEG_MAGIC):
            return 'jpeg'
    return None


def matches_image_kind(data: bytes, kind: str) -> bool:
    if kind == 'png':
        return data.startswith(_PNG_MAGIC)
    if kind == 'jpeg':
        return data.startswith(_JPEG_MAGIC)
    return False


def parse_date(value: date | datetime | str | None) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    token = str(value).strip()
    if not token:
        return None
    try:
        return date.fromisoformat(token[:10])
    except ValueError:
        logger.warning('Unparseable date value: %r', value)
        return None


def format_thai_date(value: date) -> str:
    """``date(2023, 9, 15)`` -> ``'15 กันยายน 2566'``."""
    return f'{value.day} {THAI_MONTHS[value.month - 1]} {value.year + BUDDHIST_ERA_OFFSET}'


def format_thai_date_str(value: date | datetime | str | None) -> str:
    parsed = parse_date(value)
    if parsed is None:
        return DATE_PLACEHOLDER
    return format_thai_date(parsed)


def format_thai_form_date(value: date) -> str:
    return (
        f'วันที่ {value.day} เดือน {THAI_MONTHS[value.month - 1]} '
        f'พ.ศ. {value.year + BUDDHIST_ERA_OFFSET}'
    )
