"""
Tests for payload decoding, Thai dates and leave-day arithmetic.
"""

import base64
from datetime import date, datetime

from conftest import make_png

from schooldesk.leave_stats import calculate_days, compute_leave_stats, summarize_teacher
from schooldesk.pdf.codec import (
    DATE_PLACEHOLDER,
    decode_data_uri,
    encode_data_uri,
    format_thai_date,
    format_thai_date_str,
    format_thai_form_date,
    image_kind,
    parse_date,
)
from schooldesk.types import LeaveRequest, LeaveStatus, LeaveType


# --------------------------------------------------------------------------- #
# Codec
# --------------------------------------------------------------------------- #

class TestDecodeDataUri:
    def test_data_uri(self):
        uri = 'data:application/pdf;base64,' + base64.b64encode(b'%PDF-1.7').decode()
        assert decode_data_uri(uri) == b'%PDF-1.7'

    def test_bare_base64(self):
        assert decode_data_uri(base64.b64encode(b'hello').decode()) == b'hello'

    def test_malformed_payload_decodes_to_empty(self):
        assert decode_data_uri('not-base64!!') == b''

    def test_missing_padding_is_tolerated(self):
        assert decode_data_uri('aGVsbG8') == b'hello'

    def test_embedded_whitespace_is_ignored(self):
        assert decode_data_uri('data:text/plain;base64,aGVs\nbG8=') == b'hello'

    def test_none_and_empty(self):
        assert decode_data_uri(None) == b''
        assert decode_data_uri('') == b''

    def test_encode_then_decode(self):
        uri = encode_data_uri(b'\x00\x01', 'application/octet-stream')
        assert uri.startswith('data:application/octet-stream;base64,')
        assert decode_data_uri(uri) == b'\x00\x01'


class TestImageKind:
    def test_header_wins(self):
        assert image_kind('data:image/png;base64,AAAA') == 'png'
        assert image_kind('data:image/jpeg;base64,AAAA') == 'jpeg'
        assert image_kind('data:image/jpg;base64,AAAA') == 'jpeg'

    def test_magic_bytes_when_no_header(self):
        assert image_kind('AAAA', make_png()) == 'png'
        assert image_kind('AAAA', b'\xff\xd8\xff\xe0rest') == 'jpeg'

    def test_unknown(self):
        assert image_kind('data:image/gif;base64,AAAA', b'GIF89a') is None


class TestThaiDates:
    def test_long_form(self):
        assert format_thai_date(date(2023, 9, 15)) == '15 กันยายน 2566'

    def test_form_date_line(self):
        assert format_thai_form_date(date(2024, 1, 2)) == 'วันที่ 2 เดือน มกราคม พ.ศ. 2567'

    def test_string_and_datetime_inputs(self):
        assert format_thai_date_str('2023-12-31') == '31 ธันวาคม 2566'
        assert format_thai_date_str('2023-12-31T08:00:00Z') == '31 ธันวาคม 2566'
        assert format_thai_date_str(datetime(2023, 5, 1, 9, 30)) == '1 พฤษภาคม 2566'

    def test_missing_or_invalid_gives_placeholder(self):
        assert format_thai_date_str(None) == DATE_PLACEHOLDER
        assert format_thai_date_str('') == DATE_PLACEHOLDER
        assert format_thai_date_str('not a date') == DATE_PLACEHOLDER

    def test_parse_date(self):
        assert parse_date('2023-09-15') == date(2023, 9, 15)
        assert parse_date('garbage') is None


# --------------------------------------------------------------------------- #
# Leave-day arithmetic
# --------------------------------------------------------------------------- #

def _leave(
    leave_id,
    leave_type,
    start,
    end,
    *,
    teacher_id='t1',
    status=LeaveStatus.approved,
):
    return LeaveRequest(
        id=leave_id,
        teacher_id=teacher_id,
        type=leave_type,
        start_date=start,
        end_date=end,
        status=status,
    )


class TestCalculateDays:
    def test_inclusive(self):
        assert calculate_days('2023-09-15', '2023-09-16') == 2

    def test_same_day(self):
        assert calculate_days(date(2023, 9, 15), date(2023, 9, 15)) == 1

    def test_reversed_range_uses_absolute_difference(self):
        assert calculate_days('2023-09-20', '2023-09-15') == 6

    def test_missing_side(self):
        assert calculate_days(None, '2023-09-15') == 0
        assert calculate_days('2023-09-15', '') == 0


class TestComputeLeaveStats:
    def test_counts_only_approved_history_of_same_teacher(self):
        current = _leave('cur', LeaveType.sick, '2023-09-15', '2023-09-16', status=LeaveStatus.pending)
        history = [
            current,
            _leave('a', LeaveType.sick, '2023-06-01', '2023-06-03'),
            _leave('b', LeaveType.personal, '2023-07-10', '2023-07-10'),
            _leave('c', LeaveType.sick, '2023-08-01', '2023-08-05', status=LeaveStatus.rejected),
            _leave('d', LeaveType.sick, '2023-08-01', '2023-08-05', teacher_id='other'),
            _leave('e', LeaveType.late, '2023-08-20', '2023-08-20'),
            _leave('f', LeaveType.late, '2023-08-21', '2023-08-21'),
            _leave('g', LeaveType.off_campus, '2023-08-22', '2023-08-22'),
        ]
        stats = compute_leave_stats(current, history)
        assert stats.current_days == 2
        assert stats.prev_sick == 3
        assert stats.prev_personal == 1
        assert stats.prev_maternity == 0
        assert stats.prev_late == 2
        assert stats.prev_off_campus == 1

    def test_last_leave_is_latest_before_current(self):
        current = _leave('cur', LeaveType.personal, '2023-09-15', '2023-09-15', status=LeaveStatus.pending)
        history = [
            _leave('a', LeaveType.sick, '2023-06-01', '2023-06-03'),
            _leave('b', LeaveType.sick, '2023-08-01', '2023-08-02'),
            _leave('later', LeaveType.sick, '2023-10-01', '2023-10-02'),
        ]
        stats = compute_leave_stats(current, history)
        assert stats.last_leave.start_date == date(2023, 8, 1)
        assert stats.last_leave.end_date == date(2023, 8, 2)
        assert stats.last_leave_days == 2

    def test_no_history(self):
        current = _leave('cur', LeaveType.sick, '2023-09-15', '2023-09-15', status=LeaveStatus.pending)
        stats = compute_leave_stats(current, [])
        assert stats.last_leave is None
        assert stats.last_leave_days is None
        assert stats.current_days == 1


class TestSummarizeTeacher:
    def test_range_filter(self):
        requests = [
            _leave('a', LeaveType.sick, '2023-01-05', '2023-01-06'),
            _leave('b', LeaveType.sick, '2023-03-05', '2023-03-05'),
            _leave('c', LeaveType.late, '2023-03-06', '2023-03-06'),
            _leave('d', LeaveType.personal, '2023-03-07', '2023-03-08', status=LeaveStatus.pending),
        ]
        summary = summarize_teacher(requests, 't1', '2023-02-01', '2023-03-31')
        assert summary == {
            'sick': 1,
            'personal': 0,
            'maternity': 0,
            'late': 1,
            'off_campus': 0,
            'total_records': 2,
        }
