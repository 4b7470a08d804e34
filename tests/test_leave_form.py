"""
Tests for the official leave form.
"""

import asyncio
import io
from datetime import date

from pypdf import PdfReader

from schooldesk.pdf.codec import DATE_PLACEHOLDER, decode_data_uri
from schooldesk.pdf.leave_form import (
    DEFAULT_TITLE,
    DOT_DAYS,
    StatsRow,
    draw_leave_form,
    form_title,
    generate_official_leave_pdf,
    history_sentence,
    request_sentence,
    stats_rows,
)
from schooldesk.pdf.stamping import load_optional_image
from schooldesk.types import LastLeave, LeaveFormRequest, LeaveRequest, LeaveStats, LeaveStatus, LeaveType, StaffMember


def _request(leave_type=LeaveType.sick, **overrides):
    fields = {
        'id': 'leave_1',
        'teacher_id': 't1',
        'type': leave_type,
        'start_date': date(2023, 9, 15),
        'end_date': date(2023, 9, 16),
        'reason': 'fever',
    }
    fields.update(overrides)
    return LeaveRequest(**fields)


def _form(request=None, stats=None, **overrides):
    fields = {
        'request': request or _request(),
        'stats': stats or LeaveStats(current_days=2, prev_sick=3),
        'teacher': StaffMember(id='t1', name='Teacher One', position='Teacher'),
        'school_name': 'Demo School',
        'director_name': 'Director Two',
    }
    fields.update(overrides)
    return LeaveFormRequest(**fields)


# --------------------------------------------------------------------------- #
# Sentences and table rows
# --------------------------------------------------------------------------- #

class TestSentences:
    def test_titles(self):
        assert form_title(LeaveType.late) == 'แบบขออนุญาตเข้าสาย'
        assert form_title(LeaveType.off_campus) == 'แบบขออนุญาตออกนอกบริเวณโรงเรียน'
        assert form_title(LeaveType.sick) == DEFAULT_TITLE
        assert form_title(LeaveType.maternity) == DEFAULT_TITLE

    def test_off_campus_uses_time_fragments(self):
        request = _request(LeaveType.off_campus, start_time='09:00', end_time='11:30')
        sentence = request_sentence(request, LeaveStats())
        assert ' เวลา 09:00 น.' in sentence
        assert ' ถึงเวลา 11:30 น.' in sentence
        assert 'มีกำหนด' not in sentence
        assert 'ตั้งแต่วันที่ 15 กันยายน 2566 เวลา 09:00 น. ถึงเวลา 11:30 น. ถึงวันที่' in sentence

    def test_late_without_end_time(self):
        request = _request(LeaveType.late, start_time='08:45')
        sentence = request_sentence(request, LeaveStats())
        assert ' เวลา 08:45 น.' in sentence
        assert 'ถึงเวลา' not in sentence

    def test_sick_uses_day_count(self):
        sentence = request_sentence(_request(), LeaveStats(current_days=2))
        assert 'มีกำหนด 2 วัน' in sentence
        assert 'เวลา' not in sentence
        assert '15 กันยายน 2566' in sentence

    def test_history_placeholders_without_last_leave(self):
        sentence = history_sentence(LeaveStats())
        assert sentence.count(DATE_PLACEHOLDER) == 2
        assert f'มีกำหนด {DOT_DAYS} วัน' in sentence

    def test_history_with_last_leave(self):
        stats = LeaveStats(last_leave=LastLeave(start_date=date(2023, 8, 1), end_date=date(2023, 8, 3)))
        sentence = history_sentence(stats)
        assert '1 สิงหาคม 2566' in sentence
        assert 'มีกำหนด 3 วัน' in sentence


class TestStatsRows:
    def test_sick_scenario(self):
        rows = stats_rows(_request(), LeaveStats(current_days=2, prev_sick=3))
        assert rows[0] == StatsRow('ป่วย', 3, 2, 5)
        assert rows[0].cells() == ('ป่วย', '3', '2', '5')
        assert rows[1].cells() == ('กิจส่วนตัว', '0', '-', '0')
        assert [r.label for r in rows] == ['ป่วย', 'กิจส่วนตัว', 'คลอดบุตร']

    def test_current_days_derived_from_request_dates(self):
        form = LeaveFormRequest.model_validate(
            {
                'request': {
                    'id': 'leave_3',
                    'teacherId': 't1',
                    'type': 'Sick',
                    'startDate': '2023-09-15',
                    'endDate': '2023-09-16',
                    'reason': 'fever',
                },
                'stats': {'prevSick': 3},
                'teacher': {'id': 't1', 'name': 'Teacher One'},
                'schoolName': 'Demo School',
                'directorName': 'Director Two',
            }
        )
        assert form.stats.current_days is None
        rows = stats_rows(form.request, form.stats)
        assert rows[0].cells() == ('ป่วย', '3', '2', '5')
        assert request_sentence(form.request, form.stats).endswith('มีกำหนด 2 วัน')

    def test_explicit_current_days_wins(self):
        rows = stats_rows(_request(), LeaveStats(current_days=0, prev_sick=3))
        assert rows[0].cells() == ('ป่วย', '3', '-', '3')

    def test_late_single_row(self):
        rows = stats_rows(_request(LeaveType.late), LeaveStats(prev_late=4))
        assert rows == [StatsRow('สาย', 4, 1, 5)]

    def test_off_campus_single_row(self):
        rows = stats_rows(_request(LeaveType.off_campus), LeaveStats(prev_off_campus=0))
        assert rows == [StatsRow('ออกนอก', 0, 1, 1)]


# --------------------------------------------------------------------------- #
# Page composition
# --------------------------------------------------------------------------- #

class TestDrawLeaveForm:
    def test_layout_summary(self, blank_canvas, fonts):
        layout = draw_leave_form(blank_canvas, _form(), fonts, today=date(2023, 9, 14))
        assert layout.title == DEFAULT_TITLE
        assert len(layout.sentences) == 4
        assert len(layout.stats_rows) == 3
        assert 0 < layout.body_end_y < blank_canvas.height
        assert layout.emblem_placed is False
        assert layout.teacher_signature_placed is False

    def test_images_placed(self, blank_canvas, fonts, png_data_uri):
        emblem = load_optional_image(blank_canvas, png_data_uri, label='emblem')
        form = _form(
            request=_request(status=LeaveStatus.approved, approved_date=date(2023, 9, 14)),
            teacher_signature_base64=png_data_uri,
            director_signature_base64=png_data_uri,
        )
        layout = draw_leave_form(blank_canvas, form, fonts, emblem=emblem)
        assert layout.emblem_placed is True
        assert layout.teacher_signature_placed is True
        assert layout.director_signature_placed is True

    def test_director_signature_only_when_approved(self, blank_canvas, fonts, png_data_uri):
        form = _form(director_signature_base64=png_data_uri)
        layout = draw_leave_form(blank_canvas, form, fonts)
        assert layout.director_signature_placed is False

    def test_broken_teacher_signature_falls_back(self, blank_canvas, fonts, broken_png_data_uri):
        form = _form(teacher_signature_base64=broken_png_data_uri)
        layout = draw_leave_form(blank_canvas, form, fonts)
        assert layout.teacher_signature_placed is False


class TestGenerateOfficialLeavePdf:
    def test_single_page(self, asset_loader):
        result = asyncio.run(generate_official_leave_pdf(_form(), assets=asset_loader, today=date(2023, 9, 14)))
        assert result.startswith('data:application/pdf;base64,')
        reader = PdfReader(io.BytesIO(decode_data_uri(result)))
        assert len(reader.pages) == 1

    def test_broken_emblem_is_omitted(self, asset_loader, broken_png_data_uri):
        form = _form(request=_request(LeaveType.late, start_time='08:45'), official_emblem_base64=broken_png_data_uri)
        result = asyncio.run(generate_official_leave_pdf(form, assets=asset_loader))
        reader = PdfReader(io.BytesIO(decode_data_uri(result)))
        assert len(reader.pages) == 1

    def test_camel_case_payload(self, asset_loader):
        form = LeaveFormRequest.model_validate(
            {
                'request': {
                    'id': 'leave_2',
                    'teacherId': 't1',
                    'type': 'OffCampus',
                    'startDate': '2023-09-15',
                    'endDate': '2023-09-15',
                    'startTime': '13:00',
                    'endTime': '15:00',
                    'reason': 'meeting',
                },
                'stats': {'prevOffCampus': 2},
                'teacher': {'id': 't1', 'name': 'Teacher One'},
                'schoolName': 'Demo School',
                'directorName': 'Director Two',
            }
        )
        assert form.stats.prev_off_campus == 2
        result = asyncio.run(generate_official_leave_pdf(form, assets=asset_loader))
        assert len(PdfReader(io.BytesIO(decode_data_uri(result))).pages) == 1
