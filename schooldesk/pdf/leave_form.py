from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from reportlab.lib import colors

from schooldesk.adapters.assets import AssetLoader
from schooldesk.leave_stats import calculate_days
from schooldesk.pdf.canvas import EmbeddedImage, PageCanvas, new_document, new_page, to_data_uri
from schooldesk.pdf.codec import DATE_PLACEHOLDER, format_thai_date_str, format_thai_form_date
from schooldesk.pdf.stamping import ThaiFonts, embed_thai_fonts, load_optional_image, place_image
from schooldesk.pdf.text_layout import ParagraphFlow
from schooldesk.types import LeaveFormRequest, LeaveRequest, LeaveStats, LeaveStatus, LeaveType, StaffMember


logger = logging.getLogger(__name__)

FONT_SIZE = 16
LINE_HEIGHT = 18
MARGIN = 50
INDENT = 60
TITLE_SIZE = 20
SMALL_SIZE = 14
TABLE_FONT_SIZE = 12

EMBLEM_SIZE = 60
WRITE_AT_RIGHT_GAP = 20
SIGNATURE_BLOCK_OFFSET = 120
TEACHER_SIG_MAX = (100, 40)
DIRECTOR_SIG_MAX = (80, 40)

COLUMN_WIDTH = 60
ROW_HEIGHT = 20
DIRECTOR_BOX_WIDTH = 220
DIRECTOR_BOX_HEIGHT = 160

DOT_SIGNATURE = '(.......................................................)'
DOT_DECISION_DATE = '.....................................'
DOT_DAYS = '...'

TITLES = {
    LeaveType.late: 'แบบขออนุญาตเข้าสาย',
    LeaveType.off_campus: 'แบบขออนุญาตออกนอกบริเวณโรงเรียน',
}
DEFAULT_TITLE = 'แบบใบลาป่วย ลาคลอดบุตร ลากิจส่วนตัว'

LEAVE_TYPE_NAMES = {
    LeaveType.sick: 'ป่วย',
    LeaveType.personal: 'กิจส่วนตัว',
    LeaveType.off_campus: 'ออกนอกบริเวณ',
    LeaveType.late: 'เข้าสาย',
    LeaveType.maternity: 'คลอดบุตร',
}

TABLE_HEADERS = ('ประเภท', 'ลามาแล้ว', 'ลาครั้งนี้', 'รวมเป็น')
GRID = colors.Color(0, 0, 0)


@dataclass(frozen=True)
class StatsRow:
    label: str
    previous: int
    current: int
    total: int

    def cells(self) -> tuple[str, str, str, str]:
        return (self.label, str(self.previous), str(self.current) if self.current > 0 else '-', str(self.total))


@dataclass
class LeaveFormLayout:
    title: str
    sentences: list[str] = field(default_factory=list)
    stats_rows: list[StatsRow] = field(default_factory=list)
    body_end_y: float = 0.0
    emblem_placed: bool = False
    teacher_signature_placed: bool = False
    director_signature_placed: bool = False


def form_title(leave_type: LeaveType) -> str:
    return TITLES.get(leave_type, DEFAULT_TITLE)


def leave_type_name(leave_type: LeaveType) -> str:
    return LEAVE_TYPE_NAMES.get(leave_type, leave_type.value)


def identity_sentence(teacher: StaffMember, school_name: str) -> str:
    return f'ข้าพเจ้า {teacher.name} ตำแหน่ง {teacher.position} สังกัด {school_name}'


def current_request_days(request: LeaveRequest, stats: LeaveStats) -> int:
    """Days of this request: ``stats.current_days`` when given, else the inclusive date span."""
    if stats.current_days is not None:
        return stats.current_days
    return calculate_days(request.start_date, request.end_date)


def request_sentence(request: LeaveRequest, stats: LeaveStats) -> str:
    name = leave_type_name(request.type)
    start = format_thai_date_str(request.start_date)
    end = format_thai_date_str(request.end_date)
    if request.type.is_timed:
        time_text = ''
        if request.start_time:
            time_text += f' เวลา {request.start_time} น.'
        if request.end_time:
            time_text += f' ถึงเวลา {request.end_time} น.'
        return f'มีความประสงค์ขอ{name} เนื่องจาก {request.reason} ตั้งแต่วันที่ {start}{time_text} ถึงวันที่ {end}'
    return (
        f'ขอลา{name} เนื่องจาก {request.reason} ตั้งแต่วันที่ {start} '
        f'ถึงวันที่ {end} มีกำหนด {current_request_days(request, stats)} วัน'
    )


def history_sentence(stats: LeaveStats) -> str:
    last = stats.last_leave
    if last is None:
        last_start = last_end = DATE_PLACEHOLDER
        last_days = DOT_DAYS
    else:
        last_start = format_thai_date_str(last.start_date)
        last_end = format_thai_date_str(last.end_date)
        days = stats.last_leave_days
        if days is None:
            days = calculate_days(last.start_date, last.end_date)
        last_days = str(days)
    return f'ข้าพเจ้าได้ลาครั้งสุดท้ายตั้งแต่วันที่ {last_start} ถึงวันที่ {last_end} มีกำหนด {last_days} วัน'


def contact_sentence(request: LeaveRequest) -> str:
    return f'ในระหว่างลาติดต่อข้าพเจ้าได้ที่ {request.contact_info or "-"} เบอร์โทรศัพท์ {request.mobile_phone or "-"}'


def stats_rows(request: LeaveRequest, stats: LeaveStats) -> list[StatsRow]:
    if request.type.is_timed:
        is_late = request.type == LeaveType.late
        previous = stats.prev_late if is_late else stats.prev_off_campus
        return [StatsRow('สาย' if is_late else 'ออกนอก', previous, 1, previous + 1)]

    current_days = current_request_days(request, stats)
    rows: list[StatsRow] = []
    for label, leave_type, previous in (
        ('ป่วย', LeaveType.sick, stats.prev_sick),
        ('กิจส่วนตัว', LeaveType.personal, stats.prev_personal),
        ('คลอดบุตร', LeaveType.maternity, stats.prev_maternity),
    ):
        current = current_days if request.type == leave_type else 0
        rows.append(StatsRow(label, previous, current, previous + current))
    return rows


def _draw_cell(canvas: PageCanvas, text: str, x: float, y: float, fonts: ThaiFonts) -> None:
    canvas.draw_rect(x, y - ROW_HEIGHT + 5, COLUMN_WIDTH, ROW_HEIGHT, border=GRID, border_width=0.5)
    canvas.draw_text(text, x + 5, y - ROW_HEIGHT + 10, size=TABLE_FONT_SIZE, font=fonts.regular)


def _draw_stats_table(canvas: PageCanvas, rows: list[StatsRow], table_top: float, fonts: ThaiFonts) -> None:
    columns = [MARGIN + index * COLUMN_WIDTH for index in range(len(TABLE_HEADERS))]
    canvas.draw_text('สถิติการลาในปีงบประมาณนี้', MARGIN, table_top + 10, size=SMALL_SIZE, font=fonts.bold)

    row_y = table_top - 10
    for text, x in zip(TABLE_HEADERS, columns):
        _draw_cell(canvas, text, x, row_y, fonts)
    for row in rows:
        row_y -= ROW_HEIGHT
        for text, x in zip(row.cells(), columns):
            _draw_cell(canvas, text, x, row_y, fonts)


def _draw_director_box(
    canvas: PageCanvas,
    form: LeaveFormRequest,
    table_top: float,
    fonts: ThaiFonts,
) -> bool:
    box_x = canvas.width / 2 + 20
    box_y = table_top - DIRECTOR_BOX_HEIGHT + 20
    center_x = box_x + DIRECTOR_BOX_WIDTH / 2
    canvas.draw_rect(box_x, box_y, DIRECTOR_BOX_WIDTH, DIRECTOR_BOX_HEIGHT, border=GRID, border_width=0.5)

    text_y = box_y + DIRECTOR_BOX_HEIGHT - 25
    canvas.draw_centered('ความเห็น / คำสั่ง', center_x, text_y, size=SMALL_SIZE, font=fonts.bold)
    text_y -= 25

    status = form.request.status
    approved = status == LeaveStatus.approved
    approve_line = '[ / ] อนุญาต' if approved else '[   ] อนุญาต'
    reject_line = '[ / ] ไม่อนุมัติ' if status == LeaveStatus.rejected else '[   ] ไม่อนุมัติ'
    canvas.draw_text(approve_line, box_x + 20, text_y, size=SMALL_SIZE, font=fonts.regular)
    text_y -= 20
    canvas.draw_text(reject_line, box_x + 20, text_y, size=SMALL_SIZE, font=fonts.regular)
    text_y -= 30

    signature_placed = False
    if approved:
        signature = load_optional_image(canvas, form.director_signature_base64, label='director signature')
        if signature is not None:
            scale = form.director_signature_scale or 1.0
            sig_width, sig_height = signature.scale_to_fit(DIRECTOR_SIG_MAX[0] * scale, DIRECTOR_SIG_MAX[1] * scale)
            signature_placed = place_image(
                canvas,
                signature,
                center_x - sig_width / 2,
                text_y + (form.director_signature_y_offset or 0.0),
                sig_width,
                sig_height,
                label='director signature',
            )

    text_y -= 20
    canvas.draw_centered(f'( {form.director_name} )', center_x, text_y, size=SMALL_SIZE, font=fonts.regular)
    text_y -= 15
    canvas.draw_centered('ตำแหน่ง ผู้อำนวยการโรงเรียน', center_x, text_y, size=SMALL_SIZE, font=fonts.regular)
    text_y -= 15
    decision_date = (
        format_thai_date_str(form.request.approved_date) if form.request.approved_date else DOT_DECISION_DATE
    )
    canvas.draw_centered(f'วันที่ {decision_date}', center_x, text_y, size=SMALL_SIZE, font=fonts.regular)
    return signature_placed


def draw_leave_form(
    canvas: PageCanvas,
    form: LeaveFormRequest,
    fonts: ThaiFonts,
    *,
    emblem: EmbeddedImage | None = None,
    today: date | None = None,
) -> LeaveFormLayout:
    request = form.request
    stats = form.stats
    width = canvas.width
    height = canvas.height
    today = today or date.today()

    layout = LeaveFormLayout(title=form_title(request.type))

    if emblem is not None:
        emblem_width, emblem_height = emblem.scale_to_fit(EMBLEM_SIZE, EMBLEM_SIZE)
        layout.emblem_placed = place_image(
            canvas,
            emblem,
            (width - emblem_width) / 2,
            height - MARGIN - EMBLEM_SIZE,
            emblem_width,
            emblem_height,
            label='emblem',
        )

    cursor_y = height - MARGIN - 80
    canvas.draw_centered(layout.title, width / 2, cursor_y, size=TITLE_SIZE, font=fonts.bold)
    cursor_y -= 30

    write_at_runs = [('เขียนที่ ', fonts.bold), (form.school_name, fonts.regular)]
    write_at_width = sum(font.width_of(text, FONT_SIZE) for text, font in write_at_runs)
    write_at_x = width - MARGIN - write_at_width - WRITE_AT_RIGHT_GAP
    canvas.draw_runs(write_at_runs, write_at_x, cursor_y, size=FONT_SIZE)
    cursor_y -= LINE_HEIGHT

    date_line = format_thai_form_date(today)
    date_width = fonts.regular.width_of(date_line, FONT_SIZE)
    date_x = min(write_at_x + (write_at_width - date_width) / 2, width - MARGIN - date_width)
    canvas.draw_text(date_line, date_x, cursor_y, size=FONT_SIZE, font=fonts.regular)
    cursor_y -= LINE_HEIGHT * 2

    type_name = leave_type_name(request.type)
    canvas.draw_runs([('เรื่อง', fonts.bold), (f'  ขออนุญาต{type_name}', fonts.regular)], MARGIN, cursor_y, size=FONT_SIZE)
    cursor_y -= LINE_HEIGHT * 2
    canvas.draw_runs(
        [('เรียน', fonts.bold), (f'  ผู้อำนวยการ{form.school_name}', fonts.regular)],
        MARGIN,
        cursor_y,
        size=FONT_SIZE,
    )
    cursor_y -= LINE_HEIGHT * 2

    paragraph = ParagraphFlow(
        surface=canvas,
        font=fonts.regular,
        font_size=FONT_SIZE,
        margin=MARGIN,
        column_width=width - 2 * MARGIN,
        indent=INDENT,
        line_height=LINE_HEIGHT,
    )
    # One visual paragraph from three sentences: only the first is indented.
    block = [
        (identity_sentence(form.teacher, form.school_name), True),
        (request_sentence(request, stats), False),
        (history_sentence(stats), False),
    ]
    for sentence, has_indent in block:
        cursor_y = paragraph.flow(sentence, cursor_y, has_indent=has_indent)
        layout.sentences.append(sentence)

    cursor_y -= LINE_HEIGHT * 0.5
    contact = contact_sentence(request)
    cursor_y = paragraph.flow(contact, cursor_y, has_indent=True)
    layout.sentences.append(contact)
    layout.body_end_y = cursor_y

    canvas.draw_text(
        'จึงเรียนมาเพื่อโปรดพิจารณา',
        MARGIN + INDENT,
        cursor_y - LINE_HEIGHT,
        size=FONT_SIZE,
        font=fonts.regular,
    )
    cursor_y -= LINE_HEIGHT * 3

    block_center_x = width - SIGNATURE_BLOCK_OFFSET
    canvas.draw_centered('ขอแสดงความนับถือ', block_center_x, cursor_y, size=FONT_SIZE, font=fonts.regular)
    cursor_y -= 40

    teacher_signature = load_optional_image(
        canvas,
        form.teacher_signature_base64 or form.teacher.signature_base64,
        label='teacher signature',
    )
    if teacher_signature is not None:
        sig_width, sig_height = teacher_signature.scale_to_fit(*TEACHER_SIG_MAX)
        layout.teacher_signature_placed = place_image(
            canvas,
            teacher_signature,
            block_center_x - sig_width / 2,
            cursor_y,
            sig_width,
            sig_height,
            label='teacher signature',
        )
    if not layout.teacher_signature_placed:
        canvas.draw_centered(DOT_SIGNATURE, block_center_x, cursor_y + 10, size=FONT_SIZE, font=fonts.regular)
    cursor_y -= 20

    canvas.draw_centered(f'( {form.teacher.name} )', block_center_x, cursor_y, size=FONT_SIZE, font=fonts.regular)
    cursor_y -= LINE_HEIGHT
    canvas.draw_centered(
        f'ตำแหน่ง {form.teacher.position}',
        block_center_x,
        cursor_y,
        size=FONT_SIZE,
        font=fonts.regular,
    )
    cursor_y -= LINE_HEIGHT * 2

    table_top = cursor_y
    layout.stats_rows = stats_rows(request, stats)
    _draw_stats_table(canvas, layout.stats_rows, table_top, fonts)
    layout.director_signature_placed = _draw_director_box(canvas, form, table_top, fonts)
    return layout


async def generate_official_leave_pdf(
    form: LeaveFormRequest,
    *,
    assets: AssetLoader | None = None,
    today: date | None = None,
) -> str:
    """Render the single-page official leave form as a PDF data URI."""
    loader = assets or AssetLoader.from_settings()
    font_bundle = await loader.fonts()
    fallback_emblem = None if form.official_emblem_base64 else await loader.emblem()

    doc = new_document()
    try:
        canvas = PageCanvas(new_page(doc))
        fonts = embed_thai_fonts(canvas, font_bundle)
        if form.official_emblem_base64:
            emblem = load_optional_image(canvas, form.official_emblem_base64, label='emblem')
        else:
            emblem = canvas.try_embed_image(fallback_emblem or b'', label='emblem')
        layout = draw_leave_form(canvas, form, fonts, emblem=emblem, today=today)
        logger.info(
            'Leave form %s rendered (%s, %s table rows)',
            form.request.id,
            form.request.type.value,
            len(layout.stats_rows),
        )
        return to_data_uri(doc)
    finally:
        doc.close()
