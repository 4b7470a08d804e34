from __future__ import annotations

import asyncio
import logging
import time
from datetime import date

from schooldesk.adapters.assets import AssetLoader
from schooldesk.adapters.telegram import TelegramNotifier
from schooldesk.config import get_settings
from schooldesk.leave_stats import compute_leave_stats
from schooldesk.pdf.leave_form import generate_official_leave_pdf
from schooldesk.storage import JsonDocumentStore
from schooldesk.types import LeaveFormRequest, LeaveRequest, LeaveStatus, LeaveType, StaffMember


logger = logging.getLogger(__name__)

LEAVE_COLLECTION = 'leave_requests'
STAFF_COLLECTION = 'teachers'

NOTIFY_TYPE_NAMES = {
    LeaveType.sick: 'ลาป่วย',
    LeaveType.personal: 'ลากิจส่วนตัว',
    LeaveType.off_campus: 'ออกนอกบริเวณ',
    LeaveType.late: 'เข้าสาย',
    LeaveType.maternity: 'ลาคลอดบุตร',
}


class LeaveService:
    def __init__(
        self,
        store: JsonDocumentStore,
        notifier: TelegramNotifier,
        *,
        assets: AssetLoader | None = None,
        app_base_url: str | None = None,
    ):
        self.store = store
        self.notifier = notifier
        self.assets = assets
        self.app_base_url = app_base_url if app_base_url is not None else get_settings().app_base_url

    def link_for(self, request_id: str) -> str:
        return f'{self.app_base_url}?view=LEAVE&id={request_id}'

    def get_request(self, request_id: str) -> LeaveRequest:
        record = self.store.get(LEAVE_COLLECTION, request_id)
        if record is None:
            raise KeyError(f'Leave request not found: {request_id}')
        return LeaveRequest.model_validate(record)

    def list_requests(self, *, teacher_id: str | None = None) -> list[LeaveRequest]:
        filters = {'teacherId': teacher_id} if teacher_id else None
        return [LeaveRequest.model_validate(row) for row in self.store.query(LEAVE_COLLECTION, filters)]

    def list_staff(self, *, school_id: str | None = None) -> list[StaffMember]:
        filters = {'schoolId': school_id} if school_id else None
        return [StaffMember.model_validate(row) for row in self.store.query(STAFF_COLLECTION, filters)]

    def _save(self, request: LeaveRequest) -> None:
        self.store.put(LEAVE_COLLECTION, request.id, request.model_dump(mode='json', by_alias=True))

    async def _notify_many(self, chat_ids: list[str], message: str, link: str) -> None:
        if not chat_ids:
            return
        await asyncio.gather(*(self.notifier.send(chat_id, message, link) for chat_id in chat_ids))

    async def submit(
        self,
        teacher: StaffMember,
        *,
        leave_type: LeaveType,
        start_date: date | None,
        end_date: date | None,
        reason: str,
        start_time: str | None = None,
        end_time: str | None = None,
        contact_info: str = '',
        mobile_phone: str = '',
    ) -> LeaveRequest:
        request = LeaveRequest(
            id=f'leave_{int(time.time() * 1000)}',
            teacher_id=teacher.id,
            teacher_name=teacher.name,
            teacher_position=teacher.position or 'ครู',
            school_id=teacher.school_id,
            type=leave_type,
            start_date=start_date,
            end_date=end_date,
            # Late carries only an arrival time; OffCampus carries both ends.
            start_time=start_time if leave_type.is_timed else None,
            end_time=end_time if leave_type == LeaveType.off_campus else None,
            reason=reason,
            contact_info=contact_info,
            mobile_phone=mobile_phone,
        )
        self._save(request)
        logger.info('Leave request %s submitted by %s', request.id, teacher.id)

        directors = [s for s in self.list_staff(school_id=teacher.school_id) if s.is_director]
        message = (
            '📢 <b>มีใบลาใหม่รอการอนุมัติ</b>\n'
            f'จาก: {teacher.name}\n'
            f'ประเภท: {NOTIFY_TYPE_NAMES[leave_type]}\n'
            f'เหตุผล: {reason}'
        )
        await self._notify_many(
            [d.telegram_chat_id for d in directors if d.telegram_chat_id],
            message,
            self.link_for(request.id),
        )
        return request

    async def decide(
        self,
        request_id: str,
        director: StaffMember,
        *,
        approved: bool,
        today: date | None = None,
    ) -> LeaveRequest:
        request = self.get_request(request_id)
        request.status = LeaveStatus.approved if approved else LeaveStatus.rejected
        request.director_signature = director.name if approved else ''
        request.approved_date = today or date.today()
        self._save(request)
        logger.info('Leave request %s %s by %s', request.id, request.status.value, director.id)

        teacher = next((s for s in self.list_staff() if s.id == request.teacher_id), None)
        if teacher is not None and teacher.telegram_chat_id:
            status_text = 'อนุมัติ' if approved else 'ไม่อนุมัติ'
            message = (
                '🔔 <b>แจ้งผลการพิจารณาใบลา</b>\n'
                f'รายการ: {NOTIFY_TYPE_NAMES[request.type]}\n'
                f'ผลการพิจารณา: <b>{status_text}</b>\n'
                'โดย: ผู้อำนวยการ'
            )
            await self.notifier.send(teacher.telegram_chat_id, message, self.link_for(request.id))
        return request

    def build_form_request(
        self,
        request_id: str,
        *,
        school_name: str | None = None,
        director_signature_base64: str | None = None,
        official_emblem_base64: str | None = None,
        director_signature_scale: float = 1.0,
        director_signature_y_offset: float = 0.0,
    ) -> LeaveFormRequest:
        request = self.get_request(request_id)
        history = self.list_requests(teacher_id=request.teacher_id)
        staff = self.list_staff()
        teacher = next((s for s in staff if s.id == request.teacher_id), None)
        if teacher is None:
            teacher = StaffMember(
                id=request.teacher_id,
                name=request.teacher_name or '...',
                position=request.teacher_position or 'ครู',
            )
        school_id = request.school_id or teacher.school_id
        directors = [s for s in staff if s.is_director and (school_id is None or s.school_id == school_id)]
        director = directors[0] if directors else None
        return LeaveFormRequest(
            request=request,
            stats=compute_leave_stats(request, history),
            teacher=teacher,
            school_name=school_name or get_settings().default_school_name,
            director_name=director.name if director else '...',
            director_signature_base64=director_signature_base64,
            teacher_signature_base64=teacher.signature_base64,
            official_emblem_base64=official_emblem_base64,
            director_signature_scale=director_signature_scale or 1.0,
            director_signature_y_offset=director_signature_y_offset or 0.0,
        )

    async def render_official_form(self, request_id: str, **options) -> str:
        form = self.build_form_request(request_id, **options)
        return await generate_official_leave_pdf(form, assets=self.assets)
