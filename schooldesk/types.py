from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Accepts both the camelCase records of the web client and snake_case names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='ignore',
    )


class LeaveType(str, Enum):
    sick = 'Sick'
    personal = 'Personal'
    maternity = 'Maternity'
    late = 'Late'
    off_campus = 'OffCampus'

    @property
    def is_timed(self) -> bool:
        return self in {LeaveType.late, LeaveType.off_campus}


class LeaveStatus(str, Enum):
    pending = 'Pending'
    approved = 'Approved'
    rejected = 'Rejected'


class StampStage(str, Enum):
    loading_fonts = 'LoadingFonts'
    writing_command = 'WritingCommand'
    stamping_signature = 'StampingSignature'


class StaffMember(CamelModel):
    id: str
    name: str
    position: str = 'ครู'
    school_id: str | None = None
    roles: list[str] = Field(default_factory=list)
    signature_base64: str | None = None
    telegram_chat_id: str | None = None

    @property
    def is_director(self) -> bool:
        return 'DIRECTOR' in self.roles


class LeaveRequest(CamelModel):
    id: str
    teacher_id: str
    teacher_name: str | None = None
    teacher_position: str | None = None
    school_id: str | None = None
    type: LeaveType
    start_date: date | None = None
    end_date: date | None = None
    start_time: str | None = None
    end_time: str | None = None
    reason: str = ''
    contact_info: str = ''
    mobile_phone: str = ''
    status: LeaveStatus = LeaveStatus.pending
    director_signature: str | None = None
    approved_date: date | None = None
    created_at: datetime = Field(default_factory=utcnow)


class LastLeave(CamelModel):
    start_date: date | None = None
    end_date: date | None = None


class LeaveStats(CamelModel):
    """Historical totals computed by the caller; the leave form only renders them.

    ``current_days`` left unset means the form derives it from the request dates.
    """

    current_days: int | None = None
    prev_sick: int = 0
    prev_personal: int = 0
    prev_maternity: int = 0
    prev_late: int = 0
    prev_off_campus: int = 0
    last_leave: LastLeave | None = None
    last_leave_days: int | None = None


class ReceiveStampRequest(CamelModel):
    file_base64: str
    book_number: str
    date: str
    time: str
    school_name: str | None = None
    school_logo_base64: str | None = None


class DirectorStampRequest(CamelModel):
    # file_type is a MIME type, or 'new' for a blank sheet.
    file_url: str | None = None
    file_type: str | None = None
    command_text: str = ''
    director_name: str
    director_position: str | None = None
    signature_image_base64: str | None = None
    school_name: str | None = None
    school_logo_base64: str | None = None
    target_page: int = 1
    signature_scale: float = 1.0
    signature_y_offset: float = 0.0

    @property
    def is_blank_sheet(self) -> bool:
        return self.file_type == 'new' or not self.file_url

    @property
    def is_pdf_source(self) -> bool:
        return not self.is_blank_sheet and 'pdf' in str(self.file_type or '').lower()


class LeaveFormRequest(CamelModel):
    request: LeaveRequest
    stats: LeaveStats = Field(default_factory=LeaveStats)
    teacher: StaffMember
    school_name: str
    director_name: str
    director_signature_base64: str | None = None
    teacher_signature_base64: str | None = None
    official_emblem_base64: str | None = None
    director_signature_scale: float = 1.0
    director_signature_y_offset: float = 0.0
