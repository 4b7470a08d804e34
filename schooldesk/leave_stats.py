from __future__ import annotations

from datetime import date, datetime
from typing import Iterable

from schooldesk.pdf.codec import parse_date
from schooldesk.types import LastLeave, LeaveRequest, LeaveStats, LeaveStatus, LeaveType


def calculate_days(start: date | datetime | str | None, end: date | datetime | str | None) -> int:
    """Inclusive day count: ``calculate_days('2023-09-15', '2023-09-16') == 2``.

    Returns 0 when either side is missing.
    """
    start_date = parse_date(start)
    end_date = parse_date(end)
    if start_date is None or end_date is None:
        return 0
    return abs((end_date - start_date).days) + 1


def _sum_days(requests: Iterable[LeaveRequest], leave_type: LeaveType) -> int:
    return sum(calculate_days(r.start_date, r.end_date) for r in requests if r.type == leave_type)


def _count(requests: Iterable[LeaveRequest], leave_type: LeaveType) -> int:
    return sum(1 for r in requests if r.type == leave_type)


def compute_leave_stats(current: LeaveRequest, history: Iterable[LeaveRequest]) -> LeaveStats:
    """Aggregate the approved history of ``current``'s teacher, excluding ``current`` itself."""
    approved = [
        r
        for r in history
        if r.teacher_id == current.teacher_id and r.status == LeaveStatus.approved and r.id != current.id
    ]

    last: LeaveRequest | None = None
    for r in approved:
        if r.start_date is None:
            continue
        if current.start_date is not None and r.start_date > current.start_date:
            continue
        if last is None or r.start_date > last.start_date:
            last = r

    return LeaveStats(
        current_days=calculate_days(current.start_date, current.end_date),
        prev_sick=_sum_days(approved, LeaveType.sick),
        prev_personal=_sum_days(approved, LeaveType.personal),
        prev_maternity=_sum_days(approved, LeaveType.maternity),
        prev_late=_count(approved, LeaveType.late),
        prev_off_campus=_count(approved, LeaveType.off_campus),
        last_leave=LastLeave(start_date=last.start_date, end_date=last.end_date) if last else None,
        last_leave_days=calculate_days(last.start_date, last.end_date) if last else None,
    )


def summarize_teacher(
    requests: Iterable[LeaveRequest],
    teacher_id: str,
    start: date | str,
    end: date | str,
) -> dict[str, int]:
    """Approved leave totals for one teacher with a start date inside ``[start, end]``."""
    range_start = parse_date(start)
    range_end = parse_date(end)
    filtered = [
        r
        for r in requests
        if r.teacher_id == teacher_id
        and r.status == LeaveStatus.approved
        and r.start_date is not None
        and (range_start is None or r.start_date >= range_start)
        and (range_end is None or r.start_date <= range_end)
    ]
    return {
        'sick': _sum_days(filtered, LeaveType.sick),
        'personal': _sum_days(filtered, LeaveType.personal),
        'maternity': _sum_days(filtered, LeaveType.maternity),
        'late': _count(filtered, LeaveType.late),
        'off_campus': _count(filtered, LeaveType.off_campus),
        'total_records': len(filtered),
    }
