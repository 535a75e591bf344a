"""Attendance state machine: per (class, month, student, day) tri-state cycle with holiday override"""
import calendar
from datetime import date
from typing import Optional

from models.register_models import (
    SchoolClass, AttendanceStats, AttendanceStatus, PRESENT, ABSENT
)
from services.errors import NotFound, ValidationError

MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December"
]

# Unmarked (None) -> Present -> Absent -> Unmarked
_NEXT_STATUS = {None: PRESENT, PRESENT: ABSENT, ABSENT: None}


def _year(year: Optional[int]) -> int:
    return year if year is not None else date.today().year


def month_index(month: str) -> int:
    """1-based month number for an English month name"""
    try:
        return MONTHS.index(month) + 1
    except ValueError:
        raise ValidationError(f"Unknown month: {month}")


def days_in_month(month: str, year: Optional[int] = None) -> int:
    return calendar.monthrange(_year(year), month_index(month))[1]


def _check_day(month: str, day: int, year: Optional[int]) -> None:
    if not 1 <= day <= days_in_month(month, year):
        raise ValidationError(f"Day {day} is not in {month}")


def is_sunday(month: str, day: int, year: Optional[int] = None) -> bool:
    _check_day(month, day, year)
    return date(_year(year), month_index(month), day).weekday() == calendar.SUNDAY


def is_holiday(school_class: SchoolClass, month: str, day: int, year: Optional[int] = None) -> bool:
    """Sundays are always holidays; other days only when explicitly toggled"""
    if is_sunday(month, day, year):
        return True
    return day in school_class.holidays.get(month, [])


def get_status(school_class: SchoolClass, month: str, student_id: str, day: int) -> Optional[AttendanceStatus]:
    return school_class.attendance.get(month, {}).get(student_id, {}).get(day)


def advance(
    school_class: SchoolClass,
    month: str,
    student_id: str,
    day: int,
    *,
    can_write: bool = True,
    year: Optional[int] = None,
) -> Optional[AttendanceStatus]:
    """
    Move one attendance cell to its next status and return it.

    Viewers (can_write=False) and holidays leave the cell untouched; the
    current status is returned in that case. Only students on the roster
    can be marked.
    """
    if not any(s.id == student_id for s in school_class.students):
        raise NotFound(f"Student {student_id} not found")
    current = get_status(school_class, month, student_id, day)
    if not can_write or is_holiday(school_class, month, day, year):
        return current

    next_status = _NEXT_STATUS[current]
    record = school_class.attendance.setdefault(month, {}).setdefault(student_id, {})
    if next_status is None:
        record.pop(day, None)
    else:
        record[day] = next_status
    return next_status


def toggle_holiday(
    school_class: SchoolClass,
    month: str,
    day: int,
    *,
    can_write: bool = True,
    year: Optional[int] = None,
) -> bool:
    """
    Flip a day's membership in the month's explicit holiday set.

    Recorded statuses on that day are kept, only suppressed while the flag is
    set. Returns whether the day is now an explicit holiday.
    """
    _check_day(month, day, year)
    holidays = school_class.holidays.get(month, [])
    if not can_write:
        return day in holidays

    if day in holidays:
        school_class.holidays[month] = [d for d in holidays if d != day]
        return False
    school_class.holidays[month] = holidays + [day]
    return True


def compute_stats(
    school_class: SchoolClass,
    month: str,
    student_id: str,
    *,
    year: Optional[int] = None,
) -> AttendanceStats:
    """Count presents/absents over the valid days of the month, skipping holidays"""
    month_index(month)
    record = school_class.attendance.get(month, {}).get(student_id, {})
    stats = AttendanceStats()
    if not record:
        return stats

    for day in range(1, days_in_month(month, year) + 1):
        if is_holiday(school_class, month, day, year):
            continue
        status = record.get(day)
        if status == PRESENT:
            stats.presents += 1
        elif status == ABSENT:
            stats.absents += 1
    return stats
