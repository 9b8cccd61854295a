from __future__ import annotations

from datetime import date

from regbot.domain import AppointmentSlot, DailyTimetable, DepartmentTimetable, Doctor, SlotStatus
from regbot.timetable_query import find_daily_schedules, find_day, find_slots_by_doctor, filter_slots_by_status


def _slot(doctor_id: str, name: str, status: SlotStatus) -> AppointmentSlot:
    return AppointmentSlot(doctor=Doctor(doctor_id, name), status=status, raw_text=f"{doctor_id}{name}")


_HONG_AM = _slot("1946", "洪偉翔", SlotStatus.AVAILABLE)
_WANG_AM = _slot("2001", "王大明", SlotStatus.FULL)
_HONG_PM = _slot("1946", "洪偉翔", SlotStatus.FULL)
_LIN_NT = _slot("3120", "林美華", SlotStatus.AVAILABLE)

_TIMETABLE = DepartmentTimetable(
    code="S2700A",
    name="骨科",
    days=(
        DailyTimetable(date(2025, 10, 27), morning_slots=(_HONG_AM, _WANG_AM)),
        DailyTimetable(date(2025, 10, 28), afternoon_slots=(_HONG_PM,)),
        DailyTimetable(date(2025, 10, 29), night_slots=(_LIN_NT,)),
    ),
)


def test_find_slots_by_doctor_defaults_to_available_only() -> None:
    assert find_slots_by_doctor(_TIMETABLE, "洪偉翔") == {date(2025, 10, 27): [_HONG_AM]}


def test_find_slots_by_doctor_with_all_statuses_and_partial_name() -> None:
    result = find_slots_by_doctor(_TIMETABLE, "偉翔", only_available=False)

    assert result == {date(2025, 10, 27): [_HONG_AM], date(2025, 10, 28): [_HONG_PM]}


def test_find_slots_by_doctor_respects_date_range() -> None:
    result = find_slots_by_doctor(
        _TIMETABLE, "洪", start=date(2025, 10, 28), end=date(2025, 10, 28), only_available=False
    )

    assert list(result) == [date(2025, 10, 28)]


def test_find_daily_schedules_only_available_drops_empty_days() -> None:
    result = find_daily_schedules(_TIMETABLE, only_available=True)

    assert list(result) == [date(2025, 10, 27), date(2025, 10, 29)]
    assert result[date(2025, 10, 27)].morning_slots == (_HONG_AM,)


def test_find_daily_schedules_keeps_everything_by_default() -> None:
    result = find_daily_schedules(_TIMETABLE, start=date(2025, 10, 28))

    assert list(result) == [date(2025, 10, 28), date(2025, 10, 29)]
    assert result[date(2025, 10, 28)].afternoon_slots == (_HONG_PM,)


def test_filter_slots_by_status() -> None:
    daily = filter_slots_by_status(_TIMETABLE.days[0], SlotStatus.FULL)

    assert daily.date == date(2025, 10, 27)
    assert daily.morning_slots == (_WANG_AM,)
    assert daily.all_slots() == (_WANG_AM,)


def test_find_day() -> None:
    assert find_day(_TIMETABLE, date(2025, 10, 29)) is _TIMETABLE.days[2]
    assert find_day(_TIMETABLE, date(2025, 11, 1)) is None
