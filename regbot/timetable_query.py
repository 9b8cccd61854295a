from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Iterable

from regbot.domain import AppointmentSlot, DailyTimetable, DepartmentTimetable, SlotStatus


def _days_in_range(timetable: DepartmentTimetable, start: date | None, end: date | None) -> Iterable[DailyTimetable]:
    for daily in timetable.days:
        if start is not None and daily.date < start:
            continue
        if end is not None and daily.date > end:
            continue
        yield daily


def filter_slots_by_status(daily: DailyTimetable, status: SlotStatus) -> DailyTimetable:
    def _keep(slots: tuple[AppointmentSlot, ...]) -> tuple[AppointmentSlot, ...]:
        return tuple(s for s in slots if s.status is status)

    return replace(
        daily,
        morning_slots=_keep(daily.morning_slots),
        afternoon_slots=_keep(daily.afternoon_slots),
        night_slots=_keep(daily.night_slots),
    )


def find_slots_by_doctor(
    timetable: DepartmentTimetable,
    doctor_name: str,
    start: date | None = None,
    end: date | None = None,
    only_available: bool = True,
) -> dict[date, list[AppointmentSlot]]:
    """Slots whose doctor name contains `doctor_name`, grouped by day.

    Days without a match are left out.
    """

    results: dict[date, list[AppointmentSlot]] = {}
    for daily in _days_in_range(timetable, start, end):
        matches = [
            slot
            for slot in daily.all_slots()
            if doctor_name in slot.doctor.name and (not only_available or slot.status is SlotStatus.AVAILABLE)
        ]
        if matches:
            results[daily.date] = matches
    return results


def find_daily_schedules(
    timetable: DepartmentTimetable,
    start: date | None = None,
    end: date | None = None,
    only_available: bool = False,
) -> dict[date, DailyTimetable]:
    results: dict[date, DailyTimetable] = {}
    for daily in _days_in_range(timetable, start, end):
        if only_available:
            daily = filter_slots_by_status(daily, SlotStatus.AVAILABLE)
            if not daily.all_slots():
                continue
        results[daily.date] = daily
    return results


def find_day(timetable: DepartmentTimetable, day: date) -> DailyTimetable | None:
    return next((daily for daily in timetable.days if daily.date == day), None)
