from __future__ import annotations

from datetime import date

import httpx
import pytest

from regbot.domain import BookingParameters, DepartmentTimetable, Doctor, SlotStatus
from regbot.tests.fakes import FakeSite, Status, read_page
from regbot.timetable import fetch_timetable, parse_booking_parameters, parse_schedule_date, parse_timetable


@pytest.fixture
def timetable() -> DepartmentTimetable:
    parsed = parse_timetable(read_page("timetable/S2700A.html"), "S2700A")
    assert parsed is not None
    return parsed


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("2025年10月27日(一)", date(2025, 10, 27)),
        ("2025年1月5日 （日）", date(2025, 1, 5)),
        (" 2025/10/27 ", date(2025, 10, 27)),
        ("日期待定", None),
        ("2025年13月1日", None),
    ],
)
def test_parse_schedule_date(text: str, expected: date | None) -> None:
    assert parse_schedule_date(text) == expected


def test_parse_booking_parameters_requires_all_keys() -> None:
    assert parse_booking_parameters("Login.aspx?rmsData=X&dpt=S2700A&dptDptuid=S2700AA") is None
    # Present but empty is not missing.
    assert parse_booking_parameters("Login.aspx?rmsData=X&dptName=&dpt=S2700A&dptDptuid=S2700AA") == BookingParameters(
        "X", "", "S2700A", "S2700AA"
    )
    assert parse_booking_parameters(
        "Login.aspx?rmsData=20251027AM1S2700N1946%E6%B4%AA%E5%81%89%E7%BF%94&dptName=NNNN&dpt=S2700A&dptDptuid=S2700AA"
    ) == BookingParameters("20251027AM1S2700N1946洪偉翔", "NNNN", "S2700A", "S2700AA")


def test_department_metadata_and_days(timetable: DepartmentTimetable) -> None:
    assert timetable.code == "S2700A"
    assert timetable.name == "骨科"
    # The row with an unparseable date is dropped.
    assert [d.date for d in timetable.days] == [date(2025, 10, 27), date(2025, 10, 28)]


def test_available_slot_carries_booking_parameters(timetable: DepartmentTimetable) -> None:
    slot = timetable.days[0].morning_slots[0]

    assert slot.doctor == Doctor(id="1946", name="洪偉翔")
    assert slot.status is SlotStatus.AVAILABLE
    assert slot.booking_parameters == BookingParameters(
        rms_data="20251027AM1S2700N1946洪偉翔",
        dpt_name="NNNN",
        dpt="S2700A",
        dpt_dptuid="S2700AA",
    )


def test_status_markers(timetable: DepartmentTimetable) -> None:
    first, second = timetable.days

    full = first.morning_slots[1]
    assert full.doctor == Doctor(id="2001", name="王大明")
    assert full.status is SlotStatus.FULL
    assert full.booking_parameters is None

    suspended = first.afternoon_slots[0]
    assert suspended.doctor == Doctor(id="3120", name="林美華")
    assert suspended.status is SlotStatus.NO_CLINIC

    other = second.morning_slots[0]
    assert other.doctor == Doctor(id="2002", name="張小芳")
    assert other.status is SlotStatus.UNKNOWN


def test_link_with_missing_parameters_is_available_without_parameters(timetable: DepartmentTimetable) -> None:
    slot = timetable.days[0].afternoon_slots[1]

    assert slot.doctor == Doctor(id="4001", name="陳志明")
    assert slot.status is SlotStatus.AVAILABLE
    assert slot.booking_parameters is None


def test_doctor_id_can_come_from_link_text(timetable: DepartmentTimetable) -> None:
    (slot,) = timetable.days[1].afternoon_slots

    assert slot.doctor == Doctor(id="5005", name="李醫師")
    assert slot.booking_parameters is not None
    assert slot.booking_parameters.rms_data == "20251028PM1S2700N5005"


def test_leading_and_stacked_notes_do_not_hide_the_doctor() -> None:
    html = (
        '<table class="tableTimeTable">'
        '<tr style="border-color:#999999;"><th>日期</th><th>上午</th><th>下午</th><th>夜間</th></tr>'
        '<tr style="border-color:#999999;"><td>2025年10月27日<br />(一)</td>'
        '<td>(代)1946洪偉翔<a href="Login.aspx?rmsData=A&amp;dptName=NNNN&amp;dpt=S2700A&amp;dptDptuid=S2700AA">'
        "掛號</a></td>"
        '<td>2001王大明(上午)<span>(額滿)</span></td>'
        "<td>&nbsp;</td></tr>"
        "</table>"
    )

    parsed = parse_timetable(html, "S2700A")

    assert parsed is not None
    (day,) = parsed.days
    (substitute,) = day.morning_slots
    assert substitute.doctor.id == "1946"
    assert substitute.doctor.name.startswith("洪偉翔")
    assert substitute.status is SlotStatus.AVAILABLE
    assert substitute.booking_parameters is not None

    (full,) = day.afternoon_slots
    assert full.doctor == Doctor(id="2001", name="王大明")
    assert full.status is SlotStatus.FULL


def test_empty_and_text_only_chunks_are_skipped(timetable: DepartmentTimetable) -> None:
    assert timetable.days[0].night_slots == ()

    (slot,) = timetable.days[1].night_slots
    assert slot.doctor.name == "洪偉翔"


def test_unknown_department_and_missing_table() -> None:
    assert parse_timetable("<html><body>系統維護中</body></html>", "S2700A") is None

    html = read_page("timetable/S2700A.html")
    parsed = parse_timetable(html, "ZZZ")
    assert parsed is not None
    assert parsed.name == "Unknown"


def test_fetch_timetable_requests_department(site: FakeSite, session: httpx.Client) -> None:
    site.add("GET", "/RMSTimeTable.aspx", read_page("timetable/S2700A.html"))

    parsed = fetch_timetable(session, "S2700A")

    assert parsed is not None
    assert len(parsed.days) == 2
    (request,) = site.requests
    assert request.url.params["dpt"] == "S2700A"


def test_fetch_timetable_returns_none_on_http_error(site: FakeSite, session: httpx.Client) -> None:
    site.add("GET", "/RMSTimeTable.aspx", Status(502))

    assert fetch_timetable(session, "S2700A") is None
