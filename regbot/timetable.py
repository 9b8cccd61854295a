"""Department schedule page (RMSTimeTable.aspx) -> DepartmentTimetable."""

from __future__ import annotations

import logging
import re
import threading
from datetime import date, datetime
from urllib.parse import parse_qs, urlsplit

import httpx
from bs4 import BeautifulSoup, Tag

from regbot.departments import department_name
from regbot.domain import (
    AppointmentSlot,
    BookingParameters,
    DailyTimetable,
    DepartmentTimetable,
    Doctor,
    SlotStatus,
)
from regbot.webforms import raise_if_cancelled

logger = logging.getLogger(__name__)

TIMETABLE_URL = "RMSTimeTable.aspx"
SCHEDULE_TABLE_CLASS = "tableTimeTable"
# Schedule rows carry an inline border colour; layout rows do not.
ROW_STYLE_MARKER = "border-color"

SLOT_FULL_MARKER = "額滿"
CLINIC_SUSPENDED_MARKER = "停診"

_BREAK = re.compile(r"<br\s*/?>", re.IGNORECASE)
_PARENTHETICAL = re.compile(r"[(（][^)）]*[)）]")
_TRAILING_NOTE = re.compile(r"[(（][^)）]*[)）]\s*$")
_LEADING_NOTES = re.compile(r"^(?:\s*[(（][^)）]*[)）])+")
_LEADING_ID = re.compile(r"^(\d+)\s*(.*)$", re.DOTALL)


def _clean(text: str) -> str:
    return re.sub(r"\s+", " ", text.replace("\xa0", " ")).strip()


def parse_schedule_date(text: str) -> date | None:
    """'2025年10月27日(一)' -> date(2025, 10, 27); None if it does not parse."""

    cleaned = re.sub(r"\s+", "", _PARENTHETICAL.sub("", text))
    cleaned = cleaned.replace("年", "/").replace("月", "/").replace("日", "")
    try:
        return datetime.strptime(cleaned, "%Y/%m/%d").date()
    except ValueError:
        return None


def parse_booking_parameters(href: str) -> BookingParameters | None:
    # An empty value is still a value; only a missing key disqualifies the link.
    query = parse_qs(urlsplit(href).query, keep_blank_values=True)
    try:
        return BookingParameters(
            rms_data=query["rmsData"][0],
            dpt_name=query["dptName"][0],
            dpt=query["dpt"][0],
            dpt_dptuid=query["dptDptuid"][0],
        )
    except KeyError:
        return None


def _strip_trailing_notes(text: str) -> str:
    base = text.strip()
    while True:
        stripped = _TRAILING_NOTE.sub("", base).strip()
        if stripped == base:
            return base
        base = stripped


def _split_doctor(text: str) -> tuple[str, str]:
    """'2001王大明(額滿)' -> ('2001', '王大明'). Leading notes such as '(代)' are skipped."""

    base = _strip_trailing_notes(text)
    m = _LEADING_ID.match(_LEADING_NOTES.sub("", base).strip())
    if not m:
        return "", base
    return m.group(1), m.group(2).strip()


def _parse_doctor(text: str, link_text: str | None) -> Doctor:
    doctor_id, name = _split_doctor(text)
    if not doctor_id and link_text:
        link_id, link_name = _split_doctor(link_text)
        if link_id:
            doctor_id = link_id
            name = link_name or name.replace(link_id, "").strip()
    return Doctor(id=doctor_id, name=name)


def _parse_chunk(chunk_html: str) -> AppointmentSlot | None:
    chunk = BeautifulSoup(chunk_html, "html.parser")
    text = _clean(chunk.get_text())
    span = chunk.find("span")
    link = chunk.find("a")

    parameters = None
    if span is not None:
        marker = span.get_text()
        if SLOT_FULL_MARKER in marker:
            status = SlotStatus.FULL
        elif CLINIC_SUSPENDED_MARKER in marker:
            status = SlotStatus.NO_CLINIC
        else:
            status = SlotStatus.UNKNOWN
    elif link is not None:
        status = SlotStatus.AVAILABLE
        href = str(link.get("href") or "")
        parameters = parse_booking_parameters(href)
        if parameters is None:
            logger.warning("Available slot link is missing booking parameters: %s", href)
    else:
        return None

    doctor = _parse_doctor(text, _clean(link.get_text()) if link is not None else None)
    if not doctor.id and not doctor.name:
        return None
    return AppointmentSlot(doctor=doctor, status=status, raw_text=text, booking_parameters=parameters)


def _parse_session_cell(cell: Tag) -> tuple[AppointmentSlot, ...]:
    slots: list[AppointmentSlot] = []
    for chunk_html in _BREAK.split(cell.decode_contents()):
        try:
            slot = _parse_chunk(chunk_html)
        except Exception as e:
            logger.warning("Skipping unparseable slot %r (%s: %s)", chunk_html, type(e).__name__, e)
            continue
        if slot is not None:
            slots.append(slot)
    return tuple(slots)


def _schedule_rows(table: Tag) -> list[Tag]:
    rows = [
        tr
        for tr in table.find_all("tr")
        if ROW_STYLE_MARKER in str(tr.get("style") or "").replace(" ", "").lower()
    ]
    # First marked row is the header.
    return rows[1:]


def parse_timetable(html: str, department_code: str) -> DepartmentTimetable | None:
    soup = BeautifulSoup(html, "html.parser")
    table = soup.find("table", class_=SCHEDULE_TABLE_CLASS)
    if table is None:
        logger.error("Schedule table not found for department %s", department_code)
        return None

    days: list[DailyTimetable] = []
    for row in _schedule_rows(table):
        cells = row.find_all("td", recursive=False)
        if len(cells) < 4:
            continue
        day = parse_schedule_date(cells[0].get_text())
        if day is None:
            logger.warning("Skipping row with unparseable date %r", _clean(cells[0].get_text()))
            continue
        days.append(
            DailyTimetable(
                date=day,
                morning_slots=_parse_session_cell(cells[1]),
                afternoon_slots=_parse_session_cell(cells[2]),
                night_slots=_parse_session_cell(cells[3]),
            )
        )

    logger.info("Parsed %d days for department %s", len(days), department_code)
    return DepartmentTimetable(code=department_code, name=department_name(department_code), days=tuple(days))


def fetch_timetable(
    session: httpx.Client, department_code: str, *, cancel: threading.Event | None = None
) -> DepartmentTimetable | None:
    """Fetch and parse one department's schedule. None when it cannot be read."""

    raise_if_cancelled(cancel)
    logger.info("Fetching timetable for department %s", department_code)
    try:
        r = session.get(TIMETABLE_URL, params={"dpt": department_code})
        r.raise_for_status()
    except httpx.HTTPError as e:
        logger.error("Failed to fetch timetable for %s (%s: %s)", department_code, type(e).__name__, e)
        return None
    return parse_timetable(r.text, department_code)
