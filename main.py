import argparse
import logging

from regbot.booking import book_appointment, book_appointment_direct
from regbot.config import Settings, load_settings
from regbot.domain import (
    BookingParameters,
    BookingRequest,
    CaptchaError,
    DataNotFound,
    IdType,
    OperationError,
    Outcome,
    QueryRequest,
    QueryType,
    SlotUnavailable,
    Success,
    UnknownResponse,
    ValidationError,
)
from regbot.query import parse_appointment_table, query_appointment
from regbot.timetable import fetch_timetable
from regbot.timetable_query import find_daily_schedules, find_slots_by_doctor
from regbot.webforms import open_session

logger = logging.getLogger("regbot")

_ID_TYPES = {
    "id-card": IdType.ID_CARD,
    "medical-record": IdType.MEDICAL_RECORD,
    "passport": IdType.PASSPORT,
    "resident-certificate": IdType.RESIDENT_CERTIFICATE,
    "entry-exit-permit": IdType.ENTRY_EXIT_PERMIT,
}


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def _build_recognizer(settings: Settings):
    # ddddocr is an optional extra; only the captcha flows need it.
    from regbot.ocr import DdddOcrRecognizer

    return DdddOcrRecognizer(beta=settings.ocr_beta)


def describe_outcome(outcome: Outcome) -> str:
    if isinstance(outcome, Success):
        return f"Success: {outcome.message}"
    if isinstance(outcome, CaptchaError):
        return f"Captcha error: {outcome.message}"
    if isinstance(outcome, DataNotFound):
        return f"Data not found: {outcome.message}"
    if isinstance(outcome, ValidationError):
        return f"Validation error: {outcome.message}"
    if isinstance(outcome, SlotUnavailable):
        return f"Slot unavailable: {outcome.message}"
    if isinstance(outcome, UnknownResponse):
        return f"Unknown response from server: {outcome.message}"
    if isinstance(outcome, OperationError):
        return f"Operation error: {outcome.message}"
    raise TypeError(f"Unexpected outcome: {outcome!r}")


def _run_timetable(args: argparse.Namespace, settings: Settings) -> int:
    with open_session(settings) as session:
        timetable = fetch_timetable(session, args.department)
    if timetable is None:
        logger.error("Failed to fetch timetable for department %s", args.department)
        return 1

    logger.info("Timetable for %s (%s)", timetable.name, timetable.code)
    if args.doctor:
        by_day = find_slots_by_doctor(timetable, args.doctor, only_available=args.available_only)
        for day, slots in by_day.items():
            for slot in slots:
                logger.info("%s  %s %s  %s", day.isoformat(), slot.doctor.id, slot.doctor.name, slot.status.value)
        return 0

    for day, daily in find_daily_schedules(timetable, only_available=args.available_only).items():
        for session_name, slots in (
            ("morning", daily.morning_slots),
            ("afternoon", daily.afternoon_slots),
            ("night", daily.night_slots),
        ):
            for slot in slots:
                logger.info(
                    "%s %-9s %s %s  %s", day.isoformat(), session_name, slot.doctor.id, slot.doctor.name, slot.status.value
                )
    return 0


def _run_query(args: argparse.Namespace, settings: Settings) -> int:
    request = QueryRequest(
        query_type=QueryType.NEW_PATIENT if args.new_patient else QueryType.RETURNING_PATIENT,
        id_type=_ID_TYPES[args.id_type],
        id_number=args.id_number,
        birth_date=args.birth_date,
    )
    recognizer = _build_recognizer(settings)
    with open_session(settings) as session:
        outcome = query_appointment(request, session=session, recognizer=recognizer, settings=settings)

    logger.info(describe_outcome(outcome))
    if not isinstance(outcome, Success):
        return 1

    table = parse_appointment_table(outcome.html or "")
    if table.headers:
        logger.info(" | ".join(table.headers))
    for row in table.rows:
        logger.info(" | ".join(row))
    return 0


def _run_book(args: argparse.Namespace, settings: Settings) -> int:
    request = BookingRequest(
        parameters=BookingParameters(
            rms_data=args.rms_data,
            dpt_name=args.dpt_name,
            dpt=args.dpt,
            dpt_dptuid=args.dpt_dptuid,
        ),
        id_type=_ID_TYPES[args.id_type],
        id_number=args.id_number,
        birth_date=args.birth_date,
        is_first_visit=args.first_visit,
    )
    book = book_appointment_direct if args.direct else book_appointment
    recognizer = _build_recognizer(settings)
    with open_session(settings) as session:
        outcome = book(request, session=session, recognizer=recognizer, settings=settings)

    logger.info(describe_outcome(outcome))
    return 0 if isinstance(outcome, Success) else 1


def _add_patient_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--id-number", required=True)
    parser.add_argument("--birth-date", required=True, help="Birth date as MMdd")
    parser.add_argument("--id-type", choices=sorted(_ID_TYPES), default="id-card")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="RegBot: hospital registration client")
    commands = parser.add_subparsers(dest="command", required=True)

    timetable = commands.add_parser("timetable", help="Show a department timetable")
    timetable.add_argument("department", help="Department code, e.g. S2700A")
    timetable.add_argument("--doctor", help="Only slots of doctors whose name contains this")
    timetable.add_argument("--available-only", action="store_true")

    query = commands.add_parser("query", help="Look up existing appointments")
    _add_patient_arguments(query)
    query.add_argument("--new-patient", action="store_true")

    book = commands.add_parser("book", help="Book an available slot")
    _add_patient_arguments(book)
    book.add_argument("--rms-data", required=True)
    book.add_argument("--dpt-name", required=True)
    book.add_argument("--dpt", required=True)
    book.add_argument("--dpt-dptuid", required=True)
    book.add_argument("--first-visit", action="store_true")
    book.add_argument("--direct", action="store_true", help="Book with a single post (no confirmation page)")

    return parser


def main() -> int:
    args = build_parser().parse_args()

    _setup_logging()
    settings = load_settings()

    if args.command == "timetable":
        return _run_timetable(args, settings)
    if args.command == "query":
        return _run_query(args, settings)
    return _run_book(args, settings)


if __name__ == "__main__":
    raise SystemExit(main())
