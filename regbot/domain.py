from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date
from typing import Union


class QueryType(enum.Enum):
    """Value of the `Times` radio button on the query form."""

    RETURNING_PATIENT = "rbnSeveralTimes"
    NEW_PATIENT = "rbnFirstTime"


class IdType(enum.IntEnum):
    """Identification document; the integer is the form value."""

    ID_CARD = 0
    MEDICAL_RECORD = 1
    PASSPORT = 2
    RESIDENT_CERTIFICATE = 3
    ENTRY_EXIT_PERMIT = 4


@dataclass(frozen=True)
class SessionState:
    """Hidden postback tokens issued by one GET.

    Only valid for the run that fetched them; the server keys them to the
    session cookie.
    """

    view_state: str
    view_state_generator: str
    event_validation: str


@dataclass(frozen=True)
class QueryRequest:
    query_type: QueryType
    id_type: IdType
    id_number: str
    birth_date: str  # MMdd


@dataclass(frozen=True)
class BookingParameters:
    """Opaque tokens taken from an available slot's link."""

    rms_data: str
    dpt_name: str
    dpt: str
    dpt_dptuid: str

    def as_query(self) -> dict[str, str]:
        return {
            "rmsData": self.rms_data,
            "dptName": self.dpt_name,
            "dpt": self.dpt,
            "dptDptuid": self.dpt_dptuid,
        }


@dataclass(frozen=True)
class BookingRequest:
    parameters: BookingParameters
    id_type: IdType
    id_number: str
    birth_date: str  # MMdd
    is_first_visit: bool = False


# Outcomes. Query and booking flows share the variant classes; the aliases
# below name the closed set each flow can return.


@dataclass(frozen=True)
class Success:
    message: str
    html: str | None = None


@dataclass(frozen=True)
class CaptchaError:
    message: str
    html: str | None = None


@dataclass(frozen=True)
class DataNotFound:
    message: str
    html: str | None = None


@dataclass(frozen=True)
class ValidationError:
    message: str
    html: str | None = None


@dataclass(frozen=True)
class SlotUnavailable:
    message: str
    html: str | None = None


@dataclass(frozen=True)
class UnknownResponse:
    message: str
    html: str | None = None


@dataclass(frozen=True)
class OperationError:
    """Transport or unexpected failure; never carries a page."""

    message: str
    html: None = None


QueryOutcome = Union[Success, CaptchaError, DataNotFound, ValidationError, UnknownResponse, OperationError]
BookingOutcome = Union[Success, CaptchaError, ValidationError, SlotUnavailable, UnknownResponse, OperationError]
Outcome = Union[QueryOutcome, BookingOutcome]


@dataclass(frozen=True)
class ConfirmationRequired:
    """Identity accepted; the confirmation page must be posted next."""

    html: str
    state: SessionState
    url: str


@dataclass(frozen=True)
class NewPatientRegistrationRequired:
    state: SessionState


@dataclass(frozen=True)
class VerificationFailed:
    status: BookingOutcome


VerificationResult = Union[ConfirmationRequired, NewPatientRegistrationRequired, VerificationFailed]


class SlotStatus(enum.Enum):
    UNKNOWN = "unknown"
    AVAILABLE = "available"
    FULL = "full"
    NO_CLINIC = "no_clinic"


@dataclass(frozen=True)
class Doctor:
    id: str
    name: str


@dataclass(frozen=True)
class AppointmentSlot:
    doctor: Doctor
    status: SlotStatus
    raw_text: str
    # Only Available slots carry parameters, and only when the link had all of them.
    booking_parameters: BookingParameters | None = None


@dataclass(frozen=True)
class DailyTimetable:
    date: date
    morning_slots: tuple[AppointmentSlot, ...] = ()
    afternoon_slots: tuple[AppointmentSlot, ...] = ()
    night_slots: tuple[AppointmentSlot, ...] = ()

    def all_slots(self) -> tuple[AppointmentSlot, ...]:
        return self.morning_slots + self.afternoon_slots + self.night_slots


@dataclass(frozen=True)
class DepartmentTimetable:
    code: str
    name: str
    days: tuple[DailyTimetable, ...] = ()


@dataclass(frozen=True)
class TableData:
    """Plain two-dimensional table scraped from a result grid."""

    headers: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)


class MissingSessionState(RuntimeError):
    """The page did not carry __VIEWSTATE or __EVENTVALIDATION."""


class RunCancelled(RuntimeError):
    """The caller asked the run to stop.

    Raised instead of an OperationError so callers can tell a deliberate stop
    from a failure of the remote site.
    """
