"""Booking flow: identity verification on Login.aspx, then the confirmation post."""

from __future__ import annotations

import logging
import threading
from urllib.parse import urlencode

import httpx

from regbot.captcha import CaptchaRecognizer
from regbot.captcha_loop import CaptchaBudgetSpent, run_captcha_attempts
from regbot.classifier import BOOKING_RESULT_RULES, analyze_login_response, classify_response
from regbot.config import Settings
from regbot.domain import (
    BookingOutcome,
    BookingParameters,
    BookingRequest,
    ConfirmationRequired,
    MissingSessionState,
    NewPatientRegistrationRequired,
    OperationError,
    RunCancelled,
    SessionState,
    VerificationFailed,
    VerificationResult,
)
from regbot.webforms import ClickFn, fetch_session_state, random_click, submit_form

logger = logging.getLogger(__name__)

_P = "ctl00$ContentPlaceHolder1$"

SEND_BUTTON = f"{_P}btnSend"
QUERY_BUTTON = f"{_P}btnQuery"
CONFIRM_BUTTON = f"{_P}btnConfirm"


def build_login_url(parameters: BookingParameters) -> str:
    return f"Login.aspx?{urlencode(parameters.as_query())}"


def _identity_fields(request: BookingRequest, captcha_text: str) -> dict[str, str]:
    return {
        f"{_P}rbnList": str(int(request.id_type)),
        f"{_P}txtInput": request.id_number,
        f"{_P}txtValidate": captcha_text,
    }


def _confirmation_fields(request: BookingRequest) -> dict[str, str]:
    return {
        f"{_P}txtBirthday": request.birth_date,
        f"{_P}rdoVisit": "rdoFirst" if request.is_first_visit else "rdoSeveral",
    }


def _exhausted(spent: CaptchaBudgetSpent) -> OperationError:
    return OperationError(
        f"Failed to book appointment after {spent.attempts} captcha attempts "
        f"({spent.submissions} submitted). The captcha is still not recognized."
    )


def _as_operation_error(e: Exception) -> OperationError:
    if isinstance(e, MissingSessionState):
        logger.error("Booking failed (%s: %s)", type(e).__name__, e)
        return OperationError("Failed to parse booking page state.")
    if isinstance(e, httpx.HTTPError):
        logger.error("HTTP error during the booking process (%s: %s)", type(e).__name__, e)
        return OperationError(f"HTTP Error: {e}")
    logger.error("Unexpected error during the booking process (%s: %s)", type(e).__name__, e)
    return OperationError(f"Unexpected Error: {e}")


def book_appointment(
    request: BookingRequest,
    *,
    session: httpx.Client,
    recognizer: CaptchaRecognizer,
    settings: Settings,
    cancel: threading.Event | None = None,
    click: ClickFn = random_click,
) -> BookingOutcome:
    """Book the slot named by `request.parameters`.

    Phase 1 posts the identity form with a captcha until the server stops
    rejecting the captcha. Phase 2 posts the confirmation page using the
    tokens that page carried. Only RunCancelled is raised.
    """

    try:
        login_url = build_login_url(request.parameters)
        state = fetch_session_state(session, login_url, cancel=cancel)

        verification = verify_identity(
            request,
            login_url=login_url,
            state=state,
            session=session,
            recognizer=recognizer,
            settings=settings,
            cancel=cancel,
            click=click,
        )
        if isinstance(verification, CaptchaBudgetSpent):
            return _exhausted(verification)

        if isinstance(verification, VerificationFailed):
            logger.warning(
                "Identity verification failed: %s (%s)",
                type(verification.status).__name__,
                verification.status.message,
            )
            return verification.status

        if isinstance(verification, NewPatientRegistrationRequired):
            logger.warning("New patient registration is required; this flow is not supported")
            return OperationError("New patient registration is not supported (unsupported flow).")

        if isinstance(verification, ConfirmationRequired):
            return confirm_booking(
                request, verification, session=session, cancel=cancel, click=click
            )

        raise TypeError(f"Unexpected verification result: {verification!r}")

    except RunCancelled:
        raise
    except Exception as e:
        return _as_operation_error(e)


def verify_identity(
    request: BookingRequest,
    *,
    login_url: str,
    state: SessionState,
    session: httpx.Client,
    recognizer: CaptchaRecognizer,
    settings: Settings,
    cancel: threading.Event | None = None,
    click: ClickFn = random_click,
) -> VerificationResult | CaptchaBudgetSpent:
    """Phase 1. Returns CaptchaBudgetSpent when every captcha attempt was used."""

    def _submit(captcha_text: str) -> VerificationResult:
        logger.info("Posting identity verification for ID %s", request.id_number)
        response = submit_form(
            session,
            login_url,
            state,
            _identity_fields(request, captcha_text),
            button=SEND_BUTTON,
            click=click,
            cancel=cancel,
        )
        return analyze_login_response(response.html, response.url)

    return run_captcha_attempts(_submit, session=session, recognizer=recognizer, settings=settings, cancel=cancel)


def confirm_booking(
    request: BookingRequest,
    confirmation: ConfirmationRequired,
    *,
    session: httpx.Client,
    cancel: threading.Event | None = None,
    click: ClickFn = random_click,
) -> BookingOutcome:
    """Phase 2: post the confirmation page with its own (new) tokens."""

    logger.info("Posting booking confirmation to %s", confirmation.url)
    response = submit_form(
        session,
        confirmation.url,
        confirmation.state,
        _confirmation_fields(request),
        button=CONFIRM_BUTTON,
        click=click,
        cancel=cancel,
    )
    outcome = classify_response(response.html, BOOKING_RESULT_RULES)
    logger.info("Booking finished with %s", type(outcome).__name__)
    return outcome


def book_appointment_direct(
    request: BookingRequest,
    *,
    session: httpx.Client,
    recognizer: CaptchaRecognizer,
    settings: Settings,
    cancel: threading.Event | None = None,
    click: ClickFn = random_click,
) -> BookingOutcome:
    """Single-post variant: the login form's query button books immediately."""

    try:
        login_url = build_login_url(request.parameters)
        state = fetch_session_state(session, login_url, cancel=cancel)

        def _submit(captcha_text: str) -> BookingOutcome:
            logger.info("Posting booking form for ID %s", request.id_number)
            response = submit_form(
                session,
                login_url,
                state,
                _identity_fields(request, captcha_text),
                button=QUERY_BUTTON,
                click=click,
                cancel=cancel,
            )
            return classify_response(response.html, BOOKING_RESULT_RULES)

        result = run_captcha_attempts(
            _submit, session=session, recognizer=recognizer, settings=settings, cancel=cancel
        )
        if isinstance(result, CaptchaBudgetSpent):
            return _exhausted(result)

        logger.info("Booking finished with %s", type(result).__name__)
        return result

    except RunCancelled:
        raise
    except Exception as e:
        return _as_operation_error(e)
