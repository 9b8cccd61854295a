from __future__ import annotations

import logging
import re
import threading

import httpx
from bs4 import BeautifulSoup

from regbot.captcha import CaptchaRecognizer
from regbot.captcha_loop import CaptchaBudgetSpent, run_captcha_attempts
from regbot.classifier import QUERY_RULES, classify_response
from regbot.config import Settings
from regbot.domain import (
    MissingSessionState,
    OperationError,
    QueryOutcome,
    QueryRequest,
    RunCancelled,
    SessionState,
    TableData,
)
from regbot.webforms import ClickFn, fetch_session_state, random_click, submit_form

logger = logging.getLogger(__name__)

QUERY_PAGE_URL = "Query.aspx?loc=S"
QUERY_BUTTON = "ctl00$ContentPlaceHolder1$btnQuery"
RESULT_TABLE_ID = "ctl00_ContentPlaceHolder1_gvQueryResult"


def _query_fields(request: QueryRequest, captcha_text: str) -> dict[str, str]:
    return {
        "ctl00$ContentPlaceHolder1$Times": request.query_type.value,
        "ctl00$ContentPlaceHolder1$rbnListS": str(int(request.id_type)),
        "ctl00$ContentPlaceHolder1$txtInputS": request.id_number,
        "ctl00$ContentPlaceHolder1$txtBirthday": request.birth_date,
        "ctl00$ContentPlaceHolder1$txtValidate": captcha_text,
    }


def query_appointment(
    request: QueryRequest,
    *,
    session: httpx.Client,
    recognizer: CaptchaRecognizer,
    settings: Settings,
    cancel: threading.Event | None = None,
    click: ClickFn = random_click,
) -> QueryOutcome:
    """Look up existing appointments.

    `session` must belong to this run alone. Every failure comes back as an
    outcome; only RunCancelled is raised.
    """

    try:
        state = fetch_session_state(session, QUERY_PAGE_URL, cancel=cancel)

        def _submit(captcha_text: str) -> QueryOutcome:
            return _post_query(session, state, request, captcha_text, click=click, cancel=cancel)

        result = run_captcha_attempts(
            _submit, session=session, recognizer=recognizer, settings=settings, cancel=cancel
        )
        if isinstance(result, CaptchaBudgetSpent):
            return OperationError(
                f"Failed to query appointment after {result.attempts} captcha attempts "
                f"({result.submissions} submitted). The captcha is still not recognized."
            )

        logger.info("Query finished with %s", type(result).__name__)
        return result

    except RunCancelled:
        raise
    except MissingSessionState as e:
        logger.error("Query failed (%s: %s)", type(e).__name__, e)
        return OperationError("Failed to parse initial page state.")
    except httpx.HTTPError as e:
        logger.error("HTTP error while querying appointment (%s: %s)", type(e).__name__, e)
        return OperationError(f"HTTP Error: {e}")
    except Exception as e:
        logger.error("Unexpected error while querying appointment (%s: %s)", type(e).__name__, e)
        return OperationError(f"Unexpected Error: {e}")


def _post_query(
    session: httpx.Client,
    state: SessionState,
    request: QueryRequest,
    captcha_text: str,
    *,
    click: ClickFn,
    cancel: threading.Event | None,
) -> QueryOutcome:
    response = submit_form(
        session,
        QUERY_PAGE_URL,
        state,
        _query_fields(request, captcha_text),
        button=QUERY_BUTTON,
        click=click,
        cancel=cancel,
    )
    return classify_response(response.html, QUERY_RULES)


def _cell_text(cell) -> str:
    return re.sub(r"\s+", " ", cell.get_text(" ")).strip()


def parse_appointment_table(html: str) -> TableData:
    """Extract the appointment grid from a successful query page."""

    soup = BeautifulSoup(html, "html.parser")
    table = soup.find(id=RESULT_TABLE_ID)
    if table is None:
        logger.warning("Result table %s not found; returning empty table", RESULT_TABLE_ID)
        return TableData()

    headers: list[str] = []
    rows: list[list[str]] = []
    for tr in table.find_all("tr"):
        header_cells = tr.find_all("th")
        if header_cells and not headers:
            headers = [_cell_text(th) for th in header_cells]
            continue
        cells = tr.find_all("td")
        if cells:
            rows.append([_cell_text(td) for td in cells])

    logger.info("Parsed appointment table: %d columns, %d rows", len(headers), len(rows))
    return TableData(headers=headers, rows=rows)
