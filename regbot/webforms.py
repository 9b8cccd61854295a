"""HTTP side of the postback protocol: session, hidden tokens, form posts."""

from __future__ import annotations

import logging
import random
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Mapping

import httpx
from bs4 import BeautifulSoup

from regbot.config import Settings
from regbot.domain import MissingSessionState, RunCancelled, SessionState

logger = logging.getLogger(__name__)

VIEWSTATE_FIELD = "__VIEWSTATE"
VIEWSTATE_GENERATOR_FIELD = "__VIEWSTATEGENERATOR"
EVENT_VALIDATION_FIELD = "__EVENTVALIDATION"

# The server only checks that an image button click landed inside the image.
CLICK_X_RANGE = (15, 90)
CLICK_Y_RANGE = (15, 20)

ClickFn = Callable[[], tuple[int, int]]


@dataclass(frozen=True)
class PostbackResponse:
    url: str
    html: str


def random_click() -> tuple[int, int]:
    return random.randint(*CLICK_X_RANGE), random.randint(*CLICK_Y_RANGE)


def raise_if_cancelled(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise RunCancelled("Run cancelled by caller")


@contextmanager
def open_session(settings: Settings, transport: httpx.BaseTransport | None = None) -> Iterator[httpx.Client]:
    """One cookie jar for one run. Never share it between concurrent runs."""

    client = httpx.Client(
        base_url=settings.base_url,
        headers={"User-Agent": settings.user_agent},
        timeout=settings.request_timeout_seconds,
        follow_redirects=True,
        transport=transport,
    )
    try:
        yield client
    finally:
        client.close()


def parse_session_state(html: str) -> SessionState:
    soup = BeautifulSoup(html, "html.parser")

    def _value(field_id: str) -> str:
        node = soup.find(id=field_id)
        if node is None:
            return ""
        return str(node.get("value") or "")

    view_state = _value(VIEWSTATE_FIELD)
    event_validation = _value(EVENT_VALIDATION_FIELD)
    if not view_state or not event_validation:
        raise MissingSessionState(f"Could not extract {VIEWSTATE_FIELD} or {EVENT_VALIDATION_FIELD} from the page")

    return SessionState(
        view_state=view_state,
        view_state_generator=_value(VIEWSTATE_GENERATOR_FIELD),
        event_validation=event_validation,
    )


def fetch_session_state(
    session: httpx.Client, url: str, *, cancel: threading.Event | None = None
) -> SessionState:
    """GET the page (setting the session cookie) and read its hidden tokens."""

    raise_if_cancelled(cancel)
    logger.info("Fetching %s for ViewState and session cookie", url)
    r = session.get(url)
    r.raise_for_status()

    state = parse_session_state(r.text)
    logger.info("Extracted ViewState and other hidden fields")
    return state


def submit_form(
    session: httpx.Client,
    url: str,
    state: SessionState,
    fields: Mapping[str, str],
    *,
    button: str,
    click: ClickFn = random_click,
    cancel: threading.Event | None = None,
) -> PostbackResponse:
    """POST a postback: hidden tokens, caller fields and an image-button click."""

    x, y = click()
    payload = {
        VIEWSTATE_FIELD: state.view_state,
        VIEWSTATE_GENERATOR_FIELD: state.view_state_generator,
        EVENT_VALIDATION_FIELD: state.event_validation,
        **fields,
        f"{button}.x": str(x),
        f"{button}.y": str(y),
    }

    raise_if_cancelled(cancel)
    logger.info("Posting form to %s", url)
    r = session.post(url, data=payload)
    r.raise_for_status()
    return PostbackResponse(url=str(r.url), html=r.text)
