"""Turn a postback response page into exactly one outcome.

Rules are plain data scanned in a fixed priority order:

1. the success element (checked first: error spans are often present but hidden),
2. the error definitions, first active one wins,
3. the "no data" panel,
4. otherwise an UnknownResponse, so a changed page is reported rather than guessed.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable

from bs4 import BeautifulSoup, Tag

from regbot.domain import (
    CaptchaError,
    ConfirmationRequired,
    DataNotFound,
    NewPatientRegistrationRequired,
    Outcome,
    SlotUnavailable,
    Success,
    UnknownResponse,
    ValidationError,
    VerificationFailed,
    VerificationResult,
)
from regbot.webforms import parse_session_state

logger = logging.getLogger(__name__)

HIDDEN_STYLE_MARKERS = ("display:none", "visibility:hidden")

OutcomeFactory = Callable[[str, str], Outcome]


class CheckKind(enum.Enum):
    # Active unless the inline style hides it (ASP.NET validators are always rendered).
    STYLE_VISIBILITY = "style_visibility"
    # Active when the element has any text.
    NON_EMPTY_TEXT = "non_empty_text"
    # Active when the text contains one of the definition's markers.
    CONTAINS_MARKER = "contains_marker"


@dataclass(frozen=True)
class ErrorDefinition:
    element_id: str
    check: CheckKind
    outcome: OutcomeFactory
    fallback_message: str = ""
    markers: tuple[str, ...] = ()


@dataclass(frozen=True)
class SuccessRule:
    element_id: str
    # Empty: presence of the element is enough.
    markers: tuple[str, ...] = ()
    # None: use the element's own text.
    message: str | None = None


@dataclass(frozen=True)
class ResponseRules:
    errors: tuple[ErrorDefinition, ...]
    unknown_message: str
    success: SuccessRule | None = None
    no_data_panel_id: str | None = None
    no_data_outcome: OutcomeFactory = DataNotFound
    no_data_message: str = ""


def _text(node: Tag) -> str:
    return node.get_text().strip()


def _normalised_style(node: Tag) -> str:
    return str(node.get("style") or "").replace(" ", "").lower()


def _active_error(node: Tag, definition: ErrorDefinition) -> bool:
    if definition.check is CheckKind.STYLE_VISIBILITY:
        style = _normalised_style(node)
        return not any(marker in style for marker in HIDDEN_STYLE_MARKERS)
    if definition.check is CheckKind.NON_EMPTY_TEXT:
        return bool(_text(node))
    if definition.check is CheckKind.CONTAINS_MARKER:
        text = _text(node)
        return any(marker in text for marker in definition.markers)
    raise ValueError(f"Unsupported check kind: {definition.check}")


def _matches_success(soup: BeautifulSoup, rule: SuccessRule) -> str | None:
    node = soup.find(id=rule.element_id)
    if node is None:
        return None
    text = _text(node)
    if rule.markers and not any(marker in text for marker in rule.markers):
        return None
    return rule.message if rule.message is not None else text


def classify_soup(soup: BeautifulSoup, html: str, rules: ResponseRules) -> Outcome:
    if rules.success is not None:
        message = _matches_success(soup, rules.success)
        if message is not None:
            logger.info("Response classified as success (%s)", rules.success.element_id)
            return Success(message, html)

    for definition in rules.errors:
        node = soup.find(id=definition.element_id)
        if node is None or not _active_error(node, definition):
            continue
        message = _text(node) or definition.fallback_message
        outcome = definition.outcome(message, html)
        logger.warning(
            "Response classified as %s. ID: %s, Message: %s",
            type(outcome).__name__,
            definition.element_id,
            message,
        )
        return outcome

    if rules.no_data_panel_id is not None:
        panel = soup.find(id=rules.no_data_panel_id)
        if panel is not None:
            strong = panel.find("strong")
            message = (_text(strong) if strong is not None else "") or rules.no_data_message
            outcome = rules.no_data_outcome(message, html)
            logger.warning("Response classified as %s. Message: %s", type(outcome).__name__, message)
            return outcome

    logger.error("Could not determine the result from the response HTML. It's not a known success or failure pattern.")
    return UnknownResponse(rules.unknown_message, html)


def classify_response(html: str, rules: ResponseRules) -> Outcome:
    return classify_soup(BeautifulSoup(html, "html.parser"), html, rules)


_P = "ctl00_ContentPlaceHolder1_"

SLOT_FULL_MARKERS = ("已額滿", "預約名額已滿")

QUERY_RULES = ResponseRules(
    success=SuccessRule(f"{_P}gvQueryResult", message="查詢成功"),
    errors=(
        ErrorDefinition(f"{_P}validateImg", CheckKind.STYLE_VISIBILITY, CaptchaError, "輸入的值與圖片中的不符"),
        ErrorDefinition(f"{_P}validatBirthday1", CheckKind.STYLE_VISIBILITY, ValidationError, "出生日期不可為空白!"),
        ErrorDefinition(f"{_P}validatBirthday2", CheckKind.STYLE_VISIBILITY, ValidationError, "出生日期輸入格式錯誤!"),
        ErrorDefinition(f"{_P}validateInputS", CheckKind.NON_EMPTY_TEXT, ValidationError),
        ErrorDefinition(f"{_P}txtInputSError", CheckKind.NON_EMPTY_TEXT, ValidationError),
        ErrorDefinition(f"{_P}labBirthError", CheckKind.NON_EMPTY_TEXT, ValidationError),
    ),
    no_data_panel_id=f"{_P}panelFailResult",
    no_data_outcome=DataNotFound,
    no_data_message="目前查無您的掛號資料!",
    unknown_message="未知的回應格式",
)

# Login.aspx after the identity post, when neither the confirmation page nor
# the new patient form came back.
LOGIN_FAILURE_RULES = ResponseRules(
    errors=(
        ErrorDefinition(f"{_P}validateImg", CheckKind.STYLE_VISIBILITY, CaptchaError, "輸入的值與圖片中的不符"),
        ErrorDefinition(f"{_P}validateInput", CheckKind.NON_EMPTY_TEXT, ValidationError),
        ErrorDefinition(f"{_P}labMessage", CheckKind.CONTAINS_MARKER, SlotUnavailable, markers=SLOT_FULL_MARKERS),
        ErrorDefinition(f"{_P}labMessage", CheckKind.NON_EMPTY_TEXT, ValidationError),
    ),
    no_data_panel_id=f"{_P}panelFailResult",
    no_data_outcome=SlotUnavailable,
    no_data_message="此時段已無法掛號",
    unknown_message="未知的身分驗證回應格式",
)

# Final page of a booking, from either the confirmation post or the direct post.
BOOKING_RESULT_RULES = ResponseRules(
    success=SuccessRule(f"{_P}labMessage", markers=("掛號成功",)),
    errors=(
        ErrorDefinition(f"{_P}labMessage", CheckKind.CONTAINS_MARKER, SlotUnavailable, markers=SLOT_FULL_MARKERS),
        ErrorDefinition(f"{_P}validateImg", CheckKind.STYLE_VISIBILITY, CaptchaError, "輸入的值與圖片中的不符"),
        ErrorDefinition(f"{_P}validateInput", CheckKind.NON_EMPTY_TEXT, ValidationError),
        ErrorDefinition(f"{_P}labBirthError", CheckKind.NON_EMPTY_TEXT, ValidationError),
    ),
    no_data_panel_id=f"{_P}panelFailResult",
    no_data_outcome=SlotUnavailable,
    no_data_message="此時段已無法掛號",
    unknown_message="未知的掛號回應格式",
)

CONFIRMATION_MARKER_ID = f"{_P}btnConfirm"
NEW_PATIENT_MARKER_ID = f"{_P}panelFirstVisit"


def analyze_login_response(html: str, url: str) -> VerificationResult:
    """Read the page returned by the identity-verification post.

    Raises MissingSessionState if a confirmation or new patient page arrives
    without its own postback tokens.
    """

    soup = BeautifulSoup(html, "html.parser")

    if soup.find(id=CONFIRMATION_MARKER_ID) is not None:
        logger.info("Identity verified, confirmation page received")
        return ConfirmationRequired(html=html, state=parse_session_state(html), url=url)

    if soup.find(id=NEW_PATIENT_MARKER_ID) is not None:
        logger.info("Identity not on file, new patient registration page received")
        return NewPatientRegistrationRequired(state=parse_session_state(html))

    return VerificationFailed(classify_soup(soup, html, LOGIN_FAILURE_RULES))
