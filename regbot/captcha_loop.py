"""Bounded solve-captcha-then-submit loop shared by the query and booking flows."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

import httpx
from tenacity import RetryCallState, Retrying, retry_if_result, wait_fixed

from regbot.captcha import CaptchaRecognizer, solve_captcha
from regbot.config import Settings
from regbot.domain import CaptchaError, RunCancelled, VerificationFailed
from regbot.webforms import raise_if_cancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class UnreadableCaptcha:
    """OCR gave back nothing usable; nothing was submitted."""

    text: str


@dataclass(frozen=True)
class CaptchaBudgetSpent:
    """Every allowed captcha attempt was used without a non-captcha result."""

    attempts: int
    submissions: int


def is_captcha_rejected(result: object) -> bool:
    if isinstance(result, VerificationFailed):
        result = result.status
    return isinstance(result, CaptchaError)


def _retry_reason(result: object) -> str:
    if isinstance(result, UnreadableCaptcha):
        return f"unreadable captcha {result.text!r}"
    if isinstance(result, VerificationFailed):
        result = result.status
    message = getattr(result, "message", "")
    return f"{type(result).__name__}: {message}" if message else type(result).__name__


def _log_before_attempt(retry_state: RetryCallState) -> None:
    logger.info("Captcha attempt %s: start", retry_state.attempt_number)


def _log_before_sleep(retry_state: RetryCallState) -> None:
    sleep_seconds = getattr(retry_state.next_action, "sleep", None)
    next_attempt = retry_state.attempt_number + 1
    reason = None
    if retry_state.outcome is not None and not retry_state.outcome.failed:
        reason = _retry_reason(retry_state.outcome.result())

    if sleep_seconds is None:
        logger.warning("Captcha attempt %s failed (%s), retrying", retry_state.attempt_number, reason)
        return

    logger.warning(
        "Captcha attempt %s failed (%s). Retrying attempt %s in %.1f s",
        retry_state.attempt_number,
        reason,
        next_attempt,
        sleep_seconds,
    )


def _interruptible_sleep(cancel: threading.Event | None) -> Callable[[float], None]:
    def _sleep(seconds: float) -> None:
        raise_if_cancelled(cancel)
        if cancel is None:
            time.sleep(seconds)
        elif cancel.wait(seconds):
            raise RunCancelled("Run cancelled by caller during captcha backoff")

    return _sleep


def run_captcha_attempts(
    submit: Callable[[str], T],
    *,
    session: httpx.Client,
    recognizer: CaptchaRecognizer,
    settings: Settings,
    cancel: threading.Event | None = None,
) -> T | CaptchaBudgetSpent:
    """Solve a captcha and call `submit` with it until a non-captcha result.

    Captcha rejections and unreadable captchas are retried with a fixed pause.
    Any other result is returned as soon as it appears. Exceptions are never
    retried. Returns CaptchaBudgetSpent once the attempt budget is spent.
    """

    submissions = 0

    def _attempt() -> T | UnreadableCaptcha:
        nonlocal submissions
        text = solve_captcha(session, recognizer, cancel=cancel)
        if len(text) != settings.captcha_length:
            logger.warning(
                "Captcha is not recognized or the length is not %s. Captcha text: %r",
                settings.captcha_length,
                text,
            )
            return UnreadableCaptcha(text)
        submissions += 1
        return submit(text)

    def _should_retry(result: object) -> bool:
        return isinstance(result, UnreadableCaptcha) or is_captcha_rejected(result)

    def _stop(retry_state: RetryCallState) -> bool:
        if settings.count_unreadable_captcha:
            return retry_state.attempt_number >= settings.max_captcha_retries
        return submissions >= settings.max_captcha_retries or retry_state.attempt_number >= settings.max_captcha_reads

    def _exhausted(retry_state: RetryCallState) -> CaptchaBudgetSpent:
        logger.error(
            "Giving up after %s captcha attempts (%s submitted)",
            retry_state.attempt_number,
            submissions,
        )
        return CaptchaBudgetSpent(attempts=retry_state.attempt_number, submissions=submissions)

    retrying = Retrying(
        stop=_stop,
        wait=wait_fixed(settings.captcha_retry_delay_seconds),
        retry=retry_if_result(_should_retry),
        sleep=_interruptible_sleep(cancel),
        before=_log_before_attempt,
        before_sleep=_log_before_sleep,
        retry_error_callback=_exhausted,
    )
    return retrying(_attempt)
