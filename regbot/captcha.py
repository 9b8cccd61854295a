from __future__ import annotations

import logging
import threading
from typing import Protocol

import httpx

from regbot.webforms import raise_if_cancelled

logger = logging.getLogger(__name__)

CAPTCHA_URL = "ValidateCode.aspx"


class CaptchaRecognizer(Protocol):
    def recognize(self, image: bytes) -> str:
        """Return the text in the image, or "" if it cannot be read."""
        ...


def solve_captcha(
    session: httpx.Client, recognizer: CaptchaRecognizer, *, cancel: threading.Event | None = None
) -> str:
    """Download a fresh captcha on the run's session and read it.

    The length is not checked here; the caller knows what the form expects.
    """

    raise_if_cancelled(cancel)
    logger.info("Downloading captcha image")
    r = session.get(CAPTCHA_URL)
    r.raise_for_status()

    raise_if_cancelled(cancel)
    text = recognizer.recognize(r.content) or ""
    if text:
        logger.info("Captcha recognized as: %s", text)
    else:
        logger.warning("OCR failed to recognize captcha")
    return text
