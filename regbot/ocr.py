from __future__ import annotations

import logging
import re

import ddddocr

logger = logging.getLogger(__name__)

_NOT_CAPTCHA_CHARS = re.compile(r"[^A-Z0-9]")


class DdddOcrRecognizer:
    """CaptchaRecognizer backed by a local ddddocr model."""

    def __init__(self, *, beta: bool = False) -> None:
        self._ocr = ddddocr.DdddOcr(beta=beta, show_ad=False)

    def recognize(self, image: bytes) -> str:
        try:
            raw = self._ocr.classification(image)
        except Exception as e:
            logger.warning("ddddocr failed to read captcha (%s: %s)", type(e).__name__, e)
            return ""
        # The site only draws upper-case letters and digits.
        return _NOT_CAPTCHA_CHARS.sub("", str(raw).upper())
