from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_BASE_URL = "https://rms.sph.org.tw/"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/100.0.4896.127 Safari/537.36"
)


@dataclass(frozen=True)
class Settings:
    base_url: str = DEFAULT_BASE_URL
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout_seconds: float = 30.0

    # Captcha retry tuning
    # How many captcha attempts a single query/booking run may make.
    max_captcha_retries: int = 5
    captcha_retry_delay_seconds: float = 1.0
    # The site always draws this many characters; anything else is an OCR miss.
    captcha_length: int = 4
    # Whether an OCR miss (wrong length) uses up one of max_captcha_retries.
    # When it does not, max_captcha_reads caps the number of captcha downloads.
    count_unreadable_captcha: bool = True
    max_captcha_reads: int = 20

    # ddddocr tuning
    ocr_beta: bool = False


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def _int_at_least(name: str, default: str, minimum: int) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}. Expected an integer.") from e
    if value < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}")
    return value


def _float_at_least(name: str, default: str, minimum: float) -> float:
    raw = os.getenv(name, default)
    try:
        value = float(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}. Expected a number.") from e
    if value < minimum:
        raise RuntimeError(f"{name} must be >= {minimum:g}")
    return value


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Prefer .env in repo root; dotenv_path allows overriding in tests.
    load_dotenv(dotenv_path=dotenv_path, override=False)

    base_url = os.getenv("HOSPITAL_BASE_URL", DEFAULT_BASE_URL).strip()
    if not base_url.startswith(("http://", "https://")):
        raise RuntimeError(f"Invalid HOSPITAL_BASE_URL value: {base_url!r}. Expected an http(s) URL.")

    return Settings(
        base_url=base_url,
        user_agent=os.getenv("USER_AGENT", DEFAULT_USER_AGENT),
        request_timeout_seconds=_float_at_least("REQUEST_TIMEOUT_SECONDS", "30", 0.1),
        max_captcha_retries=_int_at_least("MAX_CAPTCHA_RETRIES", "5", 1),
        captcha_retry_delay_seconds=_float_at_least("CAPTCHA_RETRY_DELAY_SECONDS", "1", 0),
        captcha_length=_int_at_least("CAPTCHA_LENGTH", "4", 1),
        count_unreadable_captcha=_parse_bool(os.getenv("COUNT_UNREADABLE_CAPTCHA", "1")),
        max_captcha_reads=_int_at_least("MAX_CAPTCHA_READS", "20", 1),
        ocr_beta=_parse_bool(os.getenv("OCR_BETA", "0")),
    )
