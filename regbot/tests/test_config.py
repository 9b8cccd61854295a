from __future__ import annotations

import os

import pytest

from regbot.config import DEFAULT_BASE_URL, load_settings

_ENV_VARS = (
    "HOSPITAL_BASE_URL",
    "USER_AGENT",
    "REQUEST_TIMEOUT_SECONDS",
    "MAX_CAPTCHA_RETRIES",
    "CAPTCHA_RETRY_DELAY_SECONDS",
    "CAPTCHA_LENGTH",
    "COUNT_UNREADABLE_CAPTCHA",
    "MAX_CAPTCHA_READS",
    "OCR_BETA",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_load_settings_defaults() -> None:
    settings = load_settings(dotenv_path=None)

    assert settings.base_url == DEFAULT_BASE_URL
    assert settings.max_captcha_retries == 5
    assert settings.captcha_retry_delay_seconds == 1.0
    assert settings.captcha_length == 4
    assert settings.count_unreadable_captcha is True
    assert settings.max_captcha_reads == 20
    assert settings.ocr_beta is False


def test_load_settings_reads_captcha_tuning(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAX_CAPTCHA_RETRIES", "3")
    monkeypatch.setenv("CAPTCHA_RETRY_DELAY_SECONDS", "0.5")
    monkeypatch.setenv("COUNT_UNREADABLE_CAPTCHA", "false")
    monkeypatch.setenv("OCR_BETA", "yes")

    settings = load_settings(dotenv_path=None)
    assert settings.max_captcha_retries == 3
    assert settings.captcha_retry_delay_seconds == 0.5
    assert settings.count_unreadable_captcha is False
    assert settings.ocr_beta is True


def test_load_settings_rejects_non_integer_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAX_CAPTCHA_RETRIES", "many")

    with pytest.raises(RuntimeError, match=r"Invalid MAX_CAPTCHA_RETRIES"):
        load_settings(dotenv_path=None)


def test_load_settings_rejects_zero_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAX_CAPTCHA_RETRIES", "0")

    with pytest.raises(RuntimeError, match=r"MAX_CAPTCHA_RETRIES must be >= 1"):
        load_settings(dotenv_path=None)


def test_load_settings_rejects_negative_delay(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CAPTCHA_RETRY_DELAY_SECONDS", "-1")

    with pytest.raises(RuntimeError, match=r"CAPTCHA_RETRY_DELAY_SECONDS must be >= 0"):
        load_settings(dotenv_path=None)


def test_load_settings_rejects_non_http_base_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOSPITAL_BASE_URL", "ftp://rms.example/")

    with pytest.raises(RuntimeError, match=r"Invalid HOSPITAL_BASE_URL"):
        load_settings(dotenv_path=None)


def test_load_settings_does_not_override_existing_env_with_dotenv(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("MAX_CAPTCHA_RETRIES", "2")

    dotenv = tmp_path / ".env"
    dotenv.write_text("MAX_CAPTCHA_RETRIES=9\nCAPTCHA_LENGTH=6\n")

    settings = load_settings(dotenv_path=str(dotenv))
    # load_dotenv wrote CAPTCHA_LENGTH straight into os.environ.
    os.environ.pop("CAPTCHA_LENGTH", None)
    assert settings.max_captcha_retries == 2
    assert settings.captcha_length == 6
