from __future__ import annotations

from typing import Iterator

import httpx
import pytest

from regbot.config import Settings
from regbot.tests.fakes import FakeSite
from regbot.webforms import open_session


@pytest.fixture
def settings() -> Settings:
    return Settings(captcha_retry_delay_seconds=0)


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def session(site: FakeSite, settings: Settings) -> Iterator[httpx.Client]:
    with open_session(settings, transport=httpx.MockTransport(site.handler)) as client:
        yield client
