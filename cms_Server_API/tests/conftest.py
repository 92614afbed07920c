# tests/conftest.py
# Description: Shared fixtures: controllable clocks and a content database on a temporary directory.
#
# Imports
from datetime import datetime, timedelta, timezone
#
# Third-party imports
import pytest
#
# Local imports
from cms_Server_API.app.core.DB_Management.Content_DB import ContentDatabase
#
########################################################################################################################
#
# Functions

class FakeClock:
    """Callable UTC clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeMonotonic:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    # Anchored on real time so PyJWT's own expiry checks agree with the fake clock.
    return FakeClock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def store_dir(tmp_path):
    path = tmp_path / "admin"
    path.mkdir()
    return path


@pytest.fixture
def content_db(store_dir, clock):
    return ContentDatabase(store_dir, clock=clock)
