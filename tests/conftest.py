"""
Shared fixtures and fakes for the CalmWeather tests.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def make_feature(alert_id, event="Tornado Warning", **props):
    """Build an api.weather.gov style GeoJSON feature."""
    properties = {
        "event": event,
        "areaDesc": "Jefferson, KY",
        "effective": "2026-05-15T19:15:00Z",
        "expires": "2026-05-15T20:00:00Z",
        "headline": f"{event} issued",
        "description": "A severe thunderstorm capable of producing a tornado was located nearby.",
        "severity": "Extreme",
    }
    properties.update(props)
    return {"id": alert_id, "type": "Feature", "properties": properties}


class FakeSource:
    """Stands in for NwsAlertSource; returns one queued feature list per call."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.regions = []
        self.closed = False
        self.on_fetch = None

    async def fetch_features(self, region):
        self.regions.append(region)
        if self.on_fetch is not None:
            self.on_fetch(len(self.regions))
        if self.responses:
            return self.responses.pop(0)
        return []

    async def aclose(self):
        self.closed = True


class FakeNotifier:
    def __init__(self, result=True):
        self.result = result
        self.spoken = []
        self.on_speak = None

    async def speak(self, text):
        self.spoken.append(text)
        if self.on_speak is not None:
            self.on_speak(text)
        return self.result


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def feature():
    return make_feature


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def ledger_path(tmp_path):
    return tmp_path / "data" / "spoken-alerts.json"
