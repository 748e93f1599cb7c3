"""Shared fixtures for the tracker tests."""
import pytest

from services.status_writer import CancelToken


class ManualScheduler:
    """Scheduler that only runs callbacks when the test says so."""

    def __init__(self):
        self.scheduled = []

    def schedule(self, key, delay_seconds, fn):
        token = CancelToken()
        self.scheduled.append({"key": key, "delay": delay_seconds, "fn": fn, "token": token})
        return token

    def live(self):
        return [e for e in self.scheduled if not e["token"].cancelled]

    async def run_all(self):
        ran = 0
        for entry in self.live():
            entry["token"].cancelled = True
            await entry["fn"]()
            ran += 1
        return ran


@pytest.fixture
def scheduler():
    return ManualScheduler()
