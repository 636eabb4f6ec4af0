"""Shared fakes and fixtures for the test suite.

Real screens, microphones and network peers are replaced by small fakes that
record what the code under test did with them.
"""

from typing import Any, Callable, Dict, List, Optional

import pytest

from config import Config


class FakeResponse:
    def __init__(self, status_code: int = 200, json_body: Any = None, text: str = "", reason: str = "OK"):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self.reason = reason
        self._json_body = json_body
        self.text = text

    def json(self):
        if self._json_body is None:
            raise ValueError("No JSON body")
        return self._json_body


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDisplay:
    def __init__(self, calls: Optional[List[str]] = None):
        self.calls = calls if calls is not None else []
        self.grabs = 0
        self.is_live = True

    def grab_jpeg_base64(self, quality: int = 70) -> str:
        self.grabs += 1
        return "ZmFrZS1qcGVn"

    def stop(self) -> None:
        self.is_live = False


class FakeBroker:
    def __init__(self, calls: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.calls = calls if calls is not None else []
        self.error = error

    def create_session(self) -> str:
        self.calls.append("credential")
        if self.error is not None:
            raise self.error
        return "ek_test_123"


class FakeTransport:
    """Opens its channel as soon as connect() completes."""

    def __init__(
        self,
        on_open: Callable[[], None],
        on_message: Callable[[str], None],
        calls: Optional[List[str]] = None,
        error: Optional[Exception] = None,
    ):
        self.on_open = on_open
        self.on_message = on_message
        self.calls = calls if calls is not None else []
        self.error = error
        self.sent: List[Dict[str, Any]] = []
        self.ephemeral_key: Optional[str] = None
        self.is_open = False
        self.closed = False

    async def connect(self, ephemeral_key: str) -> None:
        self.calls.append("connect")
        self.ephemeral_key = ephemeral_key
        if self.error is not None:
            raise self.error
        self.is_open = True
        self.on_open()

    def send(self, event: Dict[str, Any]) -> None:
        if not self.is_open:
            raise RuntimeError("Data channel is not open")
        self.sent.append(event)

    async def close(self) -> None:
        self.is_open = False
        self.closed = True

    def sent_types(self) -> List[str]:
        return [event["type"] for event in self.sent]


@pytest.fixture
def config() -> Config:
    cfg = Config()
    cfg.capture_fps = 0.5  # slow enough that the timer never fires during a test
    cfg.single_flight = False
    return cfg


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
