"""
Shared fixtures for keyrelay tests
"""

from datetime import datetime, timezone, timedelta
from typing import List, Optional

import pytest

from keyrelay.core.errors import TransportFailure
from keyrelay.core.key_pool import KeyPool
from keyrelay.core.rotation import RotationController
from keyrelay.models.data_classes import UpstreamResponse
from keyrelay.utils.activity_log import ActivityLog


class ManualClock:
    """Clock that only moves when told to"""

    def __init__(self):
        self.now = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, ms: int):
        self.now += timedelta(milliseconds=ms)


class FakeUpstream:
    """Scripted stand-in for UpstreamClient.

    Each entry in ``script`` is either a status code, an UpstreamResponse,
    or an Exception instance to raise. Once the script runs out, every
    call returns 200.
    """

    def __init__(self, script: Optional[List] = None):
        self.script = list(script or [])
        self.calls = []

    async def post_chat_completion(self, api_key, payload):
        self.calls.append((api_key, payload))
        step = self.script.pop(0) if self.script else 200

        if isinstance(step, Exception):
            raise step
        if isinstance(step, UpstreamResponse):
            return step
        return UpstreamResponse(
            status=step,
            content_type="application/json",
            body=b'{"id": "cmpl-1", "choices": []}'
        )


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def keys():
    return ["sk-or-key-aaaa1111", "sk-or-key-bbbb2222", "sk-or-key-cccc3333"]


@pytest.fixture
def pool(keys, clock):
    return KeyPool(keys, clock=clock)


@pytest.fixture
def rotation(pool):
    return RotationController(pool)


@pytest.fixture
def activity_log():
    return ActivityLog(capacity=500)


@pytest.fixture
def transport_error():
    return TransportFailure("connection refused")


@pytest.fixture
def make_upstream():
    return FakeUpstream


@pytest.fixture
def make_response():
    def factory(status: int, body: bytes = b"{}", content_type: str = "application/json",
                retry_after: Optional[str] = None) -> UpstreamResponse:
        return UpstreamResponse(status=status, content_type=content_type,
                                body=body, retry_after=retry_after)
    return factory
