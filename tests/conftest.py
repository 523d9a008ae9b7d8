from typing import Any, Dict

import aiohttp
import pytest

from tests.fakes import FakeSession


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def connection_error():
    return aiohttp.ClientConnectionError("connection refused")


TIP_FLOOR_SAMPLE = {
    "time": "2024-09-01T12:58:00Z",
    "landed_tips_25th_percentile": 0.000006,
    "landed_tips_50th_percentile": 0.00001,
    "landed_tips_75th_percentile": 0.0003,
    "landed_tips_95th_percentile": 0.0014,
    "landed_tips_99th_percentile": 0.01,
    "ema_landed_tips_50th_percentile": 0.0000095,
}


@pytest.fixture
def tip_floor_sample() -> Dict[str, Any]:
    return dict(TIP_FLOOR_SAMPLE)
