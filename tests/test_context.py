import time

import pytest

from dependency_health.context import RequestContext
from dependency_health.errors import OperationCancelled


def test_background_context_uses_default_timeout():
    ctx = RequestContext.background()
    assert ctx.remaining() is None
    assert ctx.timeout(10.0) == 10.0


def test_request_timeout_clamped_to_deadline():
    ctx = RequestContext(timeout=0.5)
    assert 0 < ctx.timeout(10.0) <= 0.5
    assert ctx.timeout(0.1) == 0.1


def test_expired_deadline_raises():
    ctx = RequestContext(timeout=0.01)
    time.sleep(0.02)
    with pytest.raises(OperationCancelled):
        ctx.timeout(10.0)


def test_cancel_stops_further_requests():
    ctx = RequestContext(timeout=60)
    ctx.timeout(10.0)

    ctx.cancel()

    assert ctx.cancelled
    with pytest.raises(OperationCancelled):
        ctx.check()
