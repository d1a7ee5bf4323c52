import asyncio
import logging

import pytest

from be_my_guide.errors import StoreError
from be_my_guide.services.compensation import compensate


async def undo(error=None):
    if error is not None:
        raise error
    return "undone"


@pytest.mark.asyncio
async def test_compensate_awaits_the_action(caplog):
    with caplog.at_level(logging.WARNING, logger="be_my_guide"):
        await compensate(undo(), "delete day 1")

    assert "Compensating: delete day 1" in caplog.text
    assert "Compensation failed" not in caplog.text


@pytest.mark.parametrize(
    "error", [StoreError("delete failed"), RuntimeError("driver blew up"), asyncio.TimeoutError()]
)
@pytest.mark.asyncio
async def test_failed_compensation_is_logged_not_raised(caplog, error):
    with caplog.at_level(logging.ERROR, logger="be_my_guide"):
        await compensate(undo(error), "delete day 1")

    assert "Compensation failed (delete day 1)" in caplog.text
    assert caplog.records[-1].exc_info is not None
