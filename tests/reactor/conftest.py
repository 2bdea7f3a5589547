import asyncio
from unittest.mock import AsyncMock

import pytest

from hellok8s._core.actions.outcomes import AwaitNextChange


@pytest.fixture(autouse=True)
def _fast_queueing(settings):
    settings.queueing.idle_timeout = 0.1
    settings.queueing.exit_timeout = 1.0


@pytest.fixture()
def processor():
    """ A mock for processor -- to be checked if the processing has happened. """
    return AsyncMock(return_value=AwaitNextChange())


@pytest.fixture()
def worker_mock(mocker):
    """ Prevent the queue consumption, so that the queues could be checked. """
    return mocker.patch('hellok8s._core.reactor.queueing.worker')


@pytest.fixture()
def stream(mocker):
    """
    A finite watch-stream with the events fed by the test.

    Numbers in the feed are the pauses (in seconds) between the events,
    so that the workers could process the events before the stream ends.
    """
    feed = []

    async def infinite_watch(**_):
        for item in feed:
            if isinstance(item, (int, float)):
                await asyncio.sleep(item)
            else:
                yield item

    mocker.patch('hellok8s._cogs.clients.watching.infinite_watch', new=infinite_watch)
    return feed
