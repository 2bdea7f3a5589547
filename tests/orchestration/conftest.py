import asyncio

import pytest

from hellok8s._cogs.structs.credentials import ConnectionInfo


@pytest.fixture()
def connection():
    return ConnectionInfo(server='https://fake-host')


@pytest.fixture()
def register_crd(mocker):
    return mocker.patch('hellok8s.hellos.register_crd')


@pytest.fixture()
def watcher(mocker):
    """ A watcher which does nothing until cancelled, as the real one in a quiet cluster. """
    async def watch_forever(**_):
        await asyncio.Event().wait()

    return mocker.patch('hellok8s._core.reactor.queueing.watcher', side_effect=watch_forever)


@pytest.fixture()
def login(mocker, connection):
    return mocker.patch('hellok8s._core.intents.piggybacking.login', return_value=connection)
