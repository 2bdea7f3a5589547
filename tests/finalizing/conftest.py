from unittest.mock import AsyncMock

import pytest

from hellok8s._core.actions.outcomes import RequeueAfter


@pytest.fixture()
def patch_obj(mocker):
    return mocker.patch('hellok8s._cogs.clients.patching.patch_obj')


@pytest.fixture()
def read_obj(mocker):
    return mocker.patch('hellok8s._cogs.clients.fetching.read_obj')


@pytest.fixture()
def callback():
    return AsyncMock(return_value=RequeueAfter(60))


@pytest.fixture()
def live_body():
    return {'metadata': {'namespace': 'ns', 'name': 'name1', 'resourceVersion': '1'}}


@pytest.fixture()
def guarded_body(live_body):
    live_body['metadata']['finalizers'] = ['fin']
    return live_body


@pytest.fixture()
def deleted_body(guarded_body):
    guarded_body['metadata']['deletionTimestamp'] = '2024-01-01T00:00:00Z'
    guarded_body['metadata']['finalizers'] = ['other', 'fin']
    return guarded_body
