import logging

import aiohttp.web
import pytest

from hellok8s._cogs.clients.errors import APIError
from hellok8s._cogs.structs.references import DEPLOYMENTS
from hellok8s._core.actions.outcomes import AwaitNextChange, RequeueAfter
from hellok8s._core.intents.finalizing import Apply, Cleanup
from hellok8s.hellos import build_deployment, cleanup, dispatch, reconcile


async def test_created_deployment_is_requeued(
        resp_mocker, aresponses, hostname, context, logger, body, caplog, assert_logs):
    caplog.set_level(logging.INFO)
    post_mock = resp_mocker(return_value=aiohttp.web.json_response({}, status=201))
    aresponses.add(hostname, DEPLOYMENTS.get_url(namespace='ns'), 'post', post_mock)

    action = await reconcile(body, context=context, logger=logger)

    assert action == RequeueAfter(60)
    assert post_mock.called
    assert post_mock.payloads == [build_deployment(body)]
    assert_logs([r"The deployment is created."])


async def test_requeue_interval_comes_from_settings(
        resp_mocker, aresponses, hostname, context, logger, body):
    context.settings.reconciling.requeue_reconcile_after = 123
    post_mock = resp_mocker(return_value=aiohttp.web.json_response({}, status=201))
    aresponses.add(hostname, DEPLOYMENTS.get_url(namespace='ns'), 'post', post_mock)

    action = await reconcile(body, context=context, logger=logger)

    assert action == RequeueAfter(123)


async def test_existing_deployment_is_left_as_is(
        resp_mocker, aresponses, hostname, context, logger, body):
    status = {'kind': 'Status', 'code': 409, 'reason': 'AlreadyExists'}
    post_mock = resp_mocker(return_value=aiohttp.web.json_response(status, status=409))
    aresponses.add(hostname, DEPLOYMENTS.get_url(namespace='ns'), 'post', post_mock)

    action = await reconcile(body, context=context, logger=logger)

    assert action == AwaitNextChange()
    assert post_mock.call_count == 1


@pytest.mark.parametrize('status', [400, 403, 500])
async def test_other_creation_errors_are_escalated(
        resp_mocker, aresponses, hostname, context, logger, body, status):
    post_mock = resp_mocker(return_value=aresponses.Response(status=status))
    aresponses.add(hostname, DEPLOYMENTS.get_url(namespace='ns'), 'post', post_mock)

    with pytest.raises(APIError) as e:
        await reconcile(body, context=context, logger=logger)
    assert e.value.status == status


@pytest.mark.parametrize('status', [200, 202, 404])
async def test_cleanup_awaits_next_change(
        resp_mocker, aresponses, hostname, context, logger, body, status):
    delete_mock = resp_mocker(return_value=aiohttp.web.json_response({}, status=status))
    aresponses.add(hostname, DEPLOYMENTS.get_url(namespace='ns', name='hello1'), 'delete',
                   delete_mock)

    action = await cleanup(body, context=context, logger=logger)

    assert action == AwaitNextChange()
    assert delete_mock.call_count == 1
    assert delete_mock.payloads == [{'propagationPolicy': 'Background'}]


@pytest.mark.parametrize('status', [403, 500])
async def test_cleanup_errors_are_escalated(
        resp_mocker, aresponses, hostname, context, logger, body, status):
    delete_mock = resp_mocker(return_value=aresponses.Response(status=status))
    aresponses.add(hostname, DEPLOYMENTS.get_url(namespace='ns', name='hello1'), 'delete',
                   delete_mock)

    with pytest.raises(APIError) as e:
        await cleanup(body, context=context, logger=logger)
    assert e.value.status == status


async def test_dispatching_applies(mocker, context, logger, body):
    reconcile_mock = mocker.patch('hellok8s.hellos.reconcile', return_value=RequeueAfter(1))
    cleanup_mock = mocker.patch('hellok8s.hellos.cleanup')

    action = await dispatch(Apply(body), context=context, logger=logger)

    assert action == RequeueAfter(1)
    assert reconcile_mock.call_count == 1
    assert reconcile_mock.call_args.args == (body,)
    assert not cleanup_mock.called


async def test_dispatching_cleanups(mocker, context, logger, body):
    reconcile_mock = mocker.patch('hellok8s.hellos.reconcile')
    cleanup_mock = mocker.patch('hellok8s.hellos.cleanup', return_value=AwaitNextChange())

    action = await dispatch(Cleanup(body), context=context, logger=logger)

    assert action == AwaitNextChange()
    assert cleanup_mock.call_count == 1
    assert cleanup_mock.call_args.args == (body,)
    assert not reconcile_mock.called


async def test_dispatching_unknown_events(context, logger):
    with pytest.raises(TypeError):
        await dispatch(object(), context=context, logger=logger)
