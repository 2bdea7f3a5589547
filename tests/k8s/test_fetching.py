import aiohttp.web
import pytest

from hellok8s._cogs.clients.errors import APIError
from hellok8s._cogs.clients.fetching import list_objs, read_obj


async def test_reading_an_existing_object(
        resp_mocker, aresponses, hostname, resource, settings, api_context, logger):

    body = {'metadata': {'name': 'name1', 'resourceVersion': '123'}}
    get_mock = resp_mocker(return_value=aiohttp.web.json_response(body))
    aresponses.add(hostname, resource.get_url(namespace='ns', name='name1'), 'get', get_mock)

    result = await read_obj(settings=settings, context=api_context, logger=logger,
                            resource=resource, namespace='ns', name='name1')

    assert result == body
    assert get_mock.called
    assert get_mock.call_count == 1


async def test_reading_an_absent_object(
        resp_mocker, aresponses, hostname, resource, settings, api_context, logger):

    get_mock = resp_mocker(return_value=aresponses.Response(status=404))
    aresponses.add(hostname, resource.get_url(namespace='ns', name='name1'), 'get', get_mock)

    result = await read_obj(settings=settings, context=api_context, logger=logger,
                            resource=resource, namespace='ns', name='name1')

    assert result is None
    assert get_mock.called


@pytest.mark.parametrize('status', [400, 401, 403, 500, 666])
async def test_reading_raises_api_errors(
        resp_mocker, aresponses, hostname, resource, settings, api_context, logger, status):

    get_mock = resp_mocker(return_value=aresponses.Response(status=status))
    aresponses.add(hostname, resource.get_url(namespace='ns', name='name1'), 'get', get_mock)

    with pytest.raises(APIError) as e:
        await read_obj(settings=settings, context=api_context, logger=logger,
                       resource=resource, namespace='ns', name='name1')
    assert e.value.status == status


@pytest.mark.parametrize('namespace', ['ns', None], ids=['namespaced', 'clusterwide'])
async def test_listing_works(
        resp_mocker, aresponses, hostname, resource, settings, api_context, logger, namespace):

    result = {'kind': 'HelloList',
              'apiVersion': 'hello.heikoseeberger.de/v0',
              'metadata': {'resourceVersion': '123'},
              'items': [{'metadata': {'name': 'a'}},
                        {'metadata': {'name': 'b'}, 'kind': 'Other'}]}
    list_mock = resp_mocker(return_value=aiohttp.web.json_response(result))
    aresponses.add(hostname, resource.get_url(namespace=namespace), 'get', list_mock)

    items, resource_version = await list_objs(settings=settings, context=api_context,
                                              logger=logger, resource=resource,
                                              namespace=namespace)

    assert resource_version == '123'
    assert items == [
        {'metadata': {'name': 'a'}, 'kind': 'Hello', 'apiVersion': 'hello.heikoseeberger.de/v0'},
        {'metadata': {'name': 'b'}, 'kind': 'Other', 'apiVersion': 'hello.heikoseeberger.de/v0'},
    ]
