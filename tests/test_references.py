import pytest

from hellok8s._cogs.structs.references import CRDS, DEPLOYMENTS, HELLOS, Resource


def test_known_resources():
    assert HELLOS.api_version == 'hello.heikoseeberger.de/v0'
    assert HELLOS.namespaced
    assert DEPLOYMENTS.api_version == 'apps/v1'
    assert CRDS.api_version == 'apiextensions.k8s.io/v1'
    assert not CRDS.namespaced


def test_core_api_version():
    assert Resource('', 'v1', 'pods').api_version == 'v1'


def test_naming():
    assert str(HELLOS) == 'hellos.v0.hello.heikoseeberger.de'


@pytest.mark.parametrize('kwargs, expected', [
    (dict(), '/apis/hello.heikoseeberger.de/v0/hellos'),
    (dict(namespace='ns'), '/apis/hello.heikoseeberger.de/v0/namespaces/ns/hellos'),
    (dict(namespace='ns', name='n'), '/apis/hello.heikoseeberger.de/v0/namespaces/ns/hellos/n'),
    (dict(namespace='ns', params={'watch': 'true', 'resourceVersion': '1'}),
     '/apis/hello.heikoseeberger.de/v0/namespaces/ns/hellos?watch=true&resourceVersion=1'),
    (dict(namespace='ns', server='https://host/'),
     'https://host/apis/hello.heikoseeberger.de/v0/namespaces/ns/hellos'),
])
def test_urls_of_namespaced_resources(kwargs, expected):
    assert HELLOS.get_url(**kwargs) == expected


def test_urls_of_core_and_cluster_resources():
    assert Resource('', 'v1', 'pods').get_url(namespace='ns') == '/api/v1/namespaces/ns/pods'
    assert CRDS.get_url(name='x') == '/apis/apiextensions.k8s.io/v1/customresourcedefinitions/x'


def test_namespaced_names_require_namespaces():
    with pytest.raises(ValueError):
        HELLOS.get_url(name='n')


def test_cluster_resources_reject_namespaces():
    with pytest.raises(ValueError):
        CRDS.get_url(namespace='ns')


def test_subresources_require_names():
    with pytest.raises(ValueError):
        HELLOS.get_url(namespace='ns', subresource='status')
