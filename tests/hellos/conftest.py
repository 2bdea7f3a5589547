import pytest


@pytest.fixture(autouse=True)
def _prevent_retries_in_api_tests(no_retries):
    pass


@pytest.fixture()
def body():
    return {
        'apiVersion': 'hello.heikoseeberger.de/v0',
        'kind': 'Hello',
        'metadata': {'namespace': 'ns', 'name': 'hello1', 'resourceVersion': '1'},
        'spec': {'replicas': 2},
    }
