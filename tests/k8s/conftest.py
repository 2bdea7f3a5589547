import pytest


@pytest.fixture(autouse=True)
def _prevent_retries_in_api_tests(no_retries):
    pass
