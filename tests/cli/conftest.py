import functools
import os
import logging

import click.testing
import pytest

from hellok8s.cli import main


@pytest.fixture(autouse=True)
def _restore_root_logger():
    logger = logging.getLogger()
    handlers = list(logger.handlers)
    level = logger.level
    try:
        yield
    finally:
        logger.handlers[:] = handlers
        logger.setLevel(level)


@pytest.fixture(autouse=True)
def _no_config_variables(monkeypatch):
    for name in list(os.environ):
        if name.startswith('HELLOK8S'):
            monkeypatch.delenv(name)


@pytest.fixture()
def runner():
    runner = click.testing.CliRunner()
    return runner


@pytest.fixture()
def invoke(runner):
    return functools.partial(runner.invoke, main)


@pytest.fixture()
def real_run(mocker):
    return mocker.patch('hellok8s._core.reactor.running.run')


@pytest.fixture()
def real_execute(mocker):
    return mocker.patch('hellok8s._core.reactor.running.execute')
