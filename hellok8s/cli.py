import dataclasses
import functools
import logging
from collections.abc import Callable, Collection
from typing import Any

import click
import yaml

from hellok8s import hellos
from hellok8s._cogs.aiokits import aioadapters
from hellok8s._cogs.configs import configuration, loading
from hellok8s._cogs.structs import credentials
from hellok8s._core.actions import loggers
from hellok8s._core.reactor import running

logger = logging.getLogger(__name__)


@dataclasses.dataclass()
class CLIControls:
    """ Controls, which are impossible to pass via CLI (e.g. in tests). """
    ready_flag: aioadapters.Flag | None = None
    stop_flag: aioadapters.Flag | None = None
    settings: configuration.OperatorSettings | None = None
    connection: credentials.ConnectionInfo | None = None


class LogFormatParamType(click.Choice):

    def __init__(self) -> None:
        super().__init__(choices=[v.name.lower() for v in loggers.LogFormat])

    def convert(self, value: Any, param: Any, ctx: Any) -> loggers.LogFormat:
        if isinstance(value, loggers.LogFormat):
            return value
        name: str = super().convert(value, param, ctx)
        return loggers.LogFormat[name.upper()]


def logging_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to configure logging in all commands the same way."""
    @click.option('-v', '--verbose', is_flag=True)
    @click.option('-d', '--debug', is_flag=True)
    @click.option('-q', '--quiet', is_flag=True)
    @click.option('--log-format', type=LogFormatParamType(), default='full')
    @click.option('--log-refkey', type=str)
    @click.option('--log-prefix/--no-log-prefix', default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(verbose: bool, quiet: bool, debug: bool,
                log_format: loggers.LogFormat = loggers.LogFormat.FULL,
                log_prefix: bool | None = False,
                log_refkey: str | None = None,
                *args: Any, **kwargs: Any) -> Any:
        loggers.configure(debug=debug, verbose=verbose, quiet=quiet,
                          log_format=log_format, log_refkey=log_refkey, log_prefix=log_prefix)
        return fn(*args, **kwargs)

    return wrapper


def config_option(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to load the settings in all commands the same way."""
    @click.option('-c', '--config', 'config_path', type=click.Path(exists=True, dir_okay=False))
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(config_path: str | None, *args: Any, **kwargs: Any) -> Any:
        controls = click.get_current_context().ensure_object(CLIControls)
        try:
            settings = loading.load_settings(config_path, settings=controls.settings)
        except loading.ConfigurationError as e:
            raise click.UsageError(str(e)) from e
        return fn(*args, settings=settings, **kwargs)

    return wrapper


@click.version_option(prog_name='hellok8s')
@click.group(name='hellok8s', context_settings=dict(
    auto_envvar_prefix='HELLOK8S',
))
def main() -> None:
    pass


@main.command()
@logging_options
@config_option
@click.option('-A', '--all-namespaces', 'clusterwide', is_flag=True)
@click.option('-n', '--namespace', 'namespaces', multiple=True)
@click.make_pass_decorator(CLIControls, ensure=True)
def run(
        __controls: CLIControls,
        settings: configuration.OperatorSettings,
        namespaces: Collection[str],
        clusterwide: bool,
) -> None:
    """ Start an operator process and handle all the Hello objects. """
    if namespaces and clusterwide:
        raise click.UsageError("Either --namespace or --all-namespaces can be used, not both.")
    return running.run(
        settings=settings,
        namespaces=namespaces,
        clusterwide=clusterwide,
        connection=__controls.connection,
        stop_flag=__controls.stop_flag,
        ready_flag=__controls.ready_flag,
    )


@main.group()
def crd() -> None:
    """ Manage the custom resource definition of Hello. """


@crd.command('print')
def crd_print() -> None:
    """ Print the custom resource definition as YAML. """
    click.echo(yaml.safe_dump(hellos.build_crd(), sort_keys=False), nl=False)


@crd.command('register')
@logging_options
@config_option
@click.make_pass_decorator(CLIControls, ensure=True)
def crd_register(
        __controls: CLIControls,
        settings: configuration.OperatorSettings,
) -> None:
    """ Create or update the custom resource definition in the cluster. """
    running.execute(
        functools.partial(hellos.register_crd, logger=logger),
        settings=settings,
        connection=__controls.connection,
    )


@crd.command('delete')
@logging_options
@config_option
@click.make_pass_decorator(CLIControls, ensure=True)
def crd_delete(
        __controls: CLIControls,
        settings: configuration.OperatorSettings,
) -> None:
    """ Delete the custom resource definition (and all Hello objects) from the cluster. """
    running.execute(
        functools.partial(hellos.delete_crd, logger=logger),
        settings=settings,
        connection=__controls.connection,
    )
