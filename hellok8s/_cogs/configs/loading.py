"""
Loading the settings from a YAML file and the environment variables.

The file mirrors the settings' structure, with kebab-case names::

    reconciling:
      requeue-reconcile-after: 10s
      requeue-error-after: 1m
    queueing:
      worker-limit: 10

Every setting can be overridden by an environment variable named
``HELLOK8S__<SECTION>__<KEY>`` in upper snake case, for example
``HELLOK8S__RECONCILING__REQUEUE_ERROR_AFTER=2m``. The values of
the environment variables are parsed as YAML scalars.
"""
import dataclasses
import os
import typing
from collections.abc import Iterable, Mapping
from typing import Any

import yaml

from hellok8s._cogs.configs import configuration
from hellok8s._cogs.helpers import durations

ENV_PREFIX = 'HELLOK8S__'

# Which fields are durations (parsed from human-readable strings), per section.
DURATIONS: Mapping[str, frozenset[str]] = {
    'reconciling': frozenset({'requeue_reconcile_after', 'requeue_error_after'}),
    'queueing': frozenset({'idle_timeout', 'exit_timeout'}),
    'watching': frozenset({'server_timeout', 'reconnect_backoff'}),
    'networking': frozenset({'request_timeout', 'connect_timeout'}),
}


class ConfigurationError(Exception):
    """ Raised when the configuration is malformed or inconsistent. """


def load_settings(
        path: str | os.PathLike[str] | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        settings: configuration.OperatorSettings | None = None,
) -> configuration.OperatorSettings:
    """
    Build the settings from the defaults, the file (if any), and the env vars.
    """
    settings = settings if settings is not None else configuration.OperatorSettings()
    environ = environ if environ is not None else os.environ

    if path is not None:
        with open(path, encoding='utf-8') as f:
            data = yaml.safe_load(f.read()) or {}
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"The configuration must be a mapping, got: {data!r}")
        for section_name, values in data.items():
            if not isinstance(values, Mapping):
                raise ConfigurationError(f"The section {section_name!r} must be a mapping.")
            for key, value in values.items():
                _apply(settings, section_name, key, value)

    for env_name, env_value in environ.items():
        if env_name.startswith(ENV_PREFIX):
            section_name, _, key = env_name[len(ENV_PREFIX):].partition('__')
            if not section_name or not key:
                raise ConfigurationError(f"Malformed configuration variable: {env_name!r}")
            _apply(settings, section_name, key, yaml.safe_load(env_value))

    validate(settings)
    return settings


def validate(settings: configuration.OperatorSettings) -> None:
    reconciling = settings.reconciling
    if reconciling.requeue_error_after <= reconciling.requeue_reconcile_after:
        raise ConfigurationError(
            f"The error requeueing interval ({reconciling.requeue_error_after}s) must be "
            f"greater than the reconciliation interval ({reconciling.requeue_reconcile_after}s).")
    if settings.finalizing.conflict_attempts < 1:
        raise ConfigurationError("At least one finalizer patching attempt is needed.")
    if settings.queueing.worker_limit is not None and settings.queueing.worker_limit < 1:
        raise ConfigurationError("The worker limit must be positive or unset.")


def _normalize(name: str) -> str:
    return name.strip().lower().replace('-', '_')


def _apply(
        settings: configuration.OperatorSettings,
        section_name: str,
        key: str,
        value: Any,
) -> None:
    section_attr = _normalize(section_name)
    field_attr = _normalize(key)

    section_fields = {field.name for field in dataclasses.fields(settings)}
    if section_attr not in section_fields:
        raise ConfigurationError(f"Unknown configuration section: {section_name!r}")
    section = getattr(settings, section_attr)

    fields = {field.name: field for field in dataclasses.fields(section)}
    if field_attr not in fields:
        raise ConfigurationError(f"Unknown configuration key: {section_name}.{key}")

    # The field types are the real types here: no postponed annotations in the settings.
    field_types = typing.get_args(fields[field_attr].type) or (fields[field_attr].type,)
    if value is None:
        if type(None) not in field_types:
            raise ConfigurationError(f"The value of {section_name}.{key} cannot be null.")
    elif field_attr in DURATIONS.get(section_attr, frozenset()):
        try:
            value = durations.parse_duration(value)
        except (ValueError, TypeError, AttributeError) as e:
            raise ConfigurationError(f"Invalid duration in {section_name}.{key}: {e}") from e
    elif field_attr == 'error_backoffs':
        if not isinstance(value, Iterable) or isinstance(value, (str, bytes)):
            value = [value]
        try:
            value = tuple(durations.parse_duration(item) for item in value)
        except (ValueError, TypeError, AttributeError) as e:
            raise ConfigurationError(f"Invalid durations in {section_name}.{key}: {e}") from e
    elif int in field_types:
        # YAML gives ints for "3", floats for "2.5", and bools for "yes"; bools are ints in Python.
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(f"Invalid integer in {section_name}.{key}: {value!r}")
    elif str in field_types:
        if not isinstance(value, str) or not value.strip():
            raise ConfigurationError(f"Invalid string in {section_name}.{key}: {value!r}")

    setattr(section, field_attr, value)
