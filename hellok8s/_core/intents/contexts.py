"""
The operator's context: everything the reconciliation needs besides the object.

The context is created once at startup, is immutable, and is passed
explicitly to every call down the stack -- from the watchers to the workers,
to the finalizer guard, to the reconciler, and to the API clients.
"""
import dataclasses

from hellok8s._cogs.clients import auth
from hellok8s._cogs.configs import configuration


@dataclasses.dataclass(frozen=True)
class OperatorContext:
    settings: configuration.OperatorSettings
    api: auth.APIContext
