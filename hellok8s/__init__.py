"""
The main module for all the exported functions & classes.
"""
# isort: skip_file

# Unlike all other places, where we import other modules and refer
# the functions via the modules, this is the operator's top-level interface,
# as it is seen by the embedding applications and the tests.

from hellok8s._cogs.configs.configuration import (
    OperatorSettings,
    ReconcilingSettings,
    FinalizingSettings,
    QueueingSettings,
    WatchingSettings,
    NetworkingSettings,
)
from hellok8s._cogs.configs.loading import (
    ConfigurationError,
    load_settings,
)
from hellok8s._cogs.helpers.typedefs import (
    Logger,
)
from hellok8s._cogs.helpers.versions import (
    version as __version__,
)
from hellok8s._cogs.structs.bodies import (
    RawEvent,
    RawBody,
    Body,
    ObjectKey,
    MissingIdentityError,
)
from hellok8s._cogs.structs.credentials import (
    LoginError,
    ConnectionInfo,
)
from hellok8s._cogs.clients.errors import (
    APIError,
    APIClientError,
    APIServerError,
    APIUnauthorizedError,
    APIForbiddenError,
    APINotFoundError,
    APIConflictError,
    APITooManyRequestsError,
)
from hellok8s._core.actions.loggers import (
    LogFormat,
    ObjectLogger,
    configure,
)
from hellok8s._core.actions.outcomes import (
    Action,
    RequeueAfter,
    AwaitNextChange,
    error_policy,
)
from hellok8s._core.intents.finalizing import (
    Apply,
    Cleanup,
    Event,
    FinalizerConflictError,
)
from hellok8s._core.intents.piggybacking import (
    login,
    login_with_kubeconfig,
    login_with_service_account,
)
from hellok8s._core.reactor.running import (
    run,
    operator,
)
from hellok8s.hellos import (
    build_crd,
    build_deployment,
    register_crd,
    delete_crd,
)

__all__ = [
    'OperatorSettings',
    'ReconcilingSettings',
    'FinalizingSettings',
    'QueueingSettings',
    'WatchingSettings',
    'NetworkingSettings',
    'ConfigurationError',
    'load_settings',
    'Logger',
    'RawEvent',
    'RawBody',
    'Body',
    'ObjectKey',
    'MissingIdentityError',
    'LoginError',
    'ConnectionInfo',
    'APIError',
    'APIClientError',
    'APIServerError',
    'APIUnauthorizedError',
    'APIForbiddenError',
    'APINotFoundError',
    'APIConflictError',
    'APITooManyRequestsError',
    'LogFormat',
    'ObjectLogger',
    'configure',
    'Action',
    'RequeueAfter',
    'AwaitNextChange',
    'error_policy',
    'Apply',
    'Cleanup',
    'Event',
    'FinalizerConflictError',
    'login',
    'login_with_kubeconfig',
    'login_with_service_account',
    'run',
    'operator',
    'build_crd',
    'build_deployment',
    'register_crd',
    'delete_crd',
]
