"""
All configuration flags, options, settings to fine-tune the operator.

All settings are grouped semantically just for convenience
(instead of a flat mega-object with all the values in it).

Only two of them affect the reconciliation itself: the requeue intervals
after a successful and after a failed attempt. All others tune the ambient
machinery: the queueing, the watching, the networking.

All durations are in seconds. In the configuration files, they can also be
human-readable (see :mod:`hellok8s._cogs.helpers.durations`).
"""
import dataclasses
from collections.abc import Iterable

DEFAULT_FINALIZER = 'hellos.hello.heikoseeberger.de'


@dataclasses.dataclass
class ReconcilingSettings:

    requeue_reconcile_after: float = 60
    """
    How soon an object is re-checked after a successful creation of its
    deployment. Objects with nothing changed wait for the next change instead.
    """

    requeue_error_after: float = 5 * 60
    """
    How soon an object is retried after a failed attempt of any kind.

    It is intentionally bigger than the regular reconciliation interval:
    the steady-state polling stays cheap, while the failure recovery
    remains bounded. There is no exponential backoff: every error
    resurfaces at this fixed interval until it is gone.
    """


@dataclasses.dataclass
class FinalizingSettings:

    name: str = DEFAULT_FINALIZER
    """
    A finalizer to block the objects' deletion until the cleanup is done.
    """

    conflict_attempts: int = 5
    """
    How many times the finalizer patching is retried on version conflicts
    (i.e. when the object was modified by someone else since it was read).

    Every retry re-reads the object and re-classifies it. Once exhausted,
    the attempt fails and goes to the error requeueing as any other error.
    """


@dataclasses.dataclass
class QueueingSettings:

    worker_limit: int | None = None
    """
    How many objects can be reconciled simultaneously (across all objects).
    If ``None``, there is no limit (as many as there are objects).

    A single object is never reconciled concurrently with itself.
    """

    idle_timeout: float = 5.0
    """
    How soon an idle worker is exited and garbage-collected if no events arrive
    and no requeueing is scheduled for its object.
    """

    exit_timeout: float = 2.0
    """
    How soon a worker is cancelled when the parent watcher is going to exit.
    This is the time given to the worker to finish the current attempt.
    """


@dataclasses.dataclass
class WatchingSettings:

    server_timeout: float | None = None
    """
    The maximum duration of one streaming request.
    If ``None``, then obey the server-side timeouts (they seem to be random).
    """

    reconnect_backoff: float = 0.1
    """
    How long should a pause be between watch requests (to prevent API flooding).
    """


@dataclasses.dataclass
class NetworkingSettings:

    request_timeout: float | None = 5 * 60  # == aiohttp.client.DEFAULT_TIMEOUT
    """
    A timeout for the whole request, including the connection and reading.
    """

    connect_timeout: float | None = None
    """
    A timeout for establishing the connection.
    """

    error_backoffs: Iterable[float] = (1, 1, 2, 3, 5, 8, 13)
    """
    Backoff intervals in case of networking or server-side (5xx) errors.
    Once exhausted, the error is escalated to the caller.
    Client-side errors (4xx) are escalated immediately, never retried.

    To disable the retries, set it to ``[]`` or ``()``.
    """


@dataclasses.dataclass
class OperatorSettings:
    reconciling: ReconcilingSettings = dataclasses.field(default_factory=ReconcilingSettings)
    finalizing: FinalizingSettings = dataclasses.field(default_factory=FinalizingSettings)
    queueing: QueueingSettings = dataclasses.field(default_factory=QueueingSettings)
    watching: WatchingSettings = dataclasses.field(default_factory=WatchingSettings)
    networking: NetworkingSettings = dataclasses.field(default_factory=NetworkingSettings)
