"""
The outcomes of the reconciliation attempts: what to do next with an object.

Every attempt ends with exactly one of the two actions:

* `RequeueAfter` -- re-check the object after a delay, even if nothing changes.
* `AwaitNextChange` -- do nothing until the object is changed in the cluster.

A real change of the object always triggers a new attempt immediately,
regardless of the action -- it supersedes any scheduled requeueing.

Failed attempts are converted to actions too -- by the error policy:
nothing is ever dropped permanently, but failures are not retried
in a tight loop either.
"""
import dataclasses
from typing import Literal

from hellok8s._cogs.configs import configuration
from hellok8s._cogs.helpers import typedefs
from hellok8s._cogs.structs import bodies


@dataclasses.dataclass(frozen=True)
class RequeueAfter:
    delay: float  # seconds


@dataclasses.dataclass(frozen=True)
class AwaitNextChange:
    pass


Action = RequeueAfter | AwaitNextChange


@dataclasses.dataclass(frozen=True)
class Outcome:
    """
    A record of a single attempt, as exposed to the logs.
    """
    identity: bodies.ObjectKey
    outcome: Literal['success', 'failure']
    action: Action

    def as_extra(self) -> dict[str, object]:
        namespace, name = self.identity
        match self.action:
            case RequeueAfter(delay=delay):
                action = f'requeue-after:{delay:g}s'
            case AwaitNextChange():
                action = 'await-change'
            case _:
                raise TypeError(f"Unsupported action: {self.action!r}")
        return dict(
            identity=f'{namespace}/{name}' if namespace else name,
            outcome=self.outcome,
            action=action,
        )


def error_policy(
        error: BaseException,
        *,
        settings: configuration.OperatorSettings,
        logger: typedefs.Logger,
) -> Action:
    """
    Map any failure to a requeueing after the fixed error interval.

    All error kinds are treated the same: there is no retry budget and no
    exponential backoff. The staleness is bounded, not the number of retries.
    """
    delay = settings.reconciling.requeue_error_after
    logger.error(f"Reconciliation has failed; retrying in {delay:g}s: {error!r}",
                 exc_info=error)
    return RequeueAfter(delay)
