"""
Processing of a single object's state: one reconciliation attempt.

These functions are invoked from `hellok8s._core.reactor.queueing`,
strictly sequentially for every individual object, and concurrently
for different objects.

Every attempt ends with an action for the queueing: either to requeue
the object after some time, or to wait for its next change. The attempts
never fail: all errors are converted to the requeueing by the error policy,
so that a broken object does not break the operator.
"""
import functools

from hellok8s import hellos
from hellok8s._cogs.structs import bodies, references
from hellok8s._core.actions import loggers, outcomes
from hellok8s._core.intents import contexts, finalizing


async def process_resource_event(
        *,
        context: contexts.OperatorContext,
        resource: references.Resource,
        raw_event: bodies.RawEvent,
) -> outcomes.Action:
    """
    Handle a single object's watch-event (or a requeued last-seen state).

    The classification to the creation/update or the deletion is done
    by the finalizer guard, which then dispatches to the ``Hello`` logic.
    """
    body = raw_event['object']
    object_logger = loggers.ObjectLogger(body=body)
    identity = bodies.get_key(body)

    try:
        bodies.require_identity(body)
        action = await finalizing.finalizer(
            resource=resource,
            body=body,
            name=context.settings.finalizing.name,
            context=context,
            callback=functools.partial(hellos.dispatch, context=context, logger=object_logger),
            logger=object_logger,
        )
    except Exception as e:
        action = outcomes.error_policy(e, settings=context.settings, logger=object_logger)
        outcome = outcomes.Outcome(identity=identity, outcome='failure', action=action)
    else:
        outcome = outcomes.Outcome(identity=identity, outcome='success', action=action)

    object_logger.info("Reconciliation attempt is finished.", extra=outcome.as_extra())
    return action
