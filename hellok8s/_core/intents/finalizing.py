"""
The finalizer guard: classification of the objects' states and the finalizers.

Every object's state (as seen in the watch-stream) is classified as one of:

* `Apply` -- the object is alive; its desired state must be applied.
  Before that, the finalizer is added, so that the object cannot disappear
  before the cleanup is done.
* `Cleanup` -- the object is being deleted, and our finalizer is still there.
  The cleanup is done, and only then the finalizer is removed,
  so that the object is eventually erased by the cluster.
* Nothing -- the object is being deleted, and our finalizer is already gone:
  the cleanup has been done already (or was never needed).

The finalizers are replaced as a whole list, so the patches are guarded by
the object's ``resourceVersion``: if anyone has changed the object since it
was read (e.g. another controller's finalizer, a deletion request),
the patch fails with a conflict. The object is then re-read and re-classified.
"""
import dataclasses

from typing_extensions import Protocol

from hellok8s._cogs.clients import errors, fetching, patching
from hellok8s._cogs.helpers import typedefs
from hellok8s._cogs.structs import bodies, finalizers, references
from hellok8s._core.actions import outcomes
from hellok8s._core.intents import contexts


class FinalizerConflictError(Exception):
    """ Raised when the finalizers cannot be patched due to constant conflicts. """


@dataclasses.dataclass(frozen=True)
class Apply:
    body: bodies.Body


@dataclasses.dataclass(frozen=True)
class Cleanup:
    body: bodies.Body


Event = Apply | Cleanup


class EventFn(Protocol):
    async def __call__(self, event: Event) -> outcomes.Action: ...


def classify(body: bodies.Body, finalizer: str) -> Event | None:
    if not finalizers.is_deletion_ongoing(body):
        return Apply(body)
    elif finalizers.is_deletion_blocked(body, finalizer):
        return Cleanup(body)
    else:
        return None


async def finalizer(
        *,
        resource: references.Resource,
        body: bodies.Body,
        name: str,
        context: contexts.OperatorContext,
        callback: EventFn,
        logger: typedefs.Logger,
) -> outcomes.Action:
    """
    Classify the object, maintain the finalizer, and invoke the callback.

    The callback is invoked at most once per call: if the finalizer patching
    conflicts, only the patching is retried (after re-reading the object),
    never the callback. The number of such retries is limited.
    """
    settings = context.settings
    attempts = settings.finalizing.conflict_attempts
    namespace, objname = bodies.require_identity(body)

    # Only for the cleanups: the cleanup is done, the finalizer is being removed.
    cleaned: outcomes.Action | None = None

    for attempt in range(1, attempts + 1):
        new_finalizers: list[str]
        match classify(body, name):
            case None:
                logger.debug("Deletion is ongoing, and the finalizer is absent. Nothing to do.")
                return cleaned if cleaned is not None else outcomes.AwaitNextChange()
            case Apply() as event if finalizers.is_deletion_blocked(body, name):
                return await callback(event)
            case Apply():
                logger.debug(f"Adding the finalizer {name!r} to block the deletion.")
                new_finalizers = finalizers.block_deletion(body, name)
            case Cleanup() as event:
                if cleaned is None:
                    cleaned = await callback(event)
                logger.debug(f"Removing the finalizer {name!r} to allow the deletion.")
                new_finalizers = finalizers.allow_deletion(body, name)
            case _:
                raise TypeError(f"Unsupported event for {body!r}")

        try:
            patched = await patching.patch_obj(
                settings=settings,
                context=context.api,
                resource=resource,
                namespace=namespace,
                name=objname,
                patch={'metadata': {
                    'resourceVersion': bodies.get_resource_version(body),
                    'finalizers': new_finalizers,
                }},
                logger=logger,
            )
        except errors.APIConflictError:
            logger.debug(f"The object has changed since last seen. Re-reading it "
                         f"for another finalizer patching attempt #{attempt}/{attempts}.")
            refreshed = await fetching.read_obj(
                settings=settings,
                context=context.api,
                resource=resource,
                namespace=namespace,
                name=objname,
                logger=logger,
            )
            if refreshed is None:
                logger.debug("The object is gone while being finalized. Nothing to do.")
                return cleaned if cleaned is not None else outcomes.AwaitNextChange()
            body = refreshed
            continue

        if patched is None:
            logger.debug("The object is gone while being finalized. Nothing to do.")
            return cleaned if cleaned is not None else outcomes.AwaitNextChange()
        elif cleaned is not None:
            return cleaned
        else:
            return await callback(Apply(patched))

    raise FinalizerConflictError(f"The finalizers could not be patched in {attempts} attempts "
                                 f"due to the constant changes of the object.")
