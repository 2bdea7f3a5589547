"""
Kubernetes watching/streaming and the per-object queueing system.

The ``Hello`` resource is "watched" (as in ``kubectl get --watch``)
in a separate asyncio task in the never-ending loop: either cluster-wide,
or one task per served namespace.

The events for this resource (of all its objects) are then pushed
to the per-object queues, which are created and destroyed dynamically.
The per-object queues are created on demand.

Every object is identified by its namespace and name, and is handled
sequentially: never two attempts for the same object at the same time.
Other objects are handled in parallel in their own sequential tasks,
limited by a common semaphore if configured so.

The watch-events carry the full object states, so only the latest one
matters: the events accumulated while an attempt is running are collapsed,
and only the latest of them is processed afterwards.

The worker also owns the object's requeueing timer: if an attempt asks to
requeue, the last seen state is re-processed after the delay -- unless
a real change arrives earlier, which is processed immediately instead.

To prevent the memory leaks over the long run, the queues and the workers
of each object are destroyed if no new events arrive for some time
and no requeueing is scheduled.
"""
import asyncio
import contextlib
import enum
import logging
from collections.abc import MutableMapping
from typing import TYPE_CHECKING, NamedTuple

from typing_extensions import Protocol

from hellok8s._cogs.aiokits import aiotasks
from hellok8s._cogs.clients import watching
from hellok8s._cogs.configs import configuration
from hellok8s._cogs.structs import bodies, references
from hellok8s._core.actions import outcomes
from hellok8s._core.intents import contexts

logger = logging.getLogger(__name__)


class WatchStreamProcessor(Protocol):
    async def __call__(
            self,
            *,
            raw_event: bodies.RawEvent,
    ) -> outcomes.Action:
        ...


# An end-of-stream marker sent from the watcher to the workers.
# See: https://www.python.org/dev/peps/pep-0484/#support-for-singleton-types-in-unions
class EOS(enum.Enum):
    token = enum.auto()


if TYPE_CHECKING:
    WatchEventQueue = asyncio.Queue[bodies.RawEvent | EOS]
else:
    WatchEventQueue = asyncio.Queue


class Stream(NamedTuple):
    """ A single object's stream of watch-events. """
    backlog: WatchEventQueue


Streams = MutableMapping[bodies.ObjectKey, Stream]


def make_limiter(settings: configuration.OperatorSettings) -> asyncio.Semaphore | None:
    limit = settings.queueing.worker_limit
    return asyncio.Semaphore(limit) if limit is not None else None


async def watcher(
        *,
        namespace: bodies.Namespace,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        context: contexts.OperatorContext,
        processor: WatchStreamProcessor,
        limiter: asyncio.Semaphore | None = None,
) -> None:
    """
    The watcher watches for the resource events via the API, and spawns the workers for every object.

    All objects are done in parallel, but one single object is handled sequentially
    (otherwise, concurrent handling of multiple events of the same object could cause
    conflicting changes, e.g. duplicate deployments or lost finalizers).

    The watcher is generally a never-ending task (unless an error happens or it is cancelled).
    The workers, on the other hand, are limited approximately to the life-time of an object's
    activity: the events being processed, or the requeueing being scheduled.

    The limiter is shared across all watchers of the operator; if not passed,
    it is made from the settings for this watcher only.
    """
    if limiter is None:
        limiter = make_limiter(settings)

    # In case of a failed worker, stop the watcher, and escalate to the operator to stop it.
    watcher_task = asyncio.current_task()
    worker_error: BaseException | None = None
    def exception_handler(exc: BaseException) -> None:
        nonlocal worker_error, watcher_task
        if worker_error is None:
            worker_error = exc
            if watcher_task is not None:  # never happens, but is needed for type-checking.
                watcher_task.cancel()

    # All per-object workers are handled as fire-and-forget jobs via the scheduler,
    # and communicated via the per-object event queues.
    signaller = asyncio.Condition()
    scheduler = aiotasks.Scheduler(exception_handler=exception_handler)
    streams: Streams = {}

    try:
        # Either use the existing object's queue, or create a new one together with the per-object job.
        # "Fire-and-forget": we do not wait for the result; the job destroys itself when it is fully done.
        stream = watching.infinite_watch(
            settings=settings,
            context=context.api,
            resource=resource,
            namespace=namespace,
        )
        async for raw_event in stream:

            # Multiplex the raw events to per-object workers/queues. Start the new ones if needed.
            key = bodies.get_key(raw_event['object'])
            try:
                await streams[key].backlog.put(raw_event)
            except KeyError:

                # Start the worker, and feed it initially. Starting can be moderately slow.
                streams[key] = Stream(backlog=asyncio.Queue())
                await streams[key].backlog.put(raw_event)
                await scheduler.spawn(
                    name=f'worker for {key}',
                    coro=worker(
                        signaller=signaller,
                        processor=processor,
                        settings=settings,
                        limiter=limiter,
                        streams=streams,
                        key=key,
                    ))

    except asyncio.CancelledError:
        if worker_error is None:
            raise
        else:
            raise RuntimeError("Event processing has failed with an unrecoverable error. "
                               "The operator will stop to prevent damage.") from worker_error
    finally:
        # Allow the existing workers to finish gracefully before killing them.
        # Ensure the depletion is done even if the watcher is double-cancelled (e.g. in tests).
        depletion_task = asyncio.create_task(_wait_for_depletion(
            signaller=signaller,
            scheduler=scheduler,
            streams=streams,
            settings=settings,
        ))
        while not depletion_task.done():
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.shield(depletion_task)

        # Terminate all the fire-and-forget per-object jobs if they are still running.
        # Ensure the scheduler is closed even if the watcher is double-cancelled (e.g. in tests).
        closing_task = asyncio.create_task(scheduler.close())
        while not closing_task.done():
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.shield(closing_task)


async def worker(
        *,
        signaller: asyncio.Condition,
        settings: configuration.OperatorSettings,
        processor: WatchStreamProcessor,
        limiter: asyncio.Semaphore | None = None,
        streams: Streams,
        key: bodies.ObjectKey,
) -> None:
    """
    A single worker for a single object, each running in its own task.

    An object worker consumes the events from the object-dedicated queue filled
    by the watcher of the whole resource (i.e. of all objects of that kind)
    and invokes the processor for that specific object.

    Only the latest event is processed if several of them have arrived while
    the previous attempt was running: the events carry the full states,
    so the intermediate ones are of no interest.

    The processor's action defines what happens next: either the last seen
    state is re-processed after a delay (unless a new event arrives sooner),
    or the worker waits for a new event only.

    The worker is time-limited: it exits as soon as all the object's events
    have been processed, no requeueing is scheduled, and there are no new events
    for some time of idling (a few seconds -- to prevent exiting and recreating
    the workers too often). The watcher will spawn a new worker when (and if)
    new events arrive. Deleted objects never keep their workers running.
    """
    loop = asyncio.get_running_loop()
    backlog = streams[key].backlog
    latest: bodies.RawEvent | None = None  # the last seen state, for requeueing.
    requeue_time: float | None = None  # None if nothing is scheduled.
    try:
        while True:

            # Get an event ASAP if possible, but wait no longer than the requeueing is due.
            # Save memory by finishing the worker if the backlog is empty for some time.
            if requeue_time is None:
                timeout = settings.queueing.idle_timeout
            else:
                timeout = max(0.0, requeue_time - loop.time())
            raw_event: bodies.RawEvent | EOS
            try:
                raw_event = await asyncio.wait_for(backlog.get(), timeout=timeout)
            except asyncio.TimeoutError:
                # The timeout can happen while the queue is filled: depending on the order
                # in which the waiters are checked once control returns to asyncio.
                # IMPORTANT: There MUST be NO async/await-code between "break" and "finally",
                # so that the queue is not populated again.
                if not backlog.empty():
                    continue
                elif requeue_time is None or latest is None:
                    break
                else:
                    logger.debug(f"Requeueing the last seen state of {key}.")
                    raw_event = latest

            # Only the latest state matters. The end-of-stream marker supersedes all states.
            raw_event = _collapse(backlog, raw_event)

            # Exit gracefully and immediately on the end-of-stream marker sent by the watcher.
            if isinstance(raw_event, EOS):
                break  # out of the worker.

            # A real event supersedes the requeueing. A deleted object has nothing to requeue.
            latest = raw_event
            requeue_time = None
            if raw_event['type'] == 'DELETED':
                latest = None
                continue

            # Process the event. One object at a time here; few objects at a time across workers.
            limited: contextlib.AbstractAsyncContextManager[object]
            limited = limiter if limiter is not None else contextlib.nullcontext()
            async with limited:
                action = await processor(raw_event=raw_event)

            match action:
                case outcomes.RequeueAfter(delay=delay):
                    requeue_time = loop.time() + delay
                case outcomes.AwaitNextChange():
                    requeue_time = None
                case _:
                    raise TypeError(f"Unsupported action: {action!r}")

    except Exception:
        # Log the error for every worker: there can be several of them failing at the same time,
        # but only one will trigger the watcher's failure -- others could be lost if not logged.
        logger.exception(f"Event processing has failed with an unrecoverable error for {key}.")
        raise

    finally:
        # Whether an exception or a break or a success, notify the caller, and garbage-collect our queue.
        # The queue must not be left in the queue-cache without a corresponding job handling this queue.
        try:
            del streams[key]
        except KeyError:
            pass  # already absent

        # Notify the depletion routine about the changes in the workers'/streams' overall state.
        # * This should happen STRICTLY AFTER the removal from the streams[], and
        # * This should happen A MOMENT BEFORE the job ends (within the scheduler's close_timeout).
        async with signaller:
            signaller.notify_all()


def _collapse(
        backlog: WatchEventQueue,
        raw_event: bodies.RawEvent | EOS,
) -> bodies.RawEvent | EOS:
    """ Take all the queued events (without waiting), and keep only the latest one. """
    while not backlog.empty() and not isinstance(raw_event, EOS):
        raw_event = backlog.get_nowait()
    return raw_event


async def _wait_for_depletion(
        *,
        signaller: asyncio.Condition,
        scheduler: aiotasks.Scheduler,
        settings: configuration.OperatorSettings,
        streams: Streams,
) -> None:

    # Notify all the workers to finish now. Wake them up if they are waiting in the queue-getting.
    for stream in streams.values():
        await stream.backlog.put(EOS.token)

    # Wait for the queues to be depleted, but only if there are some workers running.
    # Continue with the tasks termination if the timeout is reached, no matter the queues.
    # NB: the scheduler is checked for a case of mocked workers; otherwise, the streams are enough.
    async with signaller:
        try:
            await asyncio.wait_for(
                signaller.wait_for(lambda: not streams or scheduler.empty()),
                timeout=settings.queueing.exit_timeout)
        except asyncio.TimeoutError:
            pass  # if not depleted as configured, proceed with what's left and let it fail

    # The last check if the termination is going to be graceful or not.
    if streams:
        logger.warning(f"Unprocessed streams left for {list(streams.keys())!r}.")
