import asyncio
import functools
import logging
import signal
import threading
from collections.abc import Collection
from typing import Any

from typing_extensions import Protocol

from hellok8s import hellos
from hellok8s._cogs.aiokits import aioadapters, aiotasks
from hellok8s._cogs.clients import auth
from hellok8s._cogs.configs import configuration
from hellok8s._cogs.structs import bodies, credentials, references
from hellok8s._core.intents import contexts, piggybacking
from hellok8s._core.reactor import processing, queueing

logger = logging.getLogger(__name__)


def run(
        *,
        settings: configuration.OperatorSettings | None = None,
        clusterwide: bool = False,
        namespaces: Collection[str] = (),
        connection: credentials.ConnectionInfo | None = None,
        stop_flag: aioadapters.Flag | None = None,
        ready_flag: aioadapters.Flag | None = None,
) -> None:
    """
    Run the whole operator synchronously.

    This function should be used to run an operator in normal sync mode.
    """
    try:
        asyncio.run(operator(
            settings=settings,
            clusterwide=clusterwide,
            namespaces=namespaces,
            connection=connection,
            stop_flag=stop_flag,
            ready_flag=ready_flag,
        ))
    except asyncio.CancelledError:
        pass


async def operator(
        *,
        settings: configuration.OperatorSettings | None = None,
        clusterwide: bool = False,
        namespaces: Collection[str] = (),
        connection: credentials.ConnectionInfo | None = None,
        stop_flag: aioadapters.Flag | None = None,
        ready_flag: aioadapters.Flag | None = None,
) -> None:
    """
    Run the whole operator asynchronously.

    This function should be used to run an operator in an asyncio event-loop
    if the operator is orchestrated explicitly and manually.

    The operator logs in (unless the connection is given explicitly),
    registers the custom resource definition, and then watches the ``Hello``
    objects until stopped by a signal, by the stop-flag, or by a failure.
    """
    if clusterwide and namespaces:
        raise TypeError("The operator can be either cluster-wide or namespaced, not both.")

    settings = settings if settings is not None else configuration.OperatorSettings()
    connection = connection if connection is not None else piggybacking.login(logger=logger)
    async with auth.APIContext(connection) as api:
        context = contexts.OperatorContext(settings=settings, api=api)
        await hellos.register_crd(context=context, logger=logger)
        operator_tasks = await spawn_tasks(
            context=context,
            namespaces=list(dict.fromkeys(namespaces)) if namespaces else [None],
            stop_flag=stop_flag,
        )
        await aioadapters.raise_flag(ready_flag)
        await run_tasks(operator_tasks)


async def spawn_tasks(
        *,
        context: contexts.OperatorContext,
        namespaces: Collection[bodies.Namespace],
        stop_flag: aioadapters.Flag | None = None,
) -> Collection[aiotasks.Task]:
    """
    Spawn all the tasks needed to run the operator.

    There is one watcher per served namespace, or one for the whole cluster.
    The concurrency limit is shared by all of them.
    """
    loop = asyncio.get_running_loop()
    signal_flag: aiotasks.Future = asyncio.Future()
    limiter = queueing.make_limiter(context.settings)
    tasks: list[aiotasks.Task] = []

    tasks.append(aiotasks.create_guarded_task(
        name="stop-flag checker", finishable=True, logger=logger,
        coro=_stop_flag_checker(
            signal_flag=signal_flag,
            stop_flag=stop_flag)))

    for namespace in namespaces:
        where = f'in {namespace!r}' if namespace is not None else 'cluster-wide'
        tasks.append(aiotasks.create_guarded_task(
            name=f"watcher of {references.HELLOS} {where}", logger=logger,
            coro=queueing.watcher(
                namespace=namespace,
                settings=context.settings,
                resource=references.HELLOS,
                context=context,
                limiter=limiter,
                processor=functools.partial(processing.process_resource_event,
                                            context=context,
                                            resource=references.HELLOS))))

    # Ensure that all guarded tasks got control for a moment to enter the guard.
    await asyncio.sleep(0)

    # On Ctrl+C or pod termination, cancel all tasks gracefully.
    if threading.current_thread() is threading.main_thread():
        loop.add_signal_handler(signal.SIGINT, _set_once, signal_flag, signal.SIGINT)
        loop.add_signal_handler(signal.SIGTERM, _set_once, signal_flag, signal.SIGTERM)
    else:
        logger.warning("OS signals are ignored: running not in the main thread.")

    return tasks


async def run_tasks(
        root_tasks: Collection[aiotasks.Task],
) -> None:
    """
    Orchestrate the tasks and terminate them gracefully when needed.

    The root tasks are expected to run forever. Once any of them exits,
    the whole operator and all other root tasks should exit.
    """

    # Run the infinite tasks until one of them fails/exits (they never exit normally).
    # If the operator is cancelled, propagate the cancellation to all the sub-tasks.
    try:
        root_done, root_pending = await aiotasks.wait(root_tasks, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        await aiotasks.stop(root_tasks, title="Root", logger=logger)
        raise

    # If the operator is intact, but one of the root tasks has exited (successfully or not),
    # cancel all the remaining root tasks (the watchers deplete their workers on their own).
    root_cancelled, _ = await aiotasks.stop(root_pending, title="Root", logger=logger)

    # If succeeded or if cancellation is silenced, re-raise from failed tasks (if any).
    await aiotasks.reraise(root_done | root_cancelled)


def _set_once(flag: aiotasks.Future, value: signal.Signals) -> None:
    if not flag.done():  # e.g. on repeated Ctrl+C
        flag.set_result(value)


async def _stop_flag_checker(
        signal_flag: aiotasks.Future,
        stop_flag: aioadapters.Flag | None,
) -> None:
    """
    A top-level task for external stopping by setting a stop-flag. Once set,
    this task will exit, and thus all other top-level tasks will be cancelled.
    """

    # Selects the flags to be awaited (if set).
    flags: list[aiotasks.Future] = [signal_flag]
    if stop_flag is not None:
        flags.append(asyncio.create_task(aioadapters.wait_flag(stop_flag), name="stop-flag waiter"))

    # Wait until one of the stoppers is set/raised.
    try:
        done, pending = await asyncio.wait(flags, return_when=asyncio.FIRST_COMPLETED)
        future = done.pop()
        result = await future
    except asyncio.CancelledError:
        pass  # operator is stopping for any other reason
    else:
        if isinstance(result, signal.Signals):
            logger.info("Signal %s is received. Operator is stopping.", result.name)
        elif result is None:
            logger.info("Stop-flag is raised. Operator is stopping.")
        else:
            logger.info("Stop-flag is set to %r. Operator is stopping.", result)
    finally:
        for flag in flags[1:]:
            flag.cancel()


class ContextFn(Protocol):
    async def __call__(self, *, context: contexts.OperatorContext) -> Any: ...


def execute(
        fn: ContextFn,
        *,
        settings: configuration.OperatorSettings | None = None,
        connection: credentials.ConnectionInfo | None = None,
) -> Any:
    """
    Run a one-shot coroutine with the operator's context, but without the operator.

    Used by the CLI commands which only talk to the API and exit.
    """
    return asyncio.run(_execute(fn, settings=settings, connection=connection))


async def _execute(
        fn: ContextFn,
        *,
        settings: configuration.OperatorSettings | None = None,
        connection: credentials.ConnectionInfo | None = None,
) -> Any:
    settings = settings if settings is not None else configuration.OperatorSettings()
    connection = connection if connection is not None else piggybacking.login(logger=logger)
    async with auth.APIContext(connection) as api:
        context = contexts.OperatorContext(settings=settings, api=api)
        return await fn(context=context)
