"""
Flags to control the operator from the outside: to stop it, or to know it is ready.

The operator can be embedded into other applications (e.g. into the tests),
which run in other threads or event loops, so any of the common primitives
can be used as a flag: asyncio's or threading's, events or futures.
"""
import asyncio
import concurrent.futures
import threading
from typing import Any

from hellok8s._cogs.aiokits import aiotasks

Flag = aiotasks.Future | asyncio.Event | concurrent.futures.Future[Any] | threading.Event


async def wait_flag(flag: Flag | None) -> Any:
    """
    Wait for a flag to be raised. Never return if there is no flag at all.

    The futures deliver their results (e.g. a reason to stop), the events do not.
    """
    loop = asyncio.get_running_loop()
    match flag:
        case None:
            return await asyncio.Event().wait()
        case asyncio.Future():
            return await flag
        case asyncio.Event():
            return await flag.wait()
        case concurrent.futures.Future():
            return await loop.run_in_executor(None, flag.result)
        case threading.Event():
            return await loop.run_in_executor(None, flag.wait)
    raise TypeError(f"Unsupported type of a flag: {flag!r}")


async def raise_flag(flag: Flag | None) -> None:
    if flag is None:
        pass
    elif isinstance(flag, (asyncio.Event, threading.Event)):
        flag.set()
    elif isinstance(flag, (asyncio.Future, concurrent.futures.Future)):
        flag.set_result(None)
    else:
        raise TypeError(f"Unsupported type of a flag: {flag!r}")
