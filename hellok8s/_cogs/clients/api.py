"""
The raw HTTP layer of the Kubernetes API: one request with the retries.

All higher-level clients (creating, deleting, fetching, patching, watching)
go through here, so the networking settings and the error mapping
are applied to all of them uniformly.
"""
import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

import aiohttp

from hellok8s._cogs.clients import auth, errors
from hellok8s._cogs.configs import configuration
from hellok8s._cogs.helpers import typedefs


async def request(
        method: str,
        url: str,  # relative to the server/api root.
        *,
        settings: configuration.OperatorSettings,
        context: auth.APIContext,
        payload: object | None = None,
        content_type: str | None = None,
        streaming: bool = False,
        logger: typedefs.Logger,
) -> aiohttp.ClientResponse:
    """
    Make a request, retry on the networking & server-side errors, fail on others.

    The streaming requests (watches) are not limited in their total duration,
    only in connecting: they last as long as the server keeps them open.
    """
    if '://' not in url:
        url = context.server.rstrip('/') + '/' + url.lstrip('/')

    timeout = aiohttp.ClientTimeout(
        total=None if streaming else settings.networking.request_timeout,
        sock_connect=settings.networking.connect_timeout,
    )
    headers = {'Content-Type': content_type} if content_type is not None else None

    what = f"{method.upper()} {url}"
    backoffs = list(settings.networking.error_backoffs)
    attempts = len(backoffs) + 1
    for attempt, backoff in enumerate([*backoffs, None], start=1):
        try:
            if attempt > 1:
                logger.debug(f"Request attempt #{attempt}/{attempts}: {what}")

            response = await context.session.request(
                method=method,
                url=url,
                json=payload,
                headers=headers,
                timeout=timeout,
            )
            await errors.check_response(response)  # but do not parse it!

        except (aiohttp.ClientConnectionError, errors.APIServerError, asyncio.TimeoutError) as e:
            if backoff is None:  # i.e. the last or the only attempt.
                logger.error(f"Request attempt #{attempt}/{attempts} failed; escalating: {what} -> {e!r}")
                raise
            logger.error(f"Request attempt #{attempt}/{attempts} failed; will retry: {what} -> {e!r}")
            await asyncio.sleep(backoff)  # non-awakable! but still cancellable.
        else:
            if attempt > 1:
                logger.debug(f"Request attempt #{attempt}/{attempts} succeeded: {what}")
            return response

    raise RuntimeError("Broken retryable routine.")  # impossible, but needed for type-checking.


async def _parsed(method: str, url: str, **kwargs: Any) -> Any:
    response = await request(method, url, **kwargs)
    async with response:
        return await response.json()


async def get(
        url: str,
        *,
        settings: configuration.OperatorSettings,
        context: auth.APIContext,
        logger: typedefs.Logger,
) -> Any:
    return await _parsed('get', url, settings=settings, context=context, logger=logger)


async def post(
        url: str,
        *,
        settings: configuration.OperatorSettings,
        context: auth.APIContext,
        payload: object,
        logger: typedefs.Logger,
) -> Any:
    return await _parsed('post', url, payload=payload,
                         settings=settings, context=context, logger=logger)


async def patch(
        url: str,
        *,
        settings: configuration.OperatorSettings,
        context: auth.APIContext,
        payload: object,
        content_type: str,
        logger: typedefs.Logger,
) -> Any:
    return await _parsed('patch', url, payload=payload, content_type=content_type,
                         settings=settings, context=context, logger=logger)


async def delete(
        url: str,
        *,
        settings: configuration.OperatorSettings,
        context: auth.APIContext,
        payload: object | None = None,
        logger: typedefs.Logger,
) -> Any:
    return await _parsed('delete', url, payload=payload,
                         settings=settings, context=context, logger=logger)


async def stream(
        url: str,
        *,
        settings: configuration.OperatorSettings,
        context: auth.APIContext,
        logger: typedefs.Logger,
) -> AsyncIterator[Any]:
    response = await request('get', url, streaming=True,
                             settings=settings, context=context, logger=logger)
    async with response:
        async for line in iter_jsonlines(response.content):
            yield json.loads(line.decode('utf-8'))


async def iter_jsonlines(
        content: aiohttp.StreamReader,
        chunk_size: int = 1024 * 1024,
) -> AsyncIterator[bytes]:
    """
    Iterate line by line over the response's content.

    The aiohttp's own line iteration fails if the accumulated buffer
    is above 2**17 bytes (128 KB), while K8s objects can be up to MBs in length.
    The 1 MB chunks keep the memory footprint reasonably low.
    """
    buffer = b''
    async for data in content.iter_chunked(chunk_size):
        buffer += data
        *lines, buffer = buffer.split(b'\n')
        for line in lines:
            if line:
                yield line

    if buffer:
        yield buffer
