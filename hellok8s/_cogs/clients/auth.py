import base64
import contextlib
import os
import ssl
import tempfile
import types

import aiohttp

from hellok8s._cogs.helpers import versions
from hellok8s._cogs.structs import credentials


class APIContext:
    """
    A container for an aiohttp session and the server it talks to.

    The container is constructed once per operator from the login results
    and is then passed explicitly to every API call -- as a part of
    the operator's context -- instead of being a global singleton.
    """

    session: aiohttp.ClientSession
    server: str

    def __init__(self, info: credentials.ConnectionInfo) -> None:
        super().__init__()
        self.server = info.server
        self.session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=0, ssl=make_ssl_context(info)),
            headers=make_headers(info),
            auth=(aiohttp.BasicAuth(info.username, info.password)
                  if info.username and info.password else None),
        )

    async def __aenter__(self) -> "APIContext":
        return self

    async def __aexit__(
            self,
            exc_type: type[BaseException] | None,
            exc_val: BaseException | None,
            exc_tb: types.TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        await self.session.close()


def make_headers(info: credentials.ConnectionInfo) -> dict[str, str]:
    headers = {'User-Agent': f'hellok8s/{versions.version or "unknown"}'}
    if info.scheme or info.token:
        scheme = info.scheme or 'Bearer'
        headers['Authorization'] = f'{scheme} {info.token}' if info.token else scheme
    return headers


def make_ssl_context(info: credentials.ConnectionInfo) -> ssl.SSLContext:
    context = ssl.create_default_context(
        purpose=ssl.Purpose.SERVER_AUTH,
        cafile=os.path.expanduser(info.ca_path) if info.ca_path else None,
        cadata=decode_to_pem(info.ca_data) if info.ca_data is not None else None,
    )

    # The client certificates are accepted only as files. Inline data go via temporary files,
    # which are not created when not needed: the filesystem can be read-only.
    with contextlib.ExitStack() as stack:
        cert_path = _pem_path(stack, info.certificate_path, info.certificate_data)
        pkey_path = _pem_path(stack, info.private_key_path, info.private_key_data)
        if cert_path and pkey_path:
            context.load_cert_chain(certfile=cert_path, keyfile=pkey_path)

    if info.insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def _pem_path(
        stack: contextlib.ExitStack,
        path: str | None,
        data: str | bytes | None,
) -> str | None:
    if path:
        return path
    elif data:
        file = stack.enter_context(tempfile.NamedTemporaryFile(buffering=0))
        file.write(decode_to_pem(data).encode('ascii'))
        return file.name
    else:
        return None


def decode_to_pem(data: str | bytes) -> str:
    match data:
        case str() if data.startswith('-----BEGIN '):
            return data
        case bytes() if data.startswith(b'-----BEGIN '):
            return data.decode('ascii')
        case _:
            return base64.b64decode(data).decode('ascii')
