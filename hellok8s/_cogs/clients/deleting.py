from typing import Any

from hellok8s._cogs.clients import api, auth
from hellok8s._cogs.configs import configuration
from hellok8s._cogs.helpers import typedefs
from hellok8s._cogs.structs import bodies, references


async def delete_obj(
        *,
        settings: configuration.OperatorSettings,
        context: auth.APIContext,
        resource: references.Resource,
        namespace: bodies.Namespace,
        name: str,
        propagation_policy: str | None = 'Background',
        logger: typedefs.Logger,
) -> Any:
    """
    Delete an object; fail with `APINotFoundError` if it is absent.

    Returns the API's response: either the deleted object, or the status,
    depending on whether the object is deleted instantly or is being finalized.
    """
    payload = {'propagationPolicy': propagation_policy} if propagation_policy else None
    return await api.delete(
        url=resource.get_url(namespace=namespace, name=name),
        payload=payload,
        settings=settings,
        context=context,
        logger=logger,
    )
