from hellok8s._cogs.clients import api, auth
from hellok8s._cogs.configs import configuration
from hellok8s._cogs.helpers import typedefs
from hellok8s._cogs.structs import bodies, references


async def create_obj(
        *,
        settings: configuration.OperatorSettings,
        context: auth.APIContext,
        resource: references.Resource,
        namespace: bodies.Namespace = None,
        name: str | None = None,
        body: bodies.RawBody | None = None,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    """
    Create an object; fail with `APIConflictError` if it already exists.
    """
    body = body if body is not None else {}
    if namespace is not None:
        body.setdefault('metadata', {}).setdefault('namespace', namespace)
    if name is not None:
        body.setdefault('metadata', {}).setdefault('name', name)

    namespace = body.get('metadata', {}).get('namespace')
    created_body: bodies.RawBody = await api.post(
        url=resource.get_url(namespace=namespace),
        payload=body,
        settings=settings,
        context=context,
        logger=logger,
    )
    return created_body
