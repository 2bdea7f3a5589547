from collections.abc import Mapping
from typing import Any

from hellok8s._cogs.clients import api, auth, errors
from hellok8s._cogs.configs import configuration
from hellok8s._cogs.helpers import typedefs
from hellok8s._cogs.structs import bodies, references

MERGE_PATCH = 'application/merge-patch+json'
APPLY_PATCH = 'application/apply-patch+yaml'  # JSON is valid YAML.


async def patch_obj(
        *,
        settings: configuration.OperatorSettings,
        context: auth.APIContext,
        resource: references.Resource,
        namespace: bodies.Namespace,
        name: str,
        patch: Mapping[str, Any],
        logger: typedefs.Logger,
) -> bodies.RawBody | None:
    """
    Patch an object with a JSON merge-patch; return the patched body.

    If the patch contains ``metadata.resourceVersion``, it is a precondition:
    the API fails with HTTP 409 (`APIConflictError`) if the object has changed
    since that version. This is used for the optimistic concurrency when
    the lists (e.g. finalizers) are replaced as a whole.

    Returns ``None`` if the underlying object is absent, as detected by trying
    to patch it and failing with HTTP 404. This can happen if the object was
    deleted externally during the processing.
    """
    try:
        patched_body: bodies.RawBody = await api.patch(
            url=resource.get_url(namespace=namespace, name=name),
            content_type=MERGE_PATCH,
            payload=patch,
            settings=settings,
            context=context,
            logger=logger,
        )
        return patched_body
    except errors.APINotFoundError:
        return None


async def apply_obj(
        *,
        settings: configuration.OperatorSettings,
        context: auth.APIContext,
        resource: references.Resource,
        namespace: bodies.Namespace = None,
        name: str,
        body: Mapping[str, Any],
        field_manager: str,
        force: bool = False,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    """
    Create or update an object via the server-side apply: idempotent by nature.
    """
    params = {'fieldManager': field_manager}
    if force:
        params['force'] = 'true'
    applied_body: bodies.RawBody = await api.patch(
        url=resource.get_url(namespace=namespace, name=name, params=params),
        content_type=APPLY_PATCH,
        payload=body,
        settings=settings,
        context=context,
        logger=logger,
    )
    return applied_body
