"""
All the structures coming from/to the Kubernetes API.

The Kubernetes-originated objects are plain JSON-decoded dicts. They are
declared as `TypedDict` down to the fields used by the operator; all other
fields are allowed at runtime but are not type-checked.
"""
from collections.abc import Mapping
from typing import Any, Literal, TypedDict

# ``None`` is used for the listing, when the pseudo-watch-stream is simulated.
RawInputType = Literal[None, 'ADDED', 'MODIFIED', 'DELETED', 'ERROR', 'BOOKMARK']
RawEventType = Literal[None, 'ADDED', 'MODIFIED', 'DELETED']


class RawMeta(TypedDict, total=False):
    uid: str
    name: str
    namespace: str
    labels: Mapping[str, str]
    finalizers: list[str]
    resourceVersion: str
    deletionTimestamp: str
    creationTimestamp: str


class RawBody(TypedDict, total=False):
    apiVersion: str
    kind: str
    metadata: RawMeta
    spec: Mapping[str, Any]
    status: Mapping[str, Any]


class RawEvent(TypedDict, total=True):
    type: RawEventType
    object: RawBody


class RawInput(TypedDict, total=True):
    type: RawInputType
    object: Mapping[str, Any]


# Read-only view of a body as used by the operator's logic.
Body = Mapping[str, Any]

Namespace = str | None

# The per-object identity within one resource kind: (namespace, name).
ObjectKey = tuple[Namespace, str]


def get_namespace(body: Body) -> Namespace:
    return body.get('metadata', {}).get('namespace')


def get_name(body: Body) -> str | None:
    return body.get('metadata', {}).get('name')


def get_resource_version(body: Body) -> str | None:
    return body.get('metadata', {}).get('resourceVersion')


def get_key(body: Body) -> ObjectKey:
    """
    Identify the object within its resource kind by namespace & name.

    The key is used for the per-object queues & workers. Unlike the UIDs,
    it stays the same if the object is deleted and re-created with the same
    name, so the new object is serialized after the old one's last cleanup.
    """
    name = get_name(body)
    return get_namespace(body), name if name is not None else '-'


def build_object_reference(body: Body) -> dict[str, str | None]:
    """ A K8s-like object reference, as used in the logs. """
    return dict(
        apiVersion=body.get('apiVersion'),
        kind=body.get('kind'),
        name=body.get('metadata', {}).get('name'),
        uid=body.get('metadata', {}).get('uid'),
        namespace=body.get('metadata', {}).get('namespace'),
    )


class MissingIdentityError(Exception):
    """
    Raised when an object lacks the fields required to address it in the API.

    There is nothing the operator can do to fix such objects; the errors
    are logged and the attempts are retried as with any other failure.
    """


def require_identity(body: Body) -> tuple[str, str]:
    namespace = get_namespace(body)
    name = get_name(body)
    if not name:
        raise MissingIdentityError(f"The object has no name: {body.get('metadata')!r}")
    if not namespace:
        raise MissingIdentityError(f"The object {name!r} must be namespaced, but it is not.")
    return namespace, name
