"""
All the functions to inspect the object finalization and deletion.

Finalizers are used to block the actual deletion until the finalizers
are removed, meaning that the operator has done all its duties
to "release" the object (here: the deletion of the managed deployment).

The functions are pure: they never mutate the body, but return the new
list of finalizers to be stored via a version-guarded patch.
"""
from hellok8s._cogs.structs import bodies


def is_deletion_ongoing(
        body: bodies.Body,
) -> bool:
    return body.get('metadata', {}).get('deletionTimestamp', None) is not None


def is_deletion_blocked(
        body: bodies.Body,
        finalizer: str,
) -> bool:
    finalizers = body.get('metadata', {}).get('finalizers', None) or []
    return finalizer in finalizers


def block_deletion(
        body: bodies.Body,
        finalizer: str,
) -> list[str]:
    finalizers = list(body.get('metadata', {}).get('finalizers', None) or [])
    if finalizer not in finalizers:
        finalizers.append(finalizer)
    return finalizers


def allow_deletion(
        body: bodies.Body,
        finalizer: str,
) -> list[str]:
    finalizers = body.get('metadata', {}).get('finalizers', None) or []
    return [item for item in finalizers if item != finalizer]
