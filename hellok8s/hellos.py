"""
The ``Hello`` resources: their definition, and what they turn into.

Every ``Hello`` object owns a deployment of the same name in the same
namespace, with as many replicas as declared in ``spec.replicas``.
The deployment is created once and never updated afterwards (no drift
correction); it is deleted when the ``Hello`` is being deleted.
"""
from typing import Any

from hellok8s._cogs.clients import creating, deleting, errors, patching
from hellok8s._cogs.configs import configuration
from hellok8s._cogs.helpers import typedefs
from hellok8s._cogs.structs import bodies, references
from hellok8s._core.actions import outcomes
from hellok8s._core.intents import contexts, finalizing

FINALIZER = configuration.DEFAULT_FINALIZER
IMAGE = 'hseeberger/hello-rs:0.1.10'
PORT = 80
FIELD_MANAGER = 'hellok8s'

MissingIdentityError = bodies.MissingIdentityError


def build_deployment(body: bodies.Body) -> bodies.RawBody:
    """
    Render the desired deployment for a ``Hello`` object.

    The result depends on the object's identity and ``spec.replicas`` only.
    """
    namespace, name = bodies.require_identity(body)
    labels = {'app': name}
    return {
        'apiVersion': references.DEPLOYMENTS.api_version,
        'kind': references.DEPLOYMENTS.kind,
        'metadata': {
            'name': name,
            'namespace': namespace,
            'labels': dict(labels),
        },
        'spec': {
            'replicas': body.get('spec', {}).get('replicas'),
            'selector': {'matchLabels': dict(labels)},
            'template': {
                'metadata': {'labels': dict(labels)},
                'spec': {
                    'containers': [{
                        'name': name,
                        'image': IMAGE,
                        'ports': [{'containerPort': PORT, 'name': 'http'}],
                    }],
                },
            },
        },
    }


async def reconcile(
        body: bodies.Body,
        *,
        context: contexts.OperatorContext,
        logger: typedefs.Logger,
) -> outcomes.Action:
    deployment = build_deployment(body)
    logger.debug("Reconciling: creating the deployment.")
    try:
        await creating.create_obj(
            settings=context.settings,
            context=context.api,
            resource=references.DEPLOYMENTS,
            body=deployment,
            logger=logger,
        )
    except errors.APIConflictError:
        logger.debug("The deployment exists already. Leaving it as is.")
        return outcomes.AwaitNextChange()
    else:
        logger.info("The deployment is created.")
        return outcomes.RequeueAfter(context.settings.reconciling.requeue_reconcile_after)


async def cleanup(
        body: bodies.Body,
        *,
        context: contexts.OperatorContext,
        logger: typedefs.Logger,
) -> outcomes.Action:
    namespace, name = bodies.require_identity(body)
    logger.debug("Cleaning up: deleting the deployment.")
    try:
        await deleting.delete_obj(
            settings=context.settings,
            context=context.api,
            resource=references.DEPLOYMENTS,
            namespace=namespace,
            name=name,
            logger=logger,
        )
    except errors.APINotFoundError:
        logger.debug("The deployment is absent already.")
    else:
        logger.info("The deployment is deleted.")
    return outcomes.AwaitNextChange()


async def dispatch(
        event: finalizing.Event,
        *,
        context: contexts.OperatorContext,
        logger: typedefs.Logger,
) -> outcomes.Action:
    match event:
        case finalizing.Apply(body=body):
            return await reconcile(body, context=context, logger=logger)
        case finalizing.Cleanup(body=body):
            return await cleanup(body, context=context, logger=logger)
        case _:
            raise TypeError(f"Unsupported event: {event!r}")


def build_crd() -> dict[str, Any]:
    """ Render the custom resource definition of ``Hello``. """
    resource = references.HELLOS
    kind = resource.kind or 'Hello'
    return {
        'apiVersion': references.CRDS.api_version,
        'kind': references.CRDS.kind,
        'metadata': {'name': f'{resource.plural}.{resource.group}'},
        'spec': {
            'group': resource.group,
            'names': {
                'kind': kind,
                'plural': resource.plural,
                'singular': kind.lower(),
                'shortNames': [],
                'categories': [],
            },
            'scope': 'Namespaced' if resource.namespaced else 'Cluster',
            'versions': [{
                'name': resource.version,
                'served': True,
                'storage': True,
                'subresources': {},
                'additionalPrinterColumns': [],
                'schema': {
                    'openAPIV3Schema': {
                        'title': kind,
                        'type': 'object',
                        'required': ['spec'],
                        'properties': {
                            'spec': {
                                'type': 'object',
                                'required': ['replicas'],
                                'properties': {
                                    'replicas': {'type': 'integer', 'format': 'int32'},
                                },
                            },
                        },
                    },
                },
            }],
        },
    }


async def register_crd(
        *,
        context: contexts.OperatorContext,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    """
    Create or update the custom resource definition.

    It is a server-side apply, so it is safe to do on every startup.
    """
    crd = build_crd()
    logger.info(f"Registering the custom resource definition {crd['metadata']['name']!r}.")
    return await patching.apply_obj(
        settings=context.settings,
        context=context.api,
        resource=references.CRDS,
        name=crd['metadata']['name'],
        body=crd,
        field_manager=FIELD_MANAGER,
        force=True,
        logger=logger,
    )


async def delete_crd(
        *,
        context: contexts.OperatorContext,
        logger: typedefs.Logger,
) -> None:
    name = build_crd()['metadata']['name']
    logger.info(f"Deleting the custom resource definition {name!r}.")
    await deleting.delete_obj(
        settings=context.settings,
        context=context.api,
        resource=references.CRDS,
        namespace=None,
        name=name,
        logger=logger,
    )
