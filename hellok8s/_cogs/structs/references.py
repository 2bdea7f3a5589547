"""
References to the API resources (kinds) and the URLs built from them.

Unlike the full-featured resource discovery, the operator knows exactly
which few resources it works with, so they are declared statically.
"""
import dataclasses
import urllib.parse
from collections.abc import Mapping

from hellok8s._cogs.structs import bodies


@dataclasses.dataclass(frozen=True)
class Resource:
    """
    A reference to a very specific custom or built-in resource kind.
    """
    group: str
    version: str
    plural: str
    kind: str | None = None
    namespaced: bool = True

    def __str__(self) -> str:
        return f'{self.plural}.{self.version}.{self.group}'.strip('.')

    @property
    def api_version(self) -> str:
        return f'{self.group}/{self.version}' if self.group else self.version

    def get_url(
            self,
            *,
            server: str | None = None,
            namespace: bodies.Namespace = None,
            name: str | None = None,
            subresource: str | None = None,
            params: Mapping[str, str] | None = None,
    ) -> str:
        """
        Build a URL to be used with K8s API.

        If the namespace is not set, a cluster-wide URL is returned.
        If the name is not set, the URL for the resource list is returned.
        Params go to the query parameters (``?param1=value1&param2=value2...``).
        """
        if subresource is not None and name is None:
            raise ValueError("Subresources can be used only with specific resources by their name.")
        if not self.namespaced and namespace is not None:
            raise ValueError("Specific namespaces are not supported for cluster-scoped resources.")
        if self.namespaced and namespace is None and name is not None:
            raise ValueError("Specific namespaces are required for specific namespaced resources.")

        parts: list[str | None] = [
            '/api' if self.group == '' and self.version == 'v1' else '/apis',
            self.group,
            self.version,
            'namespaces' if self.namespaced and namespace is not None else None,
            namespace if self.namespaced and namespace is not None else None,
            self.plural,
            name,
            subresource,
        ]

        query = urllib.parse.urlencode(params, encoding='utf-8') if params else ''
        path = '/'.join([part for part in parts if part])
        url = path + ('?' if query else '') + query
        return url if server is None else server.rstrip('/') + '/' + url.lstrip('/')


HELLOS = Resource('hello.heikoseeberger.de', 'v0', 'hellos', kind='Hello')
DEPLOYMENTS = Resource('apps', 'v1', 'deployments', kind='Deployment')
CRDS = Resource('apiextensions.k8s.io', 'v1', 'customresourcedefinitions',
                kind='CustomResourceDefinition', namespaced=False)
