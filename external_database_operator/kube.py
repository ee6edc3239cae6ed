"""
Kubernetes-backed desired-state store and secret store
"""
import base64
import binascii
import logging
from collections import namedtuple
from typing import Any, Dict, Optional

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from external_database_operator.errors import SecretError
from external_database_operator.lifecycle import has_finalizer
from external_database_operator.settings import GROUP

logger = logging.getLogger(__name__)

ResourceKind = namedtuple('ResourceKind', ['group', 'version', 'plural'])

DATABASE_HOSTS = ResourceKind(GROUP, 'v1', 'databasehosts')
DATABASES = ResourceKind(GROUP, 'v1alpha1', 'databases')
DATABASE_USERS = ResourceKind(GROUP, 'v1alpha1', 'databaseusers')


def load_kube_config():
    """Load in-cluster config, falling back to the local kubeconfig"""
    try:
        config.load_incluster_config()
        logger.info("Using in-cluster Kubernetes config")
    except config.ConfigException:
        config.load_kube_config()
        logger.info("Using local Kubernetes config")


class KubernetesStore:
    """get/update access to custom resources and their status subresource"""

    def __init__(self, api: Optional[client.CustomObjectsApi] = None):
        self.api = api or client.CustomObjectsApi()

    def get(self, kind: ResourceKind, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        try:
            return self.api.get_namespaced_custom_object(
                group=kind.group,
                version=kind.version,
                namespace=namespace,
                plural=kind.plural,
                name=name,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    def patch_status(self, kind: ResourceKind, namespace: str, name: str,
                     status: Dict[str, Any]) -> Dict[str, Any]:
        return self.api.patch_namespaced_custom_object_status(
            group=kind.group,
            version=kind.version,
            namespace=namespace,
            plural=kind.plural,
            name=name,
            body={'status': status},
        )

    def has_finalizer(self, body: Dict[str, Any], finalizer: str) -> bool:
        return has_finalizer(body, finalizer)

    def add_finalizer(self, kind: ResourceKind, body: Dict[str, Any],
                      finalizer: str) -> Dict[str, Any]:
        finalizers = list(body['metadata'].get('finalizers') or [])
        if finalizer in finalizers:
            return body
        return self._patch_finalizers(kind, body, finalizers + [finalizer])

    def remove_finalizer(self, kind: ResourceKind, body: Dict[str, Any],
                         finalizer: str) -> Dict[str, Any]:
        finalizers = list(body['metadata'].get('finalizers') or [])
        if finalizer not in finalizers:
            return body
        return self._patch_finalizers(kind, body, [f for f in finalizers if f != finalizer])

    def _patch_finalizers(self, kind: ResourceKind, body: Dict[str, Any], finalizers):
        metadata = body['metadata']
        # resourceVersion makes the write fail with 409 if the record moved on
        patch = {
            'metadata': {
                'finalizers': finalizers,
                'resourceVersion': metadata.get('resourceVersion'),
            }
        }
        return self.api.patch_namespaced_custom_object(
            group=kind.group,
            version=kind.version,
            namespace=metadata['namespace'],
            plural=kind.plural,
            name=metadata['name'],
            body=patch,
        )


class SecretStore:
    """Resolves (namespace, secret name, key) to a plaintext value"""

    def __init__(self, api: Optional[client.CoreV1Api] = None):
        self.api = api or client.CoreV1Api()

    def resolve(self, namespace: str, name: str, key: str) -> str:
        try:
            secret = self.api.read_namespaced_secret(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                raise SecretError(namespace, name, key, 'secret not found')
            raise SecretError(namespace, name, key, f'{e.status} {e.reason}')

        encoded = (secret.data or {}).get(key)
        if encoded is None:
            raise SecretError(namespace, name, key, 'key not present')
        try:
            return base64.b64decode(encoded).decode('utf-8')
        except (binascii.Error, UnicodeDecodeError) as e:
            raise SecretError(namespace, name, key, f'undecodable value: {e}')
