"""
Helpers shared by the DatabaseHost, Database and DatabaseUser handlers
"""
from typing import Any, Dict, Optional

from external_database_operator.errors import (
    HostConnectionError,
    ReferenceNotFound,
    ReferenceNotSet,
    SecretError,
)
from external_database_operator.kube import DATABASE_HOSTS, ResourceKind
from external_database_operator.models import DatabaseDescriptor, HostDescriptor
from external_database_operator.providers import DatabaseProvider, new_provider, provider_class
from external_database_operator.status import StatusRecord


def host_password(host: HostDescriptor, secrets) -> Optional[str]:
    """Inline password first, then the referenced secret

    A secret that cannot be resolved is reported as a connection failure.
    """
    if host.password:
        return host.password
    ref = host.password_secret_ref
    if ref is None:
        return None
    try:
        return secrets.resolve(host.namespace, ref.name, ref.key)
    except SecretError as e:
        raise HostConnectionError(host.superuser, host.address, e) from e


def connect_provider(host: HostDescriptor, secrets, settings, logger) -> DatabaseProvider:
    # resolve the provider before any I/O so an unsupported engine never
    # reaches the secret store or the network
    provider_class(host.engine)
    return new_provider(
        host,
        host_password(host, secrets),
        connect_timeout=settings.connect_timeout,
        statement_timeout=settings.statement_timeout,
        logger=logger,
    )


def resolve_database_host(database: DatabaseDescriptor, store) -> HostDescriptor:
    if not database.host_ref:
        raise ReferenceNotSet('host')
    body = store.get(DATABASE_HOSTS, database.namespace, database.host_ref)
    if body is None:
        raise ReferenceNotFound('host', database.host_ref)
    return HostDescriptor.from_spec(database.host_ref, database.namespace, body.get('spec') or {})


def generation_of(body: Dict[str, Any]) -> Optional[int]:
    return body.get('metadata', {}).get('generation')


def report(store, kind: ResourceKind, namespace: str, name: str,
           record: StatusRecord, generation: Optional[int]) -> Dict[str, Any]:
    return store.patch_status(kind, namespace, name, record.as_patch(kind.plural, generation))
