"""
Handler for DatabaseHost custom resource
Verifies connectivity to an external database server
"""
from typing import Optional

from external_database_operator.errors import ReconcileError
from external_database_operator.handlers.common import connect_provider, generation_of, report
from external_database_operator.kube import DATABASE_HOSTS
from external_database_operator.models import HostDescriptor
from external_database_operator.status import HostConnected, StatusRecord, render


def verify_host(name: str, namespace: str, logger, *, store, secrets, settings) -> Optional[StatusRecord]:
    """Check that the declared host accepts connections and record the result

    Failures are written to the status and then re-raised so the caller can
    retry with backoff. A host owns nothing outside the cluster, so deletion
    needs no cleanup and no finalizer.
    """
    body = store.get(DATABASE_HOSTS, namespace, name)
    if body is None:
        logger.info(f"DatabaseHost {name} no longer exists")
        return None

    generation = generation_of(body)
    try:
        host = HostDescriptor.from_spec(name, namespace, body.get('spec') or {})
        logger.info(f"Verifying {host.engine} database host {host.address}")
        provider = connect_provider(host, secrets, settings, logger)
        provider.check_connection()
    except ReconcileError as e:
        logger.error(f"Failed to verify DatabaseHost {name}: {e}")
        report(store, DATABASE_HOSTS, namespace, name, render(e), generation)
        raise

    record = render(HostConnected(host.address))
    report(store, DATABASE_HOSTS, namespace, name, record, generation)
    logger.info(record.message)
    return record
