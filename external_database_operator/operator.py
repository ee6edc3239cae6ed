#!/usr/bin/env python3
"""
External Database Operator - Manages DatabaseHost, Database and DatabaseUser custom resources
This operator verifies external database servers and creates databases and users on them

Run with: kopf run -m external_database_operator.operator
"""
import logging

import kopf

from external_database_operator.errors import ReconcileError
from external_database_operator.handlers import reconcile_database, reconcile_user, verify_host
from external_database_operator.kube import (
    DATABASE_HOSTS,
    DATABASE_USERS,
    DATABASES,
    KubernetesStore,
    SecretStore,
    load_kube_config,
)
from external_database_operator.lifecycle import is_observed, needs_pass
from external_database_operator.locks import KeyedLock
from external_database_operator.settings import GROUP, Settings

SETTINGS = Settings.from_env()

# Configure logging
logging.basicConfig(
    level=SETTINGS.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# at most one in-flight pass per object across event handlers and timers
LOCKS = KeyedLock()


@kopf.on.startup()
def startup_fn(settings: kopf.OperatorSettings, memo: kopf.Memo, **kwargs):
    """Configure operator settings and API clients on startup"""
    # kopf's own bookkeeping stays apart from the Database finalizer
    settings.persistence.finalizer = f'{GROUP}/kopf-finalizer'
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(prefix=GROUP)
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage(prefix=GROUP)
    settings.watching.server_timeout = SETTINGS.watch_server_timeout

    load_kube_config()
    memo.store = KubernetesStore()
    memo.secrets = SecretStore()


def _collaborators(memo):
    return {'store': memo.store, 'secrets': memo.secrets, 'settings': SETTINGS}


# DatabaseHost

def _verify_host(name, namespace, logger, memo):
    with LOCKS.hold((DATABASE_HOSTS.plural, namespace, name)):
        try:
            verify_host(name, namespace, logger, **_collaborators(memo))
        except ReconcileError as e:
            raise kopf.TemporaryError(str(e), delay=SETTINGS.retry_delay) from e


@kopf.on.resume(*DATABASE_HOSTS)
@kopf.on.create(*DATABASE_HOSTS)
@kopf.on.update(*DATABASE_HOSTS)
def databasehost_fn(name, namespace, logger, memo, **kwargs):
    """Verify a DatabaseHost when it is declared, changed, or the operator restarts"""
    _verify_host(name, namespace, logger, memo)


@kopf.timer(*DATABASE_HOSTS, interval=SETTINGS.resync_interval, initial_delay=SETTINGS.resync_interval)
def databasehost_resync_fn(name, namespace, logger, memo, **kwargs):
    """Periodically re-verify a DatabaseHost"""
    _verify_host(name, namespace, logger, memo)


# Database

def _reconcile_database(name, namespace, logger, memo):
    with LOCKS.hold((DATABASES.plural, namespace, name)):
        return reconcile_database(name, namespace, logger, **_collaborators(memo))


@kopf.on.event(*DATABASES)
def database_event_fn(event, body, name, namespace, logger, memo, **kwargs):
    """Run a convergence pass when a Database changed since its last pass"""
    if event.get('type') == 'DELETED' or not needs_pass(body, SETTINGS.finalizer):
        return
    _reconcile_database(name, namespace, logger, memo)


@kopf.timer(*DATABASES, interval=SETTINGS.resync_interval, initial_delay=SETTINGS.resync_interval)
def database_resync_fn(name, namespace, logger, memo, **kwargs):
    """Periodically re-run the convergence pass for a Database"""
    _reconcile_database(name, namespace, logger, memo)


# DatabaseUser

def _reconcile_user(name, namespace, logger, memo):
    with LOCKS.hold((DATABASE_USERS.plural, namespace, name)):
        return reconcile_user(name, namespace, logger, **_collaborators(memo))


@kopf.on.event(*DATABASE_USERS)
def databaseuser_event_fn(event, body, name, namespace, logger, memo, **kwargs):
    """Reconcile a DatabaseUser when it changed since its last pass"""
    if event.get('type') == 'DELETED' or is_observed(body):
        return
    _reconcile_user(name, namespace, logger, memo)


@kopf.timer(*DATABASE_USERS, interval=SETTINGS.resync_interval, initial_delay=SETTINGS.resync_interval)
def databaseuser_resync_fn(name, namespace, logger, memo, **kwargs):
    """Periodically re-apply a DatabaseUser"""
    _reconcile_user(name, namespace, logger, memo)


def main():
    logger.info("Starting External Database Operator")
    kopf.run(
        clusterwide=SETTINGS.watch_namespace is None,
        namespaces=[SETTINGS.watch_namespace] if SETTINGS.watch_namespace else [],
    )


if __name__ == '__main__':
    main()
