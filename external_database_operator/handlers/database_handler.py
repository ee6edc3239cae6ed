"""
Handler for Database custom resource
Converges a database on a referenced DatabaseHost and owns its finalizer
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from external_database_operator.errors import (
    ReconcileError,
    ReferenceNotFound,
    ReferenceNotSet,
    UnsupportedEngine,
    ValidationError,
)
from external_database_operator.handlers.common import (
    connect_provider,
    generation_of,
    report,
    resolve_database_host,
)
from external_database_operator.kube import DATABASES
from external_database_operator.lifecycle import LifecycleMachine, LifecycleState, lifecycle_state
from external_database_operator.models import DatabaseDescriptor, DeletionPolicy
from external_database_operator.status import (
    DatabaseCreated,
    DatabaseDropped,
    DatabaseRetained,
    StatusRecord,
    render,
)


@dataclass
class PassResult:
    """Outcome of one convergence pass over a Database record"""
    state: LifecycleState
    status: Optional[StatusRecord] = None
    error: Optional[ReconcileError] = None


def reconcile_database(name: str, namespace: str, logger, *, store, secrets, settings) -> PassResult:
    """Run one convergence pass for a Database record

    The record is re-read on every pass and nothing is remembered between
    passes, so an abandoned pass is picked up by the next one. Errors are
    written to the status and returned on the result rather than raised.
    """
    body = store.get(DATABASES, namespace, name)
    if body is None:
        logger.info(f"Database {name} no longer exists")
        return PassResult(LifecycleState.DELETED)

    state = lifecycle_state(body, settings.finalizer)
    logger.debug(f"Database {name} is {state.value}")

    if state is LifecycleState.DELETED:
        return PassResult(state)

    if state is LifecycleState.UNADMITTED:
        # the finalizer must be durable before anything is provisioned;
        # the resulting update triggers the next pass
        state = LifecycleMachine.ensure_transition(state, LifecycleState.ADMITTED)
        store.add_finalizer(DATABASES, body, settings.finalizer)
        logger.info(f"Added finalizer {settings.finalizer} to Database {name}")
        return PassResult(state)

    if state is LifecycleState.PENDING_DELETION:
        return _finalize(body, name, namespace, logger, store, secrets, settings)

    return _converge(body, name, namespace, logger, store, secrets, settings)


def _converge(body: Dict[str, Any], name, namespace, logger, store, secrets, settings) -> PassResult:
    generation = generation_of(body)
    try:
        database = DatabaseDescriptor.from_spec(name, namespace, body.get('spec') or {})
        host = resolve_database_host(database, store)
        logger.info(f"Ensuring database {database.database_name} on {host.engine} host {host.address}")
        provider = connect_provider(host, secrets, settings, logger)
        provider.create_database(database)
    except ReconcileError as e:
        logger.error(f"Failed to reconcile Database {name}: {e}")
        record = render(e)
        report(store, DATABASES, namespace, name, record, generation)
        return PassResult(LifecycleState.ADMITTED, record, e)

    record = render(DatabaseCreated(database.database_name))
    report(store, DATABASES, namespace, name, record, generation)
    logger.info(record.message)
    return PassResult(LifecycleState.ADMITTED, record)


def _finalize(body: Dict[str, Any], name, namespace, logger, store, secrets, settings) -> PassResult:
    logger.info(f"Cleaning up Database {name}")
    try:
        database = DatabaseDescriptor.from_spec(name, namespace, body.get('spec') or {})
    except ValidationError as e:
        logger.warning(f"Database {name} spec is invalid ({e}), retaining whatever it managed")
        database = None

    if database is None or database.deletion_policy is DeletionPolicy.RETAIN:
        outcome = DatabaseRetained(database.database_name if database else name)
    else:
        outcome = _drop(database, logger, store, secrets, settings)
        if isinstance(outcome, ReconcileError):
            logger.error(f"Failed to clean up Database {name}: {outcome}")
            record = render(outcome)
            report(store, DATABASES, namespace, name, record, generation_of(body))
            return PassResult(LifecycleState.PENDING_DELETION, record, outcome)

    state = LifecycleMachine.ensure_transition(LifecycleState.PENDING_DELETION, LifecycleState.DELETED)
    store.remove_finalizer(DATABASES, body, settings.finalizer)
    record = render(outcome)
    logger.info(f"{record.message}, removed finalizer {settings.finalizer}")
    return PassResult(state, record)


def _drop(database: DatabaseDescriptor, logger, store, secrets, settings):
    try:
        host = resolve_database_host(database, store)
    except (ReferenceNotSet, ReferenceNotFound, ValidationError) as e:
        # nothing reachable is left to clean up
        logger.warning(f"Skipping drop of database {database.database_name}: {e}")
        return DatabaseRetained(database.database_name)

    logger.warning(f"DeletionPolicy is Delete - removing database {database.database_name}")
    try:
        connect_provider(host, secrets, settings, logger).drop_database(database)
    except (UnsupportedEngine, ValidationError) as e:
        # raised before any statement, so no pass could have created it either
        logger.warning(f"Skipping drop of database {database.database_name}: {e}")
        return DatabaseRetained(database.database_name)
    except ReconcileError as e:
        return e
    return DatabaseDropped(database.database_name)
