"""
Handler for DatabaseUser custom resource
Creates a login on the database's host and applies its privilege grants
"""
from dataclasses import replace
from typing import Optional

from external_database_operator.errors import (
    ProvisionError,
    ReconcileError,
    ReferenceNotFound,
    ReferenceNotSet,
    SecretError,
)
from external_database_operator.handlers.common import (
    connect_provider,
    generation_of,
    report,
    resolve_database_host,
)
from external_database_operator.kube import DATABASE_USERS, DATABASES
from external_database_operator.lifecycle import is_deleting
from external_database_operator.models import DatabaseDescriptor, UserDescriptor
from external_database_operator.status import StatusRecord, UserProvisioned, render


def user_password(user: UserDescriptor, secrets) -> Optional[str]:
    if user.password:
        return user.password
    ref = user.password_secret_ref
    if ref is None:
        return None
    try:
        return secrets.resolve(user.namespace, ref.name, ref.key)
    except SecretError as e:
        raise ProvisionError('resolve password for', user.username, e) from e


def reconcile_user(name: str, namespace: str, logger, *, store, secrets, settings) -> Optional[StatusRecord]:
    body = store.get(DATABASE_USERS, namespace, name)
    if body is None:
        logger.info(f"DatabaseUser {name} no longer exists")
        return None
    if is_deleting(body):
        # logins are never dropped automatically
        logger.info(f"DatabaseUser {name} is being deleted, retaining the login")
        return None

    generation = generation_of(body)
    try:
        user = UserDescriptor.from_spec(name, namespace, body.get('spec') or {})
        if not user.database_ref:
            raise ReferenceNotSet('database')
        database_body = store.get(DATABASES, namespace, user.database_ref)
        if database_body is None:
            raise ReferenceNotFound('database', user.database_ref)
        database = DatabaseDescriptor.from_spec(user.database_ref, namespace, database_body.get('spec') or {})
        host = resolve_database_host(database, store)

        provider = connect_provider(host, secrets, settings, logger)
        user = replace(user, password=user_password(user, secrets))
        logger.info(f"Ensuring user {user.username} on database {database.database_name}")
        provider.create_user(user, database)
    except ReconcileError as e:
        logger.error(f"Failed to reconcile DatabaseUser {name}: {e}")
        record = render(e)
        report(store, DATABASE_USERS, namespace, name, record, generation)
        return record

    record = render(UserProvisioned(user.username))
    report(store, DATABASE_USERS, namespace, name, record, generation)
    logger.info(record.message)
    return record
