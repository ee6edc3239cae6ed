"""
Pytest configuration and shared fixtures for the external database operator tests
"""
import copy
import logging
import os

import pytest
import yaml
from kubernetes.client.exceptions import ApiException
from psycopg2 import sql
from rich.console import Console

from external_database_operator.errors import HostConnectionError, ProvisionError, SecretError
from external_database_operator.kube import DATABASE_HOSTS, DATABASE_USERS, DATABASES
from external_database_operator.providers import PROVIDERS, DatabaseProvider
from external_database_operator.providers.identifiers import validate_identifier
from external_database_operator.settings import Settings

console = Console()

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), 'fixtures')
TEST_NAMESPACE = os.getenv('TEST_NAMESPACE', 'default')
KINDS = {
    'DatabaseHost': DATABASE_HOSTS,
    'Database': DATABASES,
    'DatabaseUser': DATABASE_USERS,
}


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: unit tests")


def log_check(criterion: str, expected: str, actual: str, *, source: str = "") -> None:
    """Emit a standardized criterion/result line for verbose runs.

    Example:
      Criterion: second pass must not issue CREATE DATABASE
      Result:    creates=1
    """
    prefix = "[dim]"
    suffix = "[/dim]"
    console.print(f"{prefix}Criterion:{suffix} {criterion}")
    console.print(f"{prefix}Expected:{suffix}  {expected}")
    if source:
        console.print(f"{prefix}Result:{suffix}    {actual} (source: {source})")
    else:
        console.print(f"{prefix}Result:{suffix}    {actual}")


def load_fixture(filename):
    """Load a multi-document YAML file of custom resources"""
    path = os.path.join(FIXTURES_DIR, filename)
    with open(path, 'r', encoding='utf-8') as f:
        return [doc for doc in yaml.safe_load_all(f) if doc]


def render_sql(statement) -> str:
    """Render a psycopg2 composed statement without a live connection"""
    if isinstance(statement, str):
        return statement
    if isinstance(statement, sql.Composed):
        return ''.join(render_sql(part) for part in statement.seq)
    if isinstance(statement, sql.Identifier):
        return '.'.join(f'"{s}"' for s in statement.strings)
    if isinstance(statement, sql.Literal):
        return f"'{statement.wrapped}'"
    if isinstance(statement, sql.SQL):
        return statement.string
    raise TypeError(f"cannot render {statement!r}")


class FakeStore:
    """In-memory desired-state store with Kubernetes-like finalizer semantics"""

    def __init__(self):
        self.objects = {}
        self.status_patches = []
        self.finalizer_patches = []
        self._version = 0

    def _bump(self, body):
        self._version += 1
        body['metadata']['resourceVersion'] = str(self._version)

    def apply(self, body, namespace=TEST_NAMESPACE):
        """Create or replace a record, bumping its generation on spec changes"""
        body = copy.deepcopy(body)
        kind = KINDS[body['kind']]
        metadata = body.setdefault('metadata', {})
        metadata.setdefault('namespace', namespace)
        key = (kind.plural, metadata['namespace'], metadata['name'])
        existing = self.objects.get(key)
        if existing is None:
            metadata['generation'] = 1
            metadata.setdefault('finalizers', [])
        else:
            metadata['generation'] = existing['metadata']['generation'] + 1
            metadata['finalizers'] = existing['metadata'].get('finalizers', [])
            body['status'] = existing.get('status', {})
        self._bump(body)
        self.objects[key] = body
        return copy.deepcopy(body)

    def request_deletion(self, kind, name, namespace=TEST_NAMESPACE):
        key = (kind.plural, namespace, name)
        body = self.objects[key]
        if body['metadata'].get('finalizers'):
            body['metadata']['deletionTimestamp'] = '2026-10-17T00:00:00Z'
            self._bump(body)
        else:
            del self.objects[key]

    def get(self, kind, namespace, name):
        body = self.objects.get((kind.plural, namespace, name))
        return copy.deepcopy(body) if body is not None else None

    def patch_status(self, kind, namespace, name, status):
        body = self.objects[(kind.plural, namespace, name)]
        body.setdefault('status', {}).update(status)
        self._bump(body)
        self.status_patches.append((kind.plural, name, dict(status)))
        return copy.deepcopy(body)

    def has_finalizer(self, body, finalizer):
        return finalizer in (body['metadata'].get('finalizers') or [])

    def add_finalizer(self, kind, body, finalizer):
        stored = self._check_version(kind, body)
        if finalizer not in stored['metadata']['finalizers']:
            stored['metadata']['finalizers'].append(finalizer)
        self.finalizer_patches.append(('add', body['metadata']['name'], finalizer))
        self._bump(stored)
        return copy.deepcopy(stored)

    def remove_finalizer(self, kind, body, finalizer):
        stored = self._check_version(kind, body)
        stored['metadata']['finalizers'] = [
            f for f in stored['metadata']['finalizers'] if f != finalizer
        ]
        self.finalizer_patches.append(('remove', body['metadata']['name'], finalizer))
        self._bump(stored)
        key = (kind.plural, stored['metadata']['namespace'], stored['metadata']['name'])
        if stored['metadata'].get('deletionTimestamp') and not stored['metadata']['finalizers']:
            del self.objects[key]
        return copy.deepcopy(stored)

    def _check_version(self, kind, body):
        metadata = body['metadata']
        stored = self.objects.get((kind.plural, metadata['namespace'], metadata['name']))
        if stored is None:
            raise ApiException(status=404, reason='Not Found')
        if stored['metadata']['resourceVersion'] != metadata.get('resourceVersion'):
            raise ApiException(status=409, reason='Conflict')
        return stored

    def status_of(self, kind, name, namespace=TEST_NAMESPACE):
        body = self.objects.get((kind.plural, namespace, name))
        return (body or {}).get('status', {})


class FakeSecrets:
    def __init__(self, values=None):
        self.values = dict(values or {})
        self.lookups = []

    def resolve(self, namespace, name, key):
        self.lookups.append((namespace, name, key))
        try:
            return self.values[(namespace, name, key)]
        except KeyError:
            raise SecretError(namespace, name, key, 'secret not found') from None


class FakeBackend:
    """Observable stand-in for a live database server"""

    def __init__(self):
        self.databases = {}
        self.users = {}
        self.statements = []
        self.connections = 0
        self.passwords = []
        self.connect_error = None
        self.create_error = None
        self.grant_error = None

    def creates(self):
        return [s for s in self.statements if s[0] == 'CREATE DATABASE']


def make_recording_provider(backend):
    class RecordingProvider(DatabaseProvider):
        engine = 'postgres'
        default_port = 5432

        def _connect(self):
            backend.connections += 1
            backend.passwords.append(self.password)
            if backend.connect_error:
                raise HostConnectionError(self.host.superuser, self.host.address, backend.connect_error)

        def check_connection(self):
            self._connect()

        def create_database(self, database):
            self._connect()
            name = database.database_name
            if name in backend.databases:
                return False
            if backend.create_error:
                raise ProvisionError('create database', name, backend.create_error)
            settings = (
                database.owner or self.host.superuser,
                database.charset or 'UTF8',
                database.collation or 'en_US.UTF-8',
            )
            backend.statements.append(('CREATE DATABASE', name) + settings)
            backend.databases[name] = settings
            return True

        def drop_database(self, database):
            validate_identifier(database.database_name, 'database name')
            self._connect()
            backend.statements.append(('DROP DATABASE', database.database_name))
            backend.databases.pop(database.database_name, None)

        def create_user(self, user, database):
            self._connect()
            created = user.username not in backend.users
            if created:
                backend.statements.append(('CREATE USER', user.username))
            if backend.grant_error:
                raise ProvisionError('grant privileges to', user.username, backend.grant_error)
            backend.users[user.username] = (database.database_name, user.password, list(user.grants))
            return created

    return RecordingProvider


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def secrets():
    return FakeSecrets()


@pytest.fixture
def settings():
    return Settings(connect_timeout=1, statement_timeout=1)


@pytest.fixture
def logger():
    return logging.getLogger('tests')


@pytest.fixture
def backend(monkeypatch):
    """Route the postgres and mysql engine kinds to a recording provider"""
    backend = FakeBackend()
    provider = make_recording_provider(backend)
    monkeypatch.setitem(PROVIDERS, 'postgres', provider)
    monkeypatch.setitem(PROVIDERS, 'mysql', provider)
    return backend


@pytest.fixture
def resources():
    """Sample custom resources keyed by (kind, name)"""
    return {(doc['kind'], doc['metadata']['name']): doc for doc in load_fixture('resources.yaml')}
