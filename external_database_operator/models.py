"""
Desired-state descriptors parsed from DatabaseHost, Database and DatabaseUser specs
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from external_database_operator.errors import ValidationError


class EngineKind(str, Enum):
    POSTGRES = 'postgres'
    MYSQL = 'mysql'


class DeletionPolicy(str, Enum):
    RETAIN = 'Retain'
    DELETE = 'Delete'


@dataclass(frozen=True)
class SecretKeyRef:
    name: str
    key: str = 'password'

    @classmethod
    def parse(cls, value: Union[str, Dict[str, Any], None]) -> Optional['SecretKeyRef']:
        """Accept either a bare secret name or a {name, key} selector"""
        if not value:
            return None
        if isinstance(value, str):
            return cls(name=value)
        name = value.get('name')
        if not name:
            raise ValidationError('secret reference', str(value), 'name must not be empty')
        return cls(name=name, key=value.get('key') or 'password')


@dataclass(frozen=True)
class HostDescriptor:
    name: str
    namespace: str
    address: str
    engine: str
    superuser: str
    password: Optional[str] = None
    password_secret_ref: Optional[SecretKeyRef] = None
    port: int = 0

    @classmethod
    def from_spec(cls, name: str, namespace: str, spec: Dict[str, Any]) -> 'HostDescriptor':
        address = spec.get('host') or ''
        superuser = spec.get('superuser') or ''
        if not address:
            raise ValidationError('host address', address, 'must not be empty')
        if not superuser:
            raise ValidationError('superuser', superuser, 'must not be empty')
        try:
            port = int(spec.get('port') or 0)
        except (TypeError, ValueError):
            raise ValidationError('port', str(spec.get('port')), 'must be an integer')
        return cls(
            name=name,
            namespace=namespace,
            address=address,
            engine=str(spec.get('type') or ''),
            superuser=superuser,
            password=spec.get('password') or None,
            password_secret_ref=SecretKeyRef.parse(spec.get('passwordSecretRef')),
            port=port,
        )


@dataclass(frozen=True)
class DatabaseDescriptor:
    name: str
    namespace: str
    database_name: str
    host_ref: str = ''
    owner: Optional[str] = None
    charset: Optional[str] = None
    collation: Optional[str] = None
    deletion_policy: DeletionPolicy = DeletionPolicy.RETAIN

    @classmethod
    def from_spec(cls, name: str, namespace: str, spec: Dict[str, Any]) -> 'DatabaseDescriptor':
        policy = spec.get('deletionPolicy') or DeletionPolicy.RETAIN.value
        try:
            deletion_policy = DeletionPolicy(policy)
        except ValueError:
            raise ValidationError('deletion policy', policy, 'must be Retain or Delete')
        return cls(
            name=name,
            namespace=namespace,
            # the custom resource name doubles as the database name when unset
            database_name=spec.get('name') or name,
            host_ref=spec.get('databaseHostRef') or '',
            owner=spec.get('owner') or None,
            charset=spec.get('charset') or None,
            collation=spec.get('collation') or None,
            deletion_policy=deletion_policy,
        )


@dataclass(frozen=True)
class Grant:
    object_type: str
    privileges: List[str] = field(default_factory=list)

    @classmethod
    def from_spec(cls, spec: Dict[str, Any]) -> 'Grant':
        object_type = (spec.get('objectType') or '').strip()
        if not object_type:
            raise ValidationError('object type', object_type, 'must not be empty')
        declared = spec.get('privileges') or []
        if not isinstance(declared, list):
            raise ValidationError('privileges', str(declared), 'must be a list')
        privileges = [p.strip() for p in declared if p and p.strip()]
        if not privileges:
            raise ValidationError('privileges', object_type, 'at least one privilege is required')
        return cls(object_type=object_type, privileges=privileges)


@dataclass(frozen=True)
class UserDescriptor:
    name: str
    namespace: str
    database_ref: str
    username: str
    password: Optional[str] = None
    password_secret_ref: Optional[SecretKeyRef] = None
    grants: List[Grant] = field(default_factory=list)

    @classmethod
    def from_spec(cls, name: str, namespace: str, spec: Dict[str, Any]) -> 'UserDescriptor':
        username = spec.get('username') or ''
        if not username:
            raise ValidationError('username', username, 'must not be empty')
        return cls(
            name=name,
            namespace=namespace,
            database_ref=spec.get('databaseRef') or '',
            username=username,
            password=spec.get('password') or None,
            password_secret_ref=SecretKeyRef.parse(spec.get('passwordSecretRef')),
            grants=[Grant.from_spec(g) for g in spec.get('privileges') or []],
        )
