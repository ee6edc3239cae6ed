"""
Provider registry keyed by DatabaseHost engine kind

Adding an engine means a DatabaseProvider subclass plus a register_provider()
call; reconciliation code only ever goes through provider_class() and
new_provider().
"""
import logging
from typing import Dict, Optional, Type

from external_database_operator.errors import UnsupportedEngine
from external_database_operator.models import EngineKind, HostDescriptor
from external_database_operator.providers.base import DatabaseProvider
from external_database_operator.providers.mysql import MySQLProvider
from external_database_operator.providers.postgresql import PostgreSQLProvider

PROVIDERS: Dict[str, Type[DatabaseProvider]] = {
    EngineKind.POSTGRES.value: PostgreSQLProvider,
    EngineKind.MYSQL.value: MySQLProvider,
}


def register_provider(engine: str, provider: Type[DatabaseProvider]) -> None:
    PROVIDERS[engine] = provider


def unregister_provider(engine: str) -> None:
    PROVIDERS.pop(engine, None)


def provider_class(engine: str) -> Type[DatabaseProvider]:
    """Look up the provider for an engine kind without touching the network"""
    try:
        return PROVIDERS[engine]
    except KeyError:
        raise UnsupportedEngine(engine) from None


def new_provider(host: HostDescriptor, password: Optional[str],
                 connect_timeout: int = 10, statement_timeout: int = 30,
                 logger: Optional[logging.Logger] = None) -> DatabaseProvider:
    """Build a provider scoped to a single operation against the host"""
    return provider_class(host.engine)(
        host,
        password,
        connect_timeout=connect_timeout,
        statement_timeout=statement_timeout,
        logger=logger,
    )


__all__ = [
    'DatabaseProvider',
    'MySQLProvider',
    'PostgreSQLProvider',
    'PROVIDERS',
    'register_provider',
    'unregister_provider',
    'provider_class',
    'new_provider',
]
