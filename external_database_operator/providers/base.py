"""
Provider contract implemented once per database engine
"""
import abc
import logging
from typing import Optional

from external_database_operator.errors import ProvisionError
from external_database_operator.models import DatabaseDescriptor, HostDescriptor, UserDescriptor


class DatabaseProvider(abc.ABC):
    """Engine-specific operations against one database host

    An instance is built for a single reconciliation step and holds no
    connection between calls: each operation opens its own connection and
    closes it on every exit path.
    """

    engine: str = ''
    default_port: int = 0

    def __init__(self, host: HostDescriptor, password: Optional[str],
                 connect_timeout: int = 10, statement_timeout: int = 30,
                 logger: Optional[logging.Logger] = None):
        self.host = host
        self.password = password or ''
        self.connect_timeout = connect_timeout
        self.statement_timeout = statement_timeout
        self.logger = logger or logging.getLogger(__name__)

    @property
    def port(self) -> int:
        return self.host.port or self.default_port

    @abc.abstractmethod
    def check_connection(self) -> None:
        """Open a connection to the administrative database and ping it"""

    @abc.abstractmethod
    def create_database(self, database: DatabaseDescriptor) -> bool:
        """Create the database unless it exists; True when a CREATE was issued"""

    @abc.abstractmethod
    def drop_database(self, database: DatabaseDescriptor) -> None:
        """Drop the database if it exists"""

    @abc.abstractmethod
    def create_user(self, user: UserDescriptor, database: DatabaseDescriptor) -> bool:
        """Create the user unless it exists and apply its grants on the database

        True when the user did not exist before the call.
        """

    def create_role(self) -> None:
        raise ProvisionError('create role', self.host.address, 'role management is not implemented')
