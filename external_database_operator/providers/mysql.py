"""
MySQL provider
"""
import pymysql

from external_database_operator.errors import HostConnectionError, ProvisionError
from external_database_operator.models import DatabaseDescriptor, UserDescriptor
from external_database_operator.providers.base import DatabaseProvider
from external_database_operator.providers.identifiers import (
    validate_charset,
    validate_grant,
    validate_identifier,
)

ER_DB_CREATE_EXISTS = 1007

# https://dev.mysql.com/doc/refman/8.0/en/grant.html
SCHEMA_PRIVILEGES = {
    'SELECT', 'INSERT', 'UPDATE', 'DELETE', 'CREATE', 'DROP', 'ALTER', 'INDEX',
    'REFERENCES', 'EXECUTE', 'CREATE VIEW', 'SHOW VIEW', 'TRIGGER', 'EVENT',
    'LOCK TABLES', 'CREATE TEMPORARY TABLES', 'CREATE ROUTINE', 'ALTER ROUTINE',
}

# MySQL has no schema-wide table grant distinct from the database one,
# both map to `<db>`.*
PRIVILEGES = {
    'DATABASE': SCHEMA_PRIVILEGES,
    'TABLE': SCHEMA_PRIVILEGES,
}


class MySQLProvider(DatabaseProvider):
    engine = 'mysql'
    default_port = 3306
    default_charset = 'utf8mb4'
    default_collation = 'utf8mb4_unicode_ci'

    def _connect(self):
        try:
            return pymysql.connect(
                host=self.host.address,
                port=self.port,
                user=self.host.superuser,
                password=self.password,
                charset='utf8mb4',
                connect_timeout=self.connect_timeout,
                read_timeout=self.statement_timeout,
                write_timeout=self.statement_timeout,
            )
        except pymysql.MySQLError as e:
            raise HostConnectionError(self.host.superuser, self.host.address, e) from e

    def check_connection(self) -> None:
        conn = self._connect()
        try:
            conn.ping(reconnect=False)
        except pymysql.MySQLError as e:
            raise HostConnectionError(self.host.superuser, self.host.address, e) from e
        finally:
            conn.close()

    def create_database(self, database: DatabaseDescriptor) -> bool:
        name = validate_identifier(database.database_name, 'database name', max_length=64)
        charset = validate_charset(database.charset or self.default_charset)
        collation = validate_charset(database.collation or self.default_collation, 'collation')
        if database.owner:
            self.logger.info(f"MySQL databases have no owner, ignoring owner {database.owner}")

        conn = self._connect()
        try:
            with conn.cursor() as cursor:
                cursor.execute(
                    "SELECT SCHEMA_NAME FROM information_schema.SCHEMATA WHERE SCHEMA_NAME = %s",
                    (name,),
                )
                if cursor.fetchone():
                    self.logger.info(f"Database {name} already exists")
                    return False

                cursor.execute(f"CREATE DATABASE `{name}` CHARACTER SET {charset} COLLATE {collation}")
                conn.commit()
                self.logger.info(f"Created database: {name}")
                return True
        except pymysql.MySQLError as e:
            if e.args and e.args[0] == ER_DB_CREATE_EXISTS:
                self.logger.info(f"Database {name} was created concurrently")
                return False
            raise ProvisionError('create database', name, e) from e
        finally:
            conn.close()

    def drop_database(self, database: DatabaseDescriptor) -> None:
        name = validate_identifier(database.database_name, 'database name', max_length=64)

        conn = self._connect()
        try:
            with conn.cursor() as cursor:
                cursor.execute(f"DROP DATABASE IF EXISTS `{name}`")
                conn.commit()
                self.logger.info(f"Dropped database: {name}")
        except pymysql.MySQLError as e:
            raise ProvisionError('drop database', name, e) from e
        finally:
            conn.close()

    def create_user(self, user: UserDescriptor, database: DatabaseDescriptor) -> bool:
        username = validate_identifier(user.username, 'username', max_length=32)
        name = validate_identifier(database.database_name, 'database name', max_length=64)
        grants = [validate_grant(grant, PRIVILEGES) for grant in user.grants]

        conn = self._connect()
        try:
            with conn.cursor() as cursor:
                try:
                    cursor.execute(
                        "SELECT User FROM mysql.user WHERE User = %s AND Host = '%%'", (username,)
                    )
                    created = cursor.fetchone() is None

                    if created:
                        self.logger.info(f"Creating user: {username}")
                        if user.password:
                            cursor.execute("CREATE USER %s@'%%' IDENTIFIED BY %s", (username, user.password))
                        else:
                            cursor.execute("CREATE USER %s@'%%'", (username,))
                    elif user.password:
                        self.logger.info(f"User {username} exists, updating password")
                        cursor.execute("ALTER USER %s@'%%' IDENTIFIED BY %s", (username, user.password))
                except pymysql.MySQLError as e:
                    raise ProvisionError('create user', username, e) from e

                # CREATE USER commits implicitly, so a grant failure from here
                # on leaves the user in place without its privileges
                try:
                    for object_type, privileges in grants:
                        cursor.execute(
                            f"GRANT {', '.join(privileges)} ON `{name}`.* TO %s@'%%'", (username,)
                        )
                        self.logger.info(f"Granted {', '.join(privileges)} on {name} to {username}")
                    cursor.execute("FLUSH PRIVILEGES")
                    conn.commit()
                except pymysql.MySQLError as e:
                    raise ProvisionError(
                        'grant privileges to', username, f'user exists but grants were not applied: {e}'
                    ) from e
            return created
        finally:
            conn.close()
