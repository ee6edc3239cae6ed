"""
PostgreSQL provider
"""
import psycopg2
from psycopg2 import errors, sql

from external_database_operator.errors import HostConnectionError, ProvisionError
from external_database_operator.models import DatabaseDescriptor, UserDescriptor
from external_database_operator.providers.base import DatabaseProvider
from external_database_operator.providers.identifiers import (
    validate_charset,
    validate_collation,
    validate_grant,
    validate_identifier,
)

ADMIN_DATABASE = 'postgres'

# https://www.postgresql.org/docs/current/ddl-priv.html
PRIVILEGES = {
    'DATABASE': {'CREATE', 'CONNECT', 'TEMPORARY', 'TEMP'},
    'SCHEMA': {'CREATE', 'USAGE'},
    'TABLE': {'SELECT', 'INSERT', 'UPDATE', 'DELETE', 'TRUNCATE', 'REFERENCES', 'TRIGGER'},
    'SEQUENCE': {'USAGE', 'SELECT', 'UPDATE'},
    'FUNCTION': {'EXECUTE'},
}

GRANT_TARGETS = {
    'DATABASE': 'DATABASE {database}',
    'SCHEMA': 'SCHEMA public',
    'TABLE': 'ALL TABLES IN SCHEMA public',
    'SEQUENCE': 'ALL SEQUENCES IN SCHEMA public',
    'FUNCTION': 'ALL FUNCTIONS IN SCHEMA public',
}


def _describe(error: Exception) -> str:
    return str(error).strip() or type(error).__name__


class PostgreSQLProvider(DatabaseProvider):
    engine = 'postgres'
    default_port = 5432
    default_charset = 'UTF8'
    default_collation = 'en_US.UTF-8'

    def _connect(self, dbname: str = ADMIN_DATABASE):
        try:
            return psycopg2.connect(
                host=self.host.address,
                port=self.port,
                user=self.host.superuser,
                password=self.password,
                dbname=dbname,
                connect_timeout=self.connect_timeout,
                options=f'-c statement_timeout={self.statement_timeout * 1000}',
            )
        except psycopg2.Error as e:
            raise HostConnectionError(self.host.superuser, self.host.address, _describe(e)) from e

    def check_connection(self) -> None:
        conn = self._connect()
        try:
            with conn.cursor() as cursor:
                cursor.execute('SELECT 1')
                cursor.fetchone()
        except psycopg2.Error as e:
            raise HostConnectionError(self.host.superuser, self.host.address, _describe(e)) from e
        finally:
            conn.close()

    def create_database(self, database: DatabaseDescriptor) -> bool:
        name = validate_identifier(database.database_name, 'database name')
        owner = validate_identifier(database.owner or self.host.superuser, 'owner')
        charset = validate_charset(database.charset or self.default_charset)
        collation = validate_collation(database.collation or self.default_collation)

        conn = self._connect()
        try:
            # CREATE DATABASE cannot run inside a transaction block
            conn.autocommit = True
            with conn.cursor() as cursor:
                cursor.execute('SELECT datname FROM pg_database WHERE datname = %s', (name,))
                if cursor.fetchone():
                    self.logger.info(f"Database {name} already exists")
                    return False

                cursor.execute(
                    sql.SQL(
                        'CREATE DATABASE {} WITH OWNER {} ENCODING {} LC_COLLATE {} LC_CTYPE {}'
                    ).format(
                        sql.Identifier(name),
                        sql.Identifier(owner),
                        sql.Literal(charset),
                        sql.Literal(collation),
                        sql.Literal(collation),
                    )
                )
                self.logger.info(f"Created database: {name}")
                return True
        except errors.DuplicateDatabase:
            self.logger.info(f"Database {name} was created concurrently")
            return False
        except psycopg2.Error as e:
            raise ProvisionError('create database', name, _describe(e)) from e
        finally:
            conn.close()

    def drop_database(self, database: DatabaseDescriptor) -> None:
        name = validate_identifier(database.database_name, 'database name')

        conn = self._connect()
        try:
            conn.autocommit = True
            with conn.cursor() as cursor:
                cursor.execute(sql.SQL('DROP DATABASE IF EXISTS {}').format(sql.Identifier(name)))
                self.logger.info(f"Dropped database: {name}")
        except psycopg2.Error as e:
            raise ProvisionError('drop database', name, _describe(e)) from e
        finally:
            conn.close()

    def create_user(self, user: UserDescriptor, database: DatabaseDescriptor) -> bool:
        username = validate_identifier(user.username, 'username')
        name = validate_identifier(database.database_name, 'database name')
        grants = [validate_grant(grant, PRIVILEGES) for grant in user.grants]

        # roles are cluster-wide, so creating one from the target database
        # lets the role and its grants share a single transaction
        conn = self._connect(dbname=name)
        try:
            with conn.cursor() as cursor:
                cursor.execute('SELECT 1 FROM pg_roles WHERE rolname = %s', (username,))
                created = cursor.fetchone() is None

                verb = 'CREATE' if created else 'ALTER'
                if user.password:
                    cursor.execute(
                        sql.SQL(verb + ' ROLE {} WITH LOGIN PASSWORD %s').format(sql.Identifier(username)),
                        (user.password,),
                    )
                else:
                    cursor.execute(sql.SQL(verb + ' ROLE {} WITH LOGIN').format(sql.Identifier(username)))
                self.logger.info(f"{'Created' if created else 'Updated'} role: {username}")

                for object_type, privileges in grants:
                    cursor.execute(self._grant_statement(object_type, privileges, name, username))
                    self.logger.info(f"Granted {', '.join(privileges)} on {object_type} to {username}")
            conn.commit()
            return created
        except psycopg2.Error as e:
            conn.rollback()
            raise ProvisionError('create user', username, _describe(e)) from e
        finally:
            conn.close()

    @staticmethod
    def _grant_statement(object_type, privileges, database_name, username):
        # privilege keywords come from the PRIVILEGES allow-list
        return sql.SQL('GRANT {privileges} ON ' + GRANT_TARGETS[object_type] + ' TO {user}').format(
            privileges=sql.SQL(', ').join(sql.SQL(p) for p in privileges),
            database=sql.Identifier(database_name),
            user=sql.Identifier(username),
        )
