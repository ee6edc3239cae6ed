"""
Handlers for the external database operator

This package contains the reconciliation logic for DatabaseHost, Database
and DatabaseUser custom resources.
"""

from .database_handler import PassResult, reconcile_database
from .databasehost_handler import verify_host
from .databaseuser_handler import reconcile_user

__all__ = [
    'PassResult',
    'reconcile_database',
    'reconcile_user',
    'verify_host',
]
