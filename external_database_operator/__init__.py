"""
External Database Operator

Declaratively provisions databases and users on external PostgreSQL and
MySQL servers from DatabaseHost, Database and DatabaseUser custom resources.
"""

__version__ = '0.1.0'
