"""
Allow-list validation for values embedded in DDL statements

Identifiers cannot be sent as bind parameters, so anything outside the
allowed character sets is rejected before a statement is built.
"""
import re
from typing import Dict, List, Set, Tuple

from external_database_operator.errors import ValidationError
from external_database_operator.models import Grant

IDENTIFIER_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_-]*$')
CHARSET_RE = re.compile(r'^[A-Za-z0-9_-]+$')
COLLATION_RE = re.compile(r'^[A-Za-z0-9_.@-]+$')


def validate_identifier(value: str, what: str, max_length: int = 63) -> str:
    if not value:
        raise ValidationError(what, value, 'must not be empty')
    if len(value) > max_length:
        raise ValidationError(what, value, f'longer than {max_length} characters')
    if not IDENTIFIER_RE.match(value):
        raise ValidationError(
            what, value,
            'must start with a letter or underscore and contain only letters, digits, "_" or "-"',
        )
    return value


def validate_charset(value: str, what: str = 'charset') -> str:
    if not value or not CHARSET_RE.match(value):
        raise ValidationError(what, value, 'must contain only letters, digits, "_" or "-"')
    return value


def validate_collation(value: str) -> str:
    if not value or not COLLATION_RE.match(value):
        raise ValidationError('collation', value, 'must contain only letters, digits, "_", ".", "@" or "-"')
    return value


def validate_grant(grant: Grant, allowed: Dict[str, Set[str]]) -> Tuple[str, List[str]]:
    """Normalize a grant to upper case and check it against an engine's allow-list

    Returns the object type and the privilege keywords, with ALL expanded to
    ALL PRIVILEGES.
    """
    object_type = grant.object_type.upper()
    if object_type not in allowed:
        raise ValidationError(
            'object type', grant.object_type,
            f"supported object types are {', '.join(sorted(allowed))}",
        )
    if not grant.privileges:
        raise ValidationError('privileges', grant.object_type, 'at least one privilege is required')

    privileges = []
    for privilege in grant.privileges:
        keyword = ' '.join(privilege.upper().split())
        if keyword in ('ALL', 'ALL PRIVILEGES'):
            keyword = 'ALL PRIVILEGES'
        elif keyword not in allowed[object_type]:
            raise ValidationError(
                'privilege', privilege,
                f'not grantable on {object_type}',
            )
        if keyword not in privileges:
            privileges.append(keyword)
    return object_type, privileges
