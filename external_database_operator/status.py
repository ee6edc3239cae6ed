"""
Status/condition reporting

Every reconciliation outcome goes through render() before it is written back
to the custom resource, so the status vocabulary lives in one place.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from external_database_operator.errors import ReconcileError

TIME_FORMAT = '%Y-%m-%dT%H:%M:%SZ'

# (message field, timestamp field) per plural
STATUS_FIELDS = {
    'databasehosts': ('connectionStatus', 'lastConnectionTime'),
    'databases': ('creationStatus', 'lastCreationTime'),
    'databaseusers': ('userStatus', 'lastSyncTime'),
}


@dataclass(frozen=True)
class HostConnected:
    address: str


@dataclass(frozen=True)
class DatabaseCreated:
    database_name: str


@dataclass(frozen=True)
class DatabaseRetained:
    database_name: str


@dataclass(frozen=True)
class DatabaseDropped:
    database_name: str


@dataclass(frozen=True)
class UserProvisioned:
    username: str


Outcome = Union[HostConnected, DatabaseCreated, DatabaseRetained, DatabaseDropped,
                UserProvisioned, ReconcileError]


@dataclass(frozen=True)
class StatusRecord:
    message: str
    timestamp: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.timestamp is not None

    def as_patch(self, plural: str, generation: Optional[int] = None) -> Dict[str, Any]:
        """Build the status subresource body for the given resource plural"""
        message_field, time_field = STATUS_FIELDS[plural]
        patch: Dict[str, Any] = {message_field: self.message}
        # failures keep the last successful timestamp
        if self.timestamp is not None:
            patch[time_field] = self.timestamp
        if generation is not None:
            patch['observedGeneration'] = generation
        return patch


def now() -> str:
    return datetime.now(timezone.utc).strftime(TIME_FORMAT)


def render(outcome: Outcome, timestamp: Optional[str] = None) -> StatusRecord:
    if isinstance(outcome, ReconcileError):
        return StatusRecord(message=str(outcome))

    if isinstance(outcome, HostConnected):
        message = f"connection with host '{outcome.address}' was successful"
    elif isinstance(outcome, DatabaseCreated):
        message = f"database '{outcome.database_name}' successfully created"
    elif isinstance(outcome, DatabaseRetained):
        message = f"database '{outcome.database_name}' retained"
    elif isinstance(outcome, DatabaseDropped):
        message = f"database '{outcome.database_name}' dropped"
    elif isinstance(outcome, UserProvisioned):
        message = f"user '{outcome.username}' successfully created"
    else:
        raise TypeError(f"unknown outcome {outcome!r}")

    return StatusRecord(message=message, timestamp=timestamp or now())
