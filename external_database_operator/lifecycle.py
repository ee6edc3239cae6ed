"""
Finalizer lifecycle of a Database record

States:
- UNADMITTED: no finalizer yet, nothing provisioned
- ADMITTED: finalizer present, provisioning proceeds normally
- PENDING_DELETION: deletion requested, finalizer still present, cleanup owed
- DELETED: finalizer gone, the store may purge the record

The state is derived from the record on every pass; nothing is kept in
memory between passes.
"""
from enum import Enum
from typing import Any, Dict, Mapping, Set

from external_database_operator.errors import IllegalTransition


class LifecycleState(str, Enum):
    UNADMITTED = 'Unadmitted'
    ADMITTED = 'Admitted'
    PENDING_DELETION = 'PendingDeletion'
    DELETED = 'Deleted'


class LifecycleMachine:
    TRANSITIONS: Dict[LifecycleState, Set[LifecycleState]] = {
        LifecycleState.UNADMITTED: {
            LifecycleState.ADMITTED,   # finalizer added
            LifecycleState.DELETED,    # deleted before admission, nothing owed
        },
        LifecycleState.ADMITTED: {
            LifecycleState.PENDING_DELETION,  # deletion requested in the store
        },
        LifecycleState.PENDING_DELETION: {
            LifecycleState.DELETED,    # cleanup done, finalizer removed
        },
        LifecycleState.DELETED: set(),
    }

    @classmethod
    def can_transition(cls, current: LifecycleState, target: LifecycleState) -> bool:
        return target in cls.TRANSITIONS.get(current, set())

    @classmethod
    def ensure_transition(cls, current: LifecycleState, target: LifecycleState) -> LifecycleState:
        if not cls.can_transition(current, target):
            raise IllegalTransition(current, target)
        return target


def is_deleting(body: Mapping[str, Any]) -> bool:
    return bool(body.get('metadata', {}).get('deletionTimestamp'))


def has_finalizer(body: Mapping[str, Any], finalizer: str) -> bool:
    return finalizer in (body.get('metadata', {}).get('finalizers') or [])


def is_observed(body: Mapping[str, Any]) -> bool:
    """Whether the status already reflects the current generation of the record"""
    observed = (body.get('status') or {}).get('observedGeneration')
    return observed == body.get('metadata', {}).get('generation')


def needs_pass(body: Mapping[str, Any], finalizer: str) -> bool:
    """Whether a watch event on the record warrants a convergence pass

    Status writes produce watch events too; records whose current generation
    was already handled are left to the periodic resync.
    """
    if is_deleting(body):
        return has_finalizer(body, finalizer)
    if not has_finalizer(body, finalizer):
        return True
    return not is_observed(body)


def lifecycle_state(body: Mapping[str, Any], finalizer: str) -> LifecycleState:
    deleting = is_deleting(body)
    finalized = has_finalizer(body, finalizer)
    if deleting and finalized:
        return LifecycleState.PENDING_DELETION
    if deleting:
        return LifecycleState.DELETED
    if finalized:
        return LifecycleState.ADMITTED
    return LifecycleState.UNADMITTED
