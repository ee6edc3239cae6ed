"""
Error taxonomy for reconciliation passes

Every error raised here renders to a human-readable status message through
str(), which is what ends up on the custom resource status.
"""
from typing import Optional


class ReconcileError(Exception):
    """Base class for every error that terminates a reconciliation pass"""


class UnsupportedEngine(ReconcileError):
    def __init__(self, engine: str):
        self.engine = engine
        super().__init__(f"database type '{engine}' not supported")


class ReferenceNotSet(ReconcileError):
    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"{kind} reference is not set")


class ReferenceNotFound(ReconcileError):
    def __init__(self, kind: str, ref: str):
        self.kind = kind
        self.ref = ref
        super().__init__(f"{kind} '{ref}' not found")


class HostConnectionError(ReconcileError):
    """Network or authentication failure reaching a database host"""

    def __init__(self, principal: str, address: str, cause):
        self.principal = principal
        self.address = address
        self.cause = cause
        super().__init__(f"failed to connect to '{principal}@{address}': {cause}")


class ProvisionError(ReconcileError):
    """The backend rejected a statement for a reason other than 'already exists'"""

    def __init__(self, action: str, target: str, cause):
        self.action = action
        self.target = target
        self.cause = cause
        super().__init__(f"failed to {action} '{target}': {cause}")


class ValidationError(ReconcileError):
    """A declared value cannot be embedded safely in a statement"""

    def __init__(self, what: str, value: Optional[str], reason: str):
        self.what = what
        self.value = value
        self.reason = reason
        super().__init__(f"invalid {what} '{value}': {reason}")


class IllegalTransition(ReconcileError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"illegal lifecycle transition {current.value} -> {target.value}")


class SecretError(ReconcileError):
    """A credential reference could not be resolved from the secret store"""

    def __init__(self, namespace: str, name: str, key: str, reason: str):
        self.namespace = namespace
        self.name = name
        self.key = key
        super().__init__(f"secret '{namespace}/{name}' key '{key}': {reason}")
