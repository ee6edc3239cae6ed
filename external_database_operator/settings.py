"""
Operator configuration read from the environment
"""
import os
from dataclasses import dataclass
from typing import Optional

GROUP = 'k8s.tuunit.com'
FINALIZER = f'{GROUP}/finalizer'


@dataclass(frozen=True)
class Settings:
    connect_timeout: int = 10
    statement_timeout: int = 30
    resync_interval: float = 300.0
    retry_delay: float = 30.0
    watch_server_timeout: int = 600
    log_level: str = 'INFO'
    watch_namespace: Optional[str] = None
    finalizer: str = FINALIZER

    @classmethod
    def from_env(cls) -> 'Settings':
        return cls(
            connect_timeout=int(os.environ.get('DB_CONNECT_TIMEOUT', '10')),
            statement_timeout=int(os.environ.get('DB_STATEMENT_TIMEOUT', '30')),
            resync_interval=float(os.environ.get('RESYNC_INTERVAL', '300')),
            retry_delay=float(os.environ.get('RETRY_DELAY', '30')),
            watch_server_timeout=int(os.environ.get('WATCH_SERVER_TIMEOUT', '600')),
            log_level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
            watch_namespace=os.environ.get('WATCH_NAMESPACE') or None,
        )
