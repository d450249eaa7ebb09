"""Configuration module for crosstrack.

Public API:
----------
settings: Settings instance
    Pydantic settings object with nested configuration groups

get_logger(name: str) -> Logger
    Get a context-aware logger for your module

setup_loguru_logger(verbose: bool = False) -> None
    Configure Loguru logger for the application

resilient_operation(operation_name: str)
    Decorator for logging failures of external API calls

Usage:
------
```python
from crosstrack.config import get_logger, settings

logger = get_logger(__name__)
delay = settings.verification.inter_track_delay
```
"""

from .logging import get_logger, resilient_operation, setup_loguru_logger
from .settings import Settings, settings

__all__ = [
    "Settings",
    "get_logger",
    "resilient_operation",
    "settings",
    "setup_loguru_logger",
]
