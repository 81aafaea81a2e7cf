"""
Core module initialization.
Exports configuration, logging and error utilities.
"""

from restopos.core.config import get_settings, setup_logging, Settings, EnvironmentMode
from restopos.core.exceptions import (
    POSError,
    TokenInvalid,
    InvalidTransition,
    InvalidOrder,
    InvalidRequest,
    NotFound,
    PersistenceFailure,
)

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "POSError",
    "TokenInvalid",
    "InvalidTransition",
    "InvalidOrder",
    "InvalidRequest",
    "NotFound",
    "PersistenceFailure",
]
