"""Core utilities for configuration, logging, errors and resilience."""

from .config import AppSettings, load_app_settings
from .errors import (
    AuthError,
    DataIntegrityError,
    NoticeDigestError,
    SchemaMismatchError,
    StageTimeoutError,
    StoreInitializationError,
    TransientExternalError,
)
from .logging import configure_logging
from .resilience import with_retry, with_timeout

__all__ = [
    "AppSettings",
    "AuthError",
    "DataIntegrityError",
    "NoticeDigestError",
    "SchemaMismatchError",
    "StageTimeoutError",
    "StoreInitializationError",
    "TransientExternalError",
    "configure_logging",
    "load_app_settings",
    "with_retry",
    "with_timeout",
]
