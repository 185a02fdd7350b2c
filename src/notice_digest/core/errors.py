"""Error taxonomy shared by adapters, stages and the store."""

from __future__ import annotations


class NoticeDigestError(RuntimeError):
    """Base class for every error raised deliberately by the application."""


class TransientExternalError(NoticeDigestError):
    """Network, timeout or rate-limit failure; safe to retry."""


class SchemaMismatchError(NoticeDigestError):
    """Upstream payload no longer has the expected structure."""


class AuthError(NoticeDigestError):
    """Credentials are missing, expired or rejected upstream."""


class DataIntegrityError(NoticeDigestError):
    """Results contradict what was structurally expected."""


class StageTimeoutError(NoticeDigestError):
    """A time-bounded operation did not finish within its ceiling."""

    def __init__(self, label: str, ceiling: float) -> None:
        super().__init__(f"{label} timed out after {ceiling:g}s")
        self.label = label
        self.ceiling = ceiling


class StoreInitializationError(NoticeDigestError):
    """The persistent store could not be opened or migrated."""


__all__ = [
    "AuthError",
    "DataIntegrityError",
    "NoticeDigestError",
    "SchemaMismatchError",
    "StageTimeoutError",
    "StoreInitializationError",
    "TransientExternalError",
]
