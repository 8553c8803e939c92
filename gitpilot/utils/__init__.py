"""Utility modules for gitpilot."""

from gitpilot.utils.logging import (
    LogCapture,
    RedactCredentialsFilter,
    redact_credentials,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "redact_credentials",
    "RedactCredentialsFilter",
    "LogCapture",
]
