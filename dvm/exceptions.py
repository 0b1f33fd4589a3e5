# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Docker Volume Manager Exceptions - Custom exceptions for the dvm package.
"""


class DVMError(Exception):
    """Base exception for all dvm errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(DVMError):
    """Raised when configuration is invalid."""

    pass


class ValidationError(DVMError):
    """Raised when operator input (address, volume name, file name) is malformed."""

    pass


class DependencyError(DVMError):
    """Raised when a required external tool or daemon is unavailable."""

    pass


class ConnectivityError(DVMError):
    """Raised when a remote host cannot be reached or authenticated."""

    pass


class RemoteCommandError(ConnectivityError):
    """Raised when a command run over the remote shell exits non-zero."""

    pass


class StreamError(DVMError):
    """Raised when a streaming stage (volume read, compress, copy) fails."""

    pass


class IntegrityError(DVMError):
    """Raised when a completed archive fails verification."""

    pass


class StoreError(DVMError):
    """Raised when the archive store or log location cannot be read or created."""

    pass


class OperationCancelled(DVMError):
    """Raised when the operator declines or interrupts an operation."""

    pass
