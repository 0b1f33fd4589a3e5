# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for Docker Volume Manager.

These helpers centralize wording for common configuration and input errors
so that the engine and the CLI present consistent, actionable messages.
"""


def explain_invalid_retention_days_env(value: str | None) -> str:
    """
    Explain that DVM_RETENTION_DAYS is invalid.
    """

    return (
        f"Invalid DVM_RETENTION_DAYS value: {value!r}. "
        "It must be a non-negative integer number of days."
    )


def explain_invalid_bool_env(name: str, value: str | None) -> str:
    """
    Explain that a boolean environment variable could not be parsed.
    """

    return (
        f"Invalid {name} value: {value!r}. "
        "Expected one of: 1, 0, true, false, yes, no, on, off."
    )


def explain_invalid_timeout_env(value: str | None) -> str:
    """
    Explain that DVM_SSH_TIMEOUT is invalid.
    """

    return (
        f"Invalid DVM_SSH_TIMEOUT value: {value!r}. "
        "It must be a positive number of seconds."
    )


def explain_invalid_max_jobs_env(value: str | None) -> str:
    """
    Explain that DVM_MAX_JOBS is invalid.
    """

    return (
        f"Invalid DVM_MAX_JOBS value: {value!r}. "
        "It must be a positive integer, or unset for one job per volume."
    )


def explain_invalid_address(address: str) -> str:
    """
    Explain that a remote address is not a dotted IPv4 address.
    """

    return (
        f"Invalid IP address: {address!r}. "
        "Expected four dot-separated numbers between 0 and 255, e.g. 192.168.1.20."
    )


def explain_unreachable_host(user: str, address: str) -> str:
    """
    Explain that the SSH probe against a remote host failed.
    """

    return (
        f"Unable to connect to {user}@{address} via SSH. "
        "Check credentials or network."
    )


def explain_unsafe_name(kind: str, value: str) -> str:
    """
    Explain that a name cannot be used to build an archive path.
    """

    return (
        f"Invalid {kind}: {value!r}. "
        "Names must be non-empty and must not contain path separators or NUL bytes."
    )


def explain_missing_dependencies(missing: list[str]) -> str:
    """
    Explain which external tools are missing.
    """

    return (
        f"Missing dependencies: {', '.join(missing)}. "
        "Please install them before running dvm."
    )
