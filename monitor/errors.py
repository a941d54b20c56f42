"""
Error taxonomy for the certificate monitor.

SourceFetchError and ParseError abort processing of one source.  EnumerationError
aborts collection for a whole cycle (or one namespace) but never the process.
ExpiryError and HostnameMismatchError are never raised: they only render the
diagnostic text the classifier attaches to an otherwise usable record.
"""
from __future__ import annotations

from datetime import datetime


class CertMonitorError(Exception):
    """Base class for every error recorded in a snapshot."""


class SourceFetchError(CertMonitorError):
    """The secret behind a source could not be read (missing, forbidden, timeout)."""

    def __init__(self, namespace: str, secret_name: str, reason: str) -> None:
        self.namespace = namespace
        self.secret_name = secret_name
        self.reason = reason
        super().__init__(f"failed to fetch secret {namespace}/{secret_name}: {reason}")


class EnumerationError(CertMonitorError):
    """Listing namespaces or TLS sources failed."""

    def __init__(self, scope: str, reason: str) -> None:
        self.scope = scope
        self.reason = reason
        super().__init__(f"failed to list {scope}: {reason}")


# ─── Parser failures ──────────────────────────────────────────────────────────


class ParseError(CertMonitorError):
    """The payload could not be turned into a certificate."""

    def __init__(self, namespace: str, name: str, message: str) -> None:
        self.namespace = namespace
        self.name = name
        super().__init__(message)


class MissingPayload(ParseError):
    def __init__(self, namespace: str, name: str, key: str = "tls.crt") -> None:
        super().__init__(namespace, name, f"{key} does not exist in {namespace}/{name}")


class EmptyPayload(ParseError):
    def __init__(self, namespace: str, name: str, key: str = "tls.crt") -> None:
        super().__init__(namespace, name, f"{key} for {namespace}/{name} is empty")


class DecodeFailure(ParseError):
    def __init__(self, namespace: str, name: str) -> None:
        super().__init__(namespace, name, f"failed to decode certificate {namespace}/{name}")


class ParseFailure(ParseError):
    def __init__(self, namespace: str, name: str, detail: str = "") -> None:
        message = f"failed to parse certificate {namespace}/{name}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(namespace, name, message)


# ─── Annotations (never raised) ───────────────────────────────────────────────


class ExpiryError(CertMonitorError):
    """Certificate expired or inside the critical/warn window."""

    @staticmethod
    def expired(not_after: datetime) -> str:
        return f"expired on {not_after}"

    @staticmethod
    def expiring(days_left: int, not_after: datetime) -> str:
        return f"will expire in {days_left} days ({not_after})"


class HostnameMismatchError(CertMonitorError):
    """Certificate names do not cover an expected host."""

    @staticmethod
    def describe(host: str) -> str:
        return f"certificate is not valid for host {host}"
