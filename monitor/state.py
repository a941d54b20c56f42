"""
Immutable data model shared by the refresh loop and the status endpoint.

Nothing here is mutated after construction: a refresh cycle builds fresh
values and the publisher swaps in a whole new Snapshot.

  ThresholdConfig     - process-lifetime expiry thresholds
  CertificateSource   - one TLS-bearing object discovered in one cycle
  ParsedCertificate   - fields decoded from the leaf certificate
  CertificateVerdict  - classifier output
  CertificateRecord   - source + optional certificate + optional verdict
  Snapshot            - one complete cycle result
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import FrozenSet, Optional, Tuple


@dataclass(frozen=True)
class ThresholdConfig:
    critical_days_left: int = 3
    warn_days_left: int = 30


@dataclass(frozen=True)
class CertificateSource:
    owner_name: str                       # Ingress name, or the secret itself
    namespace: str
    secret_name: str
    expected_hosts: Tuple[str, ...] = ()  # Ordered as declared on the owner

    @property
    def ref(self) -> str:
        return f"{self.namespace}/{self.secret_name}"


@dataclass(frozen=True)
class ParsedCertificate:
    not_before: datetime                  # timezone-aware UTC
    not_after: datetime                   # timezone-aware UTC
    issuer_common_name: str
    subject_common_names: FrozenSet[str] = frozenset()
    dns_names: FrozenSet[str] = frozenset()
    ip_addresses: FrozenSet[str] = frozenset()


class Severity(str, enum.Enum):
    OK = "OK"
    WARN = "WARN"
    CRIT = "CRIT"


@dataclass(frozen=True)
class CertificateVerdict:
    days_left: int
    is_valid: bool
    severity: Severity
    diagnostic: Optional[str] = None
    expiry_diagnostic: Optional[str] = None      # Only the expiry part, if any
    mismatched_hosts: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CertificateRecord:
    source: CertificateSource
    certificate: Optional[ParsedCertificate] = None
    verdict: Optional[CertificateVerdict] = None
    error: Optional[str] = None                  # Set when parsing failed


@dataclass(frozen=True)
class Snapshot:
    generated_at: Optional[datetime] = None      # None until the first cycle
    records: Tuple[CertificateRecord, ...] = ()
    warnings: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> "Snapshot":
        """The snapshot served before any refresh cycle has completed."""
        return cls()
