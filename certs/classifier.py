"""
Certificate classification - a pure function of its inputs.

Severity reflects expiry proximity only:

  days_left <= 0                   → CRIT  "expired on …"       (invalid)
  days_left <= critical_days_left  → CRIT  "will expire in N days"
  days_left <  warn_days_left      → WARN  "will expire in N days"
  otherwise                        → OK

Validity reflects both expiry and hostname coverage: an expected host that the
certificate does not cover marks the verdict invalid and adds a diagnostic for
that host, without touching the severity.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from certs.hostnames import covers
from monitor.errors import ExpiryError, HostnameMismatchError
from monitor.state import (
    CertificateSource,
    CertificateVerdict,
    ParsedCertificate,
    Severity,
    ThresholdConfig,
)

SECONDS_PER_DAY = 86400


def days_left(not_after: datetime, now: datetime) -> int:
    """Whole days until *not_after*, truncated toward zero (negative once expired)."""
    seconds = int(not_after.timestamp()) - int(now.timestamp())
    days = abs(seconds) // SECONDS_PER_DAY
    return days if seconds >= 0 else -days


def classify(
    cert: ParsedCertificate,
    expected_hosts: Sequence[str],
    thresholds: ThresholdConfig,
    now: datetime,
) -> CertificateVerdict:
    """Compute the verdict for *cert* at instant *now*."""
    remaining = days_left(cert.not_after, now)
    diagnostics: List[str] = []
    is_valid = True

    mismatched = tuple(h for h in expected_hosts if not covers(cert, h))
    if mismatched:
        is_valid = False
        diagnostics.extend(HostnameMismatchError.describe(h) for h in mismatched)

    expiry_msg: Optional[str] = None
    if remaining <= 0:
        severity = Severity.CRIT
        is_valid = False
        expiry_msg = ExpiryError.expired(cert.not_after)
    elif remaining <= thresholds.critical_days_left:
        severity = Severity.CRIT
        expiry_msg = ExpiryError.expiring(remaining, cert.not_after)
    elif remaining < thresholds.warn_days_left:
        severity = Severity.WARN
        expiry_msg = ExpiryError.expiring(remaining, cert.not_after)
    else:
        severity = Severity.OK

    if expiry_msg:
        diagnostics.append(expiry_msg)

    return CertificateVerdict(
        days_left=remaining,
        is_valid=is_valid,
        severity=severity,
        diagnostic="; ".join(diagnostics) if diagnostics else None,
        expiry_diagnostic=expiry_msg,
        mismatched_hosts=mismatched,
    )


def describe_source(source: CertificateSource, cert: Optional[ParsedCertificate]) -> str:
    """
    Prefix used for snapshot messages: `certificate ns/name (host, host)`.

    Falls back to the certificate's DNS names when the source declares no
    expected hosts (secret discovery).
    """
    hosts: Sequence[str] = source.expected_hosts
    if not hosts and cert is not None:
        hosts = sorted(cert.dns_names)
    return f"certificate {source.namespace}/{source.secret_name} ({', '.join(hosts)})"


def snapshot_messages(
    source: CertificateSource,
    cert: ParsedCertificate,
    verdict: CertificateVerdict,
    hostname_mismatch_is_error: bool = False,
) -> Tuple[List[str], List[str]]:
    """
    Return the (warnings, errors) a verdict contributes to a snapshot.

    CRIT expiry goes to errors, WARN to warnings.  Hostname mismatches only
    reach the errors list when *hostname_mismatch_is_error* is set.
    """
    warnings: List[str] = []
    errors: List[str] = []
    prefix = describe_source(source, cert)

    if verdict.expiry_diagnostic:
        line = f"{prefix} {verdict.expiry_diagnostic}"
        if verdict.severity is Severity.CRIT:
            errors.append(line)
        elif verdict.severity is Severity.WARN:
            warnings.append(line)

    if hostname_mismatch_is_error:
        errors.extend(
            f"{prefix} {HostnameMismatchError.describe(h)}" for h in verdict.mismatched_hosts
        )

    return warnings, errors
