"""
Snapshot → JSON document and HTTP status tier.

Status tiers (consumed by the Nagios plugin):
  200 - no errors, no warnings
  201 - warnings only
  202 - at least one error
"""
from __future__ import annotations

import json
from typing import Any, Dict, Optional

from monitor.state import CertificateRecord, ParsedCertificate, Snapshot

HTTP_OK = 200
HTTP_WARNINGS = 201
HTTP_ERRORS = 202


def status_code(snapshot: Snapshot) -> int:
    if snapshot.errors:
        return HTTP_ERRORS
    if snapshot.warnings:
        return HTTP_WARNINGS
    return HTTP_OK


def _certificate_to_dict(record: CertificateRecord) -> Optional[Dict[str, Any]]:
    cert: Optional[ParsedCertificate] = record.certificate
    if cert is None:
        return None
    doc: Dict[str, Any] = {
        "issuer": cert.issuer_common_name,
        "commonNames": sorted(cert.subject_common_names),
        "notBefore": str(cert.not_before),
        "notAfter": str(cert.not_after),
        "dnsNames": sorted(cert.dns_names),
        "ipAddresses": sorted(cert.ip_addresses),
    }
    verdict = record.verdict
    if verdict is not None:
        doc.update(
            daysLeft=verdict.days_left,
            isValid=verdict.is_valid,
            severity=verdict.severity.value,
            diagnostic=verdict.diagnostic,
        )
    return doc


def record_to_dict(record: CertificateRecord) -> Dict[str, Any]:
    source = record.source
    doc: Dict[str, Any] = {
        "name": source.owner_name,
        "namespace": source.namespace,
        "secretName": source.secret_name,
        "hosts": list(source.expected_hosts),
        "certificate": _certificate_to_dict(record),
    }
    if record.error:
        doc["error"] = record.error
    return doc


def snapshot_to_dict(snapshot: Snapshot) -> Dict[str, Any]:
    return {
        "lastUpdated": snapshot.generated_at.isoformat() if snapshot.generated_at else "",
        "errors": list(snapshot.errors),
        "warnings": list(snapshot.warnings),
        "certificates": [record_to_dict(r) for r in snapshot.records],
    }


def to_json(snapshot: Snapshot) -> str:
    """Pretty-printed document, or `{"error": "..."}` if the snapshot cannot be serialized."""
    try:
        return json.dumps(snapshot_to_dict(snapshot), indent=2)
    except (TypeError, ValueError, AttributeError) as exc:
        return json.dumps({"error": str(exc)})
