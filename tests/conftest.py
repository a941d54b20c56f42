"""
Shared pytest fixtures.

Certificates are generated for real with `cryptography` so the parser and
classifier are exercised end to end; the cluster is replaced by an in-memory
FakeDirectory.
"""
from __future__ import annotations

import ipaddress
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from cluster.directory import ClusterDirectory
from monitor.errors import EnumerationError, SourceFetchError
from monitor.state import CertificateSource, ThresholdConfig

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


# ─── Certificate factory ──────────────────────────────────────────────────────

_KEY = ec.generate_private_key(ec.SECP256R1())


def make_cert_pem(
    not_after: datetime,
    not_before: Optional[datetime] = None,
    common_name: str = "example.com",
    dns_names: Iterable[str] = ("example.com",),
    ip_addresses: Iterable[str] = (),
    issuer_cn: str = "Test CA",
) -> bytes:
    """Build a self-contained PEM leaf certificate."""
    not_before = not_before or (not_after - timedelta(days=365))
    builder = (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)]))
        .issuer_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, issuer_cn)]))
        .public_key(_KEY.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
    )
    sans: List[x509.GeneralName] = [x509.DNSName(n) for n in dns_names]
    sans += [x509.IPAddress(ipaddress.ip_address(ip)) for ip in ip_addresses]
    if sans:
        builder = builder.add_extension(x509.SubjectAlternativeName(sans), critical=False)
    cert = builder.sign(_KEY, hashes.SHA256())
    return cert.public_bytes(serialization.Encoding.PEM)


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def thresholds() -> ThresholdConfig:
    return ThresholdConfig(critical_days_left=3, warn_days_left=30)


# ─── Fake cluster ─────────────────────────────────────────────────────────────


class FakeDirectory(ClusterDirectory):
    """
    In-memory ClusterDirectory.

    payloads maps (namespace, secret) to PEM bytes, None (key absent) or an
    exception instance to raise on fetch.
    """

    def __init__(
        self,
        sources: Optional[Dict[str, List[CertificateSource]]] = None,
        payloads: Optional[Dict[Tuple[str, str], object]] = None,
        namespace_error: Optional[str] = None,
        failing_namespaces: Iterable[str] = (),
    ) -> None:
        self.sources = sources or {}
        self.payloads = payloads or {}
        self.namespace_error = namespace_error
        self.failing_namespaces = set(failing_namespaces)
        self.fetches: List[Tuple[str, str]] = []

    def list_namespaces(self) -> List[str]:
        if self.namespace_error:
            raise EnumerationError("namespaces", self.namespace_error)
        return list(self.sources)

    def list_tls_sources(self, namespace: str) -> List[CertificateSource]:
        if namespace in self.failing_namespaces:
            raise EnumerationError(f"secrets in namespace {namespace}", "403 Forbidden")
        return list(self.sources.get(namespace, []))

    def fetch_certificate_payload(self, namespace: str, secret_name: str) -> Optional[bytes]:
        self.fetches.append((namespace, secret_name))
        key = (namespace, secret_name)
        if key not in self.payloads:
            raise SourceFetchError(namespace, secret_name, "404 Not Found")
        value = self.payloads[key]
        if isinstance(value, Exception):
            raise value
        return value  # type: ignore[return-value]


def source(
    namespace: str = "default",
    secret: str = "web-tls",
    hosts: Iterable[str] = (),
    owner: Optional[str] = None,
) -> CertificateSource:
    return CertificateSource(
        owner_name=owner or secret,
        namespace=namespace,
        secret_name=secret,
        expected_hosts=tuple(hosts),
    )
