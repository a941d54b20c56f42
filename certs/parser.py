"""
PEM leaf-certificate decoding.

Only the first certificate of a payload is considered: `tls.crt` holds the
leaf first and the chain after it.  A payload without any PEM armor is a
DecodeFailure; armor that cryptography cannot turn into an X.509 certificate
is a ParseFailure.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from cryptography import x509
from cryptography.hazmat.backends import default_backend
from cryptography.x509.oid import NameOID

from monitor.errors import DecodeFailure, EmptyPayload, MissingPayload, ParseFailure
from monitor.state import ParsedCertificate

_PEM_ARMOR = b"-----BEGIN"


def parse_certificate(payload: Optional[bytes], namespace: str, name: str) -> ParsedCertificate:
    """
    Decode *payload* (PEM bytes from `tls.crt`) into a ParsedCertificate.

    *payload* is None when the key is absent from the secret.
    Raises MissingPayload, EmptyPayload, DecodeFailure or ParseFailure, each
    naming namespace/name.
    """
    if payload is None:
        raise MissingPayload(namespace, name)
    if len(payload) == 0:
        raise EmptyPayload(namespace, name)
    if _PEM_ARMOR not in payload:
        raise DecodeFailure(namespace, name)

    try:
        cert = x509.load_pem_x509_certificate(payload, default_backend())
        return _extract(cert)
    except ValueError as exc:
        raise ParseFailure(namespace, name, str(exc)) from exc


def _extract(cert: x509.Certificate) -> ParsedCertificate:
    try:
        san = cert.extensions.get_extension_for_class(
            x509.SubjectAlternativeName
        ).value
        dns = frozenset(san.get_values_for_type(x509.DNSName))
        ips = frozenset(str(ip) for ip in san.get_values_for_type(x509.IPAddress))
    except x509.ExtensionNotFound:
        dns, ips = frozenset(), frozenset()

    issuer_cns = cert.issuer.get_attributes_for_oid(NameOID.COMMON_NAME)
    subject_cns = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)

    return ParsedCertificate(
        not_before=_not_before(cert),
        not_after=_not_after(cert),
        issuer_common_name=str(issuer_cns[0].value) if issuer_cns else "",
        subject_common_names=frozenset(str(a.value) for a in subject_cns),
        dns_names=dns,
        ip_addresses=ips,
    )


def _not_after(cert: x509.Certificate) -> datetime:
    # cryptography >= 42 exposes .not_valid_after_utc (timezone-aware)
    try:
        return cert.not_valid_after_utc
    except AttributeError:
        return cert.not_valid_after.replace(tzinfo=timezone.utc)


def _not_before(cert: x509.Certificate) -> datetime:
    try:
        return cert.not_valid_before_utc
    except AttributeError:
        return cert.not_valid_before.replace(tzinfo=timezone.utc)
