"""
TLS server-identity matching (RFC 6125 §6.4).

Matching is case-insensitive and ignores one trailing dot.  A wildcard is only
honoured as the complete left-most label and stands for exactly one label, so
`*.example.com` covers `www.example.com` but neither `example.com` nor
`a.b.example.com`.  A wildcard needs at least two labels after it, so `*.com`
never matches; no public-suffix list is consulted, so `*.co.uk` still covers
`example.co.uk`.  IP-address hosts are compared against IP SAN entries only.
"""
from __future__ import annotations

import ipaddress
from typing import Iterable

from monitor.state import ParsedCertificate


def _normalize(name: str) -> str:
    name = name.strip().lower()
    return name[:-1] if name.endswith(".") else name


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def match_pattern(pattern: str, host: str) -> bool:
    """Return True if the certificate name *pattern* covers *host*."""
    pattern = _normalize(pattern)
    host = _normalize(host)
    if not pattern or not host:
        return False
    if pattern == host:
        return True

    p_labels = pattern.split(".")
    h_labels = host.split(".")
    if p_labels[0] != "*" or "*" in pattern[1:]:
        return False
    if len(p_labels) < 3 or len(p_labels) != len(h_labels):
        return False
    if not h_labels[0]:
        return False
    return p_labels[1:] == h_labels[1:]


def presented_names(cert: ParsedCertificate) -> Iterable[str]:
    """DNS SAN entries, or the subject common names when there are none."""
    if cert.dns_names:
        return cert.dns_names
    return cert.subject_common_names


def covers(cert: ParsedCertificate, host: str) -> bool:
    if _is_ip(host.strip()):
        wanted = ipaddress.ip_address(host.strip())
        return any(ipaddress.ip_address(ip) == wanted for ip in cert.ip_addresses)
    return any(match_pattern(name, host) for name in presented_names(cert))
