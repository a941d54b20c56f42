"""
Cluster Directory - enumeration of TLS-bearing objects and their payloads.

Two discovery modes:
  secret  - every `kubernetes.io/tls` secret is one source (no expected hosts).
            Secrets replicated by kubed from another namespace are skipped.
  ingress - every `spec.tls[]` entry that names a secret is one source; the
            entry's hosts are the hostnames the certificate must cover.

Every Kubernetes failure is translated into EnumerationError or
SourceFetchError so callers only deal with the monitor's own taxonomy.
"""
from __future__ import annotations

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from monitor.errors import DecodeFailure, EnumerationError, SourceFetchError
from monitor.state import CertificateSource

logger = logging.getLogger(__name__)

TLS_SECRET_TYPE = "kubernetes.io/tls"
TLS_CERT_KEY = "tls.crt"
KUBED_ORIGIN_LABEL = "kubed.appscode.com/origin.namespace"

# Transport-level failures the client can surface besides ApiException
_TRANSPORT_ERRORS = (urllib3.exceptions.HTTPError, OSError)


class ClusterDirectory(ABC):
    """What the refresh loop needs from the cluster."""

    @abstractmethod
    def list_namespaces(self) -> List[str]:
        """Return every namespace to scan.  Raises EnumerationError."""

    @abstractmethod
    def list_tls_sources(self, namespace: str) -> List[CertificateSource]:
        """Return the TLS sources of one namespace.  Raises EnumerationError."""

    @abstractmethod
    def fetch_certificate_payload(self, namespace: str, secret_name: str) -> Optional[bytes]:
        """
        Return the PEM bytes under `tls.crt`, or None if the key is absent.
        Raises SourceFetchError when the secret cannot be read.
        """


def _reason(exc: Exception) -> str:
    if isinstance(exc, ApiException):
        return f"{exc.status} {exc.reason}".strip()
    return f"{type(exc).__name__}: {exc}"


class KubernetesDirectory(ClusterDirectory):
    """ClusterDirectory backed by the official Kubernetes Python client."""

    def __init__(
        self,
        core_api: client.CoreV1Api,
        networking_api: Optional[client.NetworkingV1Api] = None,
        source_kind: str = "secret",
        request_timeout: float = 30.0,
        namespaces: Sequence[str] = (),
    ) -> None:
        if source_kind not in ("secret", "ingress"):
            raise ValueError(f"unknown source kind {source_kind!r}")
        if source_kind == "ingress" and networking_api is None:
            raise ValueError("ingress discovery needs a NetworkingV1Api")
        self.core = core_api
        self.networking = networking_api
        self.source_kind = source_kind
        self.request_timeout = request_timeout
        self.namespaces = list(namespaces)

    @classmethod
    def from_settings(cls, settings) -> "KubernetesDirectory":
        """Load cluster credentials the way kubectl would, then build the directory."""
        load_kube_config(settings.KUBECONFIG, settings.KUBE_CONTEXT)
        return cls(
            core_api=client.CoreV1Api(),
            networking_api=client.NetworkingV1Api(),
            source_kind=settings.SOURCE_KIND,
            request_timeout=settings.KUBE_REQUEST_TIMEOUT,
            namespaces=settings.WATCH_NAMESPACES,
        )

    # ── Enumeration ───────────────────────────────────────────────────────

    def list_namespaces(self) -> List[str]:
        if self.namespaces:
            return list(self.namespaces)
        try:
            resp = self.core.list_namespace(_request_timeout=self.request_timeout)
        except (ApiException, *_TRANSPORT_ERRORS) as exc:
            raise EnumerationError("namespaces", _reason(exc)) from exc
        return [ns.metadata.name for ns in resp.items]

    def list_tls_sources(self, namespace: str) -> List[CertificateSource]:
        try:
            if self.source_kind == "ingress":
                return self._ingress_sources(namespace)
            return self._secret_sources(namespace)
        except (ApiException, *_TRANSPORT_ERRORS) as exc:
            raise EnumerationError(f"{self.source_kind}s in namespace {namespace}", _reason(exc)) from exc

    def _secret_sources(self, namespace: str) -> List[CertificateSource]:
        resp = self.core.list_namespaced_secret(
            namespace,
            field_selector=f"type={TLS_SECRET_TYPE}",
            _request_timeout=self.request_timeout,
        )
        sources: List[CertificateSource] = []
        for secret in resp.items:
            if secret.type != TLS_SECRET_TYPE:
                continue
            labels = secret.metadata.labels or {}
            origin = labels.get(KUBED_ORIGIN_LABEL)
            if origin is not None and origin != namespace:
                logger.debug(
                    "Skipping %s/%s - replica of a secret in %s",
                    namespace, secret.metadata.name, origin,
                )
                continue
            sources.append(
                CertificateSource(
                    owner_name=secret.metadata.name,
                    namespace=namespace,
                    secret_name=secret.metadata.name,
                )
            )
        return sources

    def _ingress_sources(self, namespace: str) -> List[CertificateSource]:
        resp = self.networking.list_namespaced_ingress(
            namespace, _request_timeout=self.request_timeout
        )
        sources: List[CertificateSource] = []
        for ingress in resp.items:
            name = ingress.metadata.name
            tls_entries = ingress.spec.tls if ingress.spec and ingress.spec.tls else []
            for tls in tls_entries:
                if not tls.secret_name:
                    logger.debug("Ingress %s/%s has a TLS entry without secretName", namespace, name)
                    continue
                sources.append(
                    CertificateSource(
                        owner_name=name,
                        namespace=namespace,
                        secret_name=tls.secret_name,
                        expected_hosts=tuple(tls.hosts or ()),
                    )
                )
        return sources

    # ── Payload ───────────────────────────────────────────────────────────

    def fetch_certificate_payload(self, namespace: str, secret_name: str) -> Optional[bytes]:
        try:
            secret = self.core.read_namespaced_secret(
                secret_name, namespace, _request_timeout=self.request_timeout
            )
        except (ApiException, *_TRANSPORT_ERRORS) as exc:
            raise SourceFetchError(namespace, secret_name, _reason(exc)) from exc

        encoded = (secret.data or {}).get(TLS_CERT_KEY)
        if encoded is None:
            return None
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecodeFailure(namespace, secret_name) from exc


def load_kube_config(kubeconfig: str = "", context: str = "") -> None:
    """
    Explicit kubeconfig path wins; otherwise in-cluster service-account
    credentials, falling back to the default kubeconfig.
    """
    ctx = context or None
    if kubeconfig:
        config.load_kube_config(config_file=kubeconfig, context=ctx)
        return
    try:
        config.load_incluster_config()
    except config.ConfigException:
        logger.warning("In-cluster config unavailable, trying default kubeconfig")
        config.load_kube_config(context=ctx)
