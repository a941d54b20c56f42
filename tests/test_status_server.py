"""
Tests for the status document and the HTTP endpoint.

The server is started for real on an ephemeral port and queried with requests.
"""
from __future__ import annotations

import json
from datetime import timedelta

import pytest
import requests

from certs.classifier import classify
from certs.parser import parse_certificate
from monitor.publisher import StatusPublisher
from monitor.state import CertificateRecord, Snapshot, ThresholdConfig
from status import render
from status.server import StatusServer
from tests.conftest import NOW, make_cert_pem, source


def _record(days: int = 100) -> CertificateRecord:
    src = source("prod", "api-tls", hosts=["example.com"], owner="api")
    pem = make_cert_pem(
        not_after=NOW + timedelta(days=days),
        not_before=NOW - timedelta(days=10),
        dns_names=["example.com", "www.example.com"],
        issuer_cn="R3",
    )
    cert = parse_certificate(pem, src.namespace, src.secret_name)
    verdict = classify(cert, src.expected_hosts, ThresholdConfig(), NOW)
    return CertificateRecord(source=src, certificate=cert, verdict=verdict)


@pytest.fixture()
def publisher():
    return StatusPublisher()


@pytest.fixture()
def server(publisher):
    srv = StatusServer(publisher, host="127.0.0.1", port=0)
    srv.start()
    yield srv
    srv.stop()


def _url(srv: StatusServer, path: str = "/") -> str:
    host, port = srv.address
    return f"http://{host}:{port}{path}"


# ─── render ───────────────────────────────────────────────────────────────────


def test_document_shape():
    snap = Snapshot(generated_at=NOW, records=(_record(),))
    doc = render.snapshot_to_dict(snap)

    assert doc["lastUpdated"] == NOW.isoformat()
    assert doc["errors"] == [] and doc["warnings"] == []
    (cert_doc,) = doc["certificates"]
    assert cert_doc["name"] == "api"
    assert cert_doc["namespace"] == "prod"
    assert cert_doc["secretName"] == "api-tls"
    assert cert_doc["hosts"] == ["example.com"]
    assert "error" not in cert_doc

    nested = cert_doc["certificate"]
    assert nested["issuer"] == "R3"
    assert nested["commonNames"] == ["example.com"]
    assert nested["dnsNames"] == ["example.com", "www.example.com"]
    assert nested["daysLeft"] == 100
    assert nested["isValid"] is True
    assert nested["severity"] == "OK"
    assert nested["diagnostic"] is None
    assert nested["notAfter"] == str(NOW + timedelta(days=100))


def test_failed_record_has_null_certificate():
    rec = CertificateRecord(source=source("prod", "bad"), error="failed to decode certificate prod/bad")
    doc = render.record_to_dict(rec)
    assert doc["certificate"] is None
    assert doc["error"] == "failed to decode certificate prod/bad"


def test_initial_snapshot_document():
    doc = json.loads(render.to_json(Snapshot.empty()))
    assert doc == {"lastUpdated": "", "errors": [], "warnings": [], "certificates": []}


def test_serialization_failure_returns_error_object():
    broken = Snapshot(generated_at=NOW, warnings=(object(),))  # type: ignore[arg-type]
    doc = json.loads(render.to_json(broken))
    assert list(doc) == ["error"]


@pytest.mark.parametrize(
    "warnings, errors, code",
    [((), (), 200), (("w",), (), 201), ((), ("e",), 202), (("w",), ("e",), 202)],
)
def test_status_code(warnings, errors, code):
    assert render.status_code(Snapshot(warnings=warnings, errors=errors)) == code


# ─── HTTP ─────────────────────────────────────────────────────────────────────


def test_serves_initial_snapshot(server):
    resp = requests.get(_url(server), timeout=5)
    assert resp.status_code == 200
    assert resp.headers["Content-Type"] == "application/json"
    assert resp.json()["certificates"] == []


def test_serves_published_snapshot_with_tier(server, publisher):
    publisher.publish(Snapshot(generated_at=NOW, records=(_record(20),), warnings=("expiring",)))
    resp = requests.get(_url(server, "/status"), timeout=5)
    assert resp.status_code == 201
    body = resp.json()
    assert body["warnings"] == ["expiring"]
    assert body["certificates"][0]["certificate"]["severity"] == "WARN"

    publisher.publish(Snapshot(generated_at=NOW, errors=("failed to list namespaces: boom",)))
    resp = requests.get(_url(server), timeout=5)
    assert resp.status_code == 202
    assert resp.json()["errors"] == ["failed to list namespaces: boom"]


def test_head_has_no_body(server, publisher):
    publisher.publish(Snapshot(generated_at=NOW, errors=("e",)))
    resp = requests.head(_url(server), timeout=5)
    assert resp.status_code == 202
    assert resp.content == b""
    assert int(resp.headers["Content-Length"]) > 0


def test_server_refuses_double_start(server):
    with pytest.raises(RuntimeError):
        server.start()


def test_context_manager_stops_server(publisher):
    with StatusServer(publisher, host="127.0.0.1", port=0) as srv:
        url = _url(srv)
        assert requests.get(url, timeout=5).status_code == 200
    with pytest.raises(RuntimeError):
        _ = srv.address
