"""
Tests for environment-driven configuration.
"""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from config import Settings
from monitor.state import ThresholdConfig


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)  # no stray .env
    for key in (
        "KUBECONFIG", "KUBE_CONTEXT", "UPDATE_INTERVAL", "LISTEN_PORT", "LISTEN_HOST",
        "DAYS_LEFT_CRITICAL_THRESHOLD", "DAYS_LEFT_WARN_THRESHOLD", "SOURCE_KIND",
        "WATCH_NAMESPACES", "KUBE_REQUEST_TIMEOUT", "HOSTNAME_MISMATCH_IS_ERROR", "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    s = Settings()
    assert s.UPDATE_INTERVAL == 60
    assert s.LISTEN_PORT == 8080
    assert s.DAYS_LEFT_CRITICAL_THRESHOLD == 3
    assert s.DAYS_LEFT_WARN_THRESHOLD == 30
    assert s.SOURCE_KIND == "secret"
    assert s.WATCH_NAMESPACES == []
    assert s.HOSTNAME_MISMATCH_IS_ERROR is False
    assert s.thresholds() == ThresholdConfig(critical_days_left=3, warn_days_left=30)


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("UPDATE_INTERVAL", "15")
    monkeypatch.setenv("DAYS_LEFT_CRITICAL_THRESHOLD", "7")
    monkeypatch.setenv("DAYS_LEFT_WARN_THRESHOLD", "21")
    monkeypatch.setenv("SOURCE_KIND", "ingress")
    monkeypatch.setenv("hostname_mismatch_is_error", "true")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    s = Settings()
    assert s.UPDATE_INTERVAL == 15
    assert s.thresholds() == ThresholdConfig(critical_days_left=7, warn_days_left=21)
    assert s.SOURCE_KIND == "ingress"
    assert s.HOSTNAME_MISMATCH_IS_ERROR is True
    assert s.LOG_LEVEL == "DEBUG"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("prod, staging ,", ["prod", "staging"]),
        ('["prod", "staging"]', ["prod", "staging"]),
        ("prod", ["prod"]),
    ],
)
def test_watch_namespaces_formats(monkeypatch, raw, expected):
    monkeypatch.setenv("WATCH_NAMESPACES", raw)
    assert Settings().WATCH_NAMESPACES == expected


@pytest.mark.parametrize(
    "key, value",
    [
        ("DAYS_LEFT_CRITICAL_THRESHOLD", "-1"),
        ("DAYS_LEFT_WARN_THRESHOLD", "-5"),
        ("UPDATE_INTERVAL", "0"),
        ("KUBE_REQUEST_TIMEOUT", "0"),
        ("SOURCE_KIND", "gateway"),
        ("LISTEN_PORT", "70000"),
    ],
)
def test_invalid_values_rejected(monkeypatch, key, value):
    monkeypatch.setenv(key, value)
    with pytest.raises(ValidationError):
        Settings()


def test_unreachable_warn_tier_only_warns(monkeypatch):
    monkeypatch.setenv("DAYS_LEFT_CRITICAL_THRESHOLD", "10")
    monkeypatch.setenv("DAYS_LEFT_WARN_THRESHOLD", "10")
    with pytest.warns(UserWarning, match="WARN"):
        s = Settings()
    assert s.thresholds().warn_days_left == 10
