"""
Refresh loop - one self-contained cycle per interval.

Each cycle:
  1. list namespaces, then the TLS sources of each namespace
  2. fetch each source's `tls.crt`
  3. parse it
  4. classify it and collect warnings/errors
  5. publish a brand-new Snapshot stamped with the cycle's start time

Failures of one namespace or one source are recorded as errors and the cycle
moves on.  A failed namespace listing still publishes a Snapshot (no records,
one error): the snapshot mirrors what is visible now, not the last good state.
"""
from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from certs.classifier import classify, describe_source, snapshot_messages
from certs.parser import parse_certificate
from cluster.directory import ClusterDirectory
from monitor.errors import CertMonitorError, EnumerationError, ParseError
from monitor.publisher import StatusPublisher
from monitor.state import CertificateRecord, CertificateSource, Snapshot, ThresholdConfig

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _unexpected(scope: str, exc: Exception) -> EnumerationError:
    return EnumerationError(scope, f"{type(exc).__name__}: {exc}")


class RefreshLoop:
    def __init__(
        self,
        directory: ClusterDirectory,
        publisher: StatusPublisher,
        thresholds: ThresholdConfig,
        interval: float = 60,
        hostname_mismatch_is_error: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.directory = directory
        self.publisher = publisher
        self.thresholds = thresholds
        self.interval = interval
        self.hostname_mismatch_is_error = hostname_mismatch_is_error
        self.clock = clock

    # ── One cycle ─────────────────────────────────────────────────────────

    def collect(self, now: datetime) -> Snapshot:
        """Build a Snapshot of the cluster as seen at *now*.  Touches no shared state."""
        records: List[CertificateRecord] = []
        warnings: List[str] = []
        errors: List[str] = []

        try:
            namespaces = self.directory.list_namespaces()
        except EnumerationError as exc:
            return Snapshot(generated_at=now, errors=(str(exc),))
        except Exception as exc:
            logger.exception("Unexpected failure while listing namespaces")
            return Snapshot(generated_at=now, errors=(str(_unexpected("namespaces", exc)),))

        for namespace in namespaces:
            try:
                sources = self.directory.list_tls_sources(namespace)
            except EnumerationError as exc:
                errors.append(str(exc))
                continue
            except Exception as exc:
                logger.exception("Unexpected failure while listing sources in %s", namespace)
                errors.append(str(_unexpected(f"tls sources in namespace {namespace}", exc)))
                continue

            for source in sources:
                record = self._process(source, now, warnings, errors)
                if record is not None:
                    records.append(record)

        return Snapshot(
            generated_at=now,
            records=tuple(records),
            warnings=tuple(warnings),
            errors=tuple(errors),
        )

    def _process(
        self,
        source: CertificateSource,
        now: datetime,
        warnings: List[str],
        errors: List[str],
    ) -> Optional[CertificateRecord]:
        """
        Fetch, parse and classify one source.

        Returns None when the secret could not be fetched (the source is left
        out of the snapshot); a record without certificate when parsing failed.
        """
        try:
            payload = self.directory.fetch_certificate_payload(source.namespace, source.secret_name)
            cert = parse_certificate(payload, source.namespace, source.secret_name)
        except ParseError as exc:
            errors.append(str(exc))
            return CertificateRecord(source=source, error=str(exc))
        except CertMonitorError as exc:
            errors.append(str(exc))
            return None
        except Exception as exc:
            logger.exception("Unexpected failure while reading %s", source.ref)
            errors.append(f"{describe_source(source, None)} could not be processed: {exc}")
            return None

        verdict = classify(cert, source.expected_hosts, self.thresholds, now)
        cert_warnings, cert_errors = snapshot_messages(
            source, cert, verdict, self.hostname_mismatch_is_error
        )
        warnings.extend(cert_warnings)
        errors.extend(cert_errors)
        if verdict.mismatched_hosts:
            logger.warning(
                "%s does not cover: %s",
                describe_source(source, cert),
                ", ".join(verdict.mismatched_hosts),
            )
        return CertificateRecord(source=source, certificate=cert, verdict=verdict)

    def run_cycle(self) -> Snapshot:
        """Collect and publish one Snapshot, logging what it found."""
        started = time.monotonic()
        now = self.clock()
        logger.info("Fetching secrets with certificate data.")

        snapshot = self.collect(now)
        version = self.publisher.publish(snapshot)

        for err in snapshot.errors:
            logger.error("Error: %s", err)
        for warn in snapshot.warnings:
            logger.warning("Warning: %s", warn)

        elapsed = time.monotonic() - started
        logger.info(
            "Fetched %d tls sources in %.1f seconds (version=%d warnings=%d errors=%d).",
            len(snapshot.records), elapsed, version, len(snapshot.warnings), len(snapshot.errors),
        )
        return snapshot

    # ── Forever ───────────────────────────────────────────────────────────

    def run_forever(self, stop_event: Optional[threading.Event] = None) -> None:
        """
        Run cycles back to back with `interval` seconds of sleep in between.

        *stop_event* exists for tests and clean shutdown; without it the loop
        never returns.
        """
        stop_event = stop_event or threading.Event()
        while not stop_event.is_set():
            try:
                self.run_cycle()
            except Exception as exc:
                logger.exception("Refresh cycle failed: %s", exc)
                self.publisher.publish(
                    Snapshot(generated_at=self.clock(), errors=(f"refresh cycle failed: {exc}",))
                )
            stop_event.wait(self.interval)

    def start(self, stop_event: Optional[threading.Event] = None) -> threading.Thread:
        """Run the loop in a daemon thread and return the thread."""
        thread = threading.Thread(
            target=self.run_forever,
            args=(stop_event,),
            name="refresh-loop",
            daemon=True,
        )
        thread.start()
        return thread
