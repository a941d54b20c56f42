"""
Kubernetes certificate monitor - CLI entry point.

Usage:
  python main.py                # Refresh in the background and serve the status endpoint
  python main.py --serve        # Same as above
  python main.py --once         # Run one refresh cycle, print the JSON and exit
                                # with 0 (ok) / 1 (warnings) / 2 (errors)
"""
from __future__ import annotations

import argparse
import logging
import sys
import threading

import structlog
from pydantic import ValidationError

log = logging.getLogger(__name__)

_EXIT_CODES = {200: 0, 201: 1, 202: 2}


# ── Logging setup ─────────────────────────────────────────────────────────────


def configure_logging(level: str = "INFO") -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    # Events go through stdlib logging; stdout carries only the --once document.
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _load_settings():
    try:
        from config import settings
    except ValidationError as exc:
        print(f"Error parsing config: {exc}", file=sys.stderr)
        sys.exit(1)
    return settings


def _build_loop(settings, publisher):
    from cluster.directory import KubernetesDirectory
    from monitor.refresh import RefreshLoop

    try:
        directory = KubernetesDirectory.from_settings(settings)
    except Exception as exc:
        log.error("Error connecting to kubernetes: %s", exc)
        sys.exit(1)

    return RefreshLoop(
        directory=directory,
        publisher=publisher,
        thresholds=settings.thresholds(),
        interval=settings.UPDATE_INTERVAL,
        hostname_mismatch_is_error=settings.HOSTNAME_MISMATCH_IS_ERROR,
    )


# ── Runners ───────────────────────────────────────────────────────────────────


def run_once() -> int:
    """Run a single refresh cycle, print the status document, return the exit code."""
    from monitor.publisher import StatusPublisher
    from status import render

    settings = _load_settings()
    configure_logging(settings.LOG_LEVEL)

    publisher = StatusPublisher()
    snapshot = _build_loop(settings, publisher).run_cycle()
    print(render.to_json(snapshot))
    return _EXIT_CODES[render.status_code(snapshot)]


def run_server() -> None:
    """Refresh in a background thread and serve the status endpoint until interrupted."""
    from monitor.publisher import StatusPublisher
    from status.server import StatusServer

    settings = _load_settings()
    configure_logging(settings.LOG_LEVEL)

    log.info(
        "Watching %s objects every %ds (critical <= %d days, warn < %d days)",
        settings.SOURCE_KIND,
        settings.UPDATE_INTERVAL,
        settings.DAYS_LEFT_CRITICAL_THRESHOLD,
        settings.DAYS_LEFT_WARN_THRESHOLD,
    )

    publisher = StatusPublisher()
    stop = threading.Event()
    _build_loop(settings, publisher).start(stop)

    server = StatusServer(publisher, host=settings.LISTEN_HOST, port=settings.LISTEN_PORT)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        log.info("Interrupted - shutting down")
    except OSError as exc:
        log.error("Failed to start webserver on port %d: %s", settings.LISTEN_PORT, exc)
        sys.exit(1)
    finally:
        stop.set()


# ── CLI ───────────────────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Kubernetes TLS certificate monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration is read from the environment (or .env):
  KUBECONFIG, KUBE_CONTEXT, SOURCE_KIND, WATCH_NAMESPACES, UPDATE_INTERVAL,
  LISTEN_HOST, LISTEN_PORT, DAYS_LEFT_CRITICAL_THRESHOLD,
  DAYS_LEFT_WARN_THRESHOLD, HOSTNAME_MISMATCH_IS_ERROR, LOG_LEVEL
        """,
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--serve",
        action="store_true",
        help="Refresh periodically and serve the status endpoint (default)",
    )
    mode.add_argument(
        "--once",
        action="store_true",
        help="Run one refresh cycle, print the status JSON and exit",
    )

    args = parser.parse_args(argv)

    if args.once:
        sys.exit(run_once())
    run_server()


if __name__ == "__main__":
    main()
