"""
Flask application factory and server entry-point.
"""

import argparse
import logging
import signal
import sys
import threading
import traceback

from flask import Flask, g, request
from flask_cors import CORS
from werkzeug.serving import make_server

from prescription_api.config import (
    API_HOST,
    API_PORT,
    GRACEFUL_TIMEOUT_SECONDS,
    SESSION_EXPIRY_HOURS,
)
from prescription_api.database import RecordStore, init_engine
from prescription_api.api.auth import install_request_gate
from prescription_api.api.routes import register_routes


class InFlightRequests:
    """Counts requests currently being served so shutdown can drain them."""

    def __init__(self):
        self._count = 0
        self._cond = threading.Condition()

    @property
    def count(self) -> int:
        with self._cond:
            return self._count

    def enter(self):
        with self._cond:
            self._count += 1

    def leave(self):
        with self._cond:
            self._count -= 1
            if self._count == 0:
                self._cond.notify_all()

    def wait_idle(self, timeout: float) -> bool:
        """Block until no request is in flight or *timeout* elapses."""
        with self._cond:
            return self._cond.wait_for(lambda: self._count == 0, timeout)


def create_app(store=None):
    """Build and return a fully configured Flask application."""
    app = Flask(__name__)
    CORS(app, supports_credentials=True)

    # ── Initialise shared resources ──────────────────────────────────
    if store is None:
        try:
            print("[init] Initializing database connection...")
            store = RecordStore(init_engine())
            print("[init] ✓ API server ready")
        except Exception as e:
            print(f"[FATAL] Failed to initialize: {e}", file=sys.stderr)
            traceback.print_exc()
            sys.exit(1)

    in_flight = InFlightRequests()
    app.extensions["record_store"] = store
    app.extensions["in_flight"] = in_flight

    # ── Request lifecycle ────────────────────────────────────────────
    @app.before_request
    def track_request():
        in_flight.enter()
        g.in_flight = True

    install_request_gate(app)

    @app.after_request
    def trace_request(response):
        app.logger.info(
            "%s %s -> %s (identity=%s)",
            request.method,
            request.path,
            response.status_code,
            getattr(request, "identity", "-"),
        )
        return response

    @app.teardown_request
    def untrack_request(exc):
        if g.pop("in_flight", False):
            in_flight.leave()

    # ── Register routes ──────────────────────────────────────────────
    register_routes(app, store)

    return app


def graceful_shutdown(app, server, timeout: float) -> bool:
    """Stop accepting, let in-flight requests finish within *timeout*, close the store.

    Returns True when every in-flight request completed in time.
    """
    server.shutdown()
    drained = app.extensions["in_flight"].wait_idle(timeout)
    server.server_close()
    app.extensions["record_store"].close()
    return drained


def main(argv=None):
    """Run the API server until SIGINT/SIGTERM, then drain and exit."""
    parser = argparse.ArgumentParser(description="Prescription records REST API")
    parser.add_argument(
        "--graceful-timeout",
        type=float,
        default=GRACEFUL_TIMEOUT_SECONDS,
        help="seconds in-flight requests may take to finish on shutdown",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    print("=" * 60)
    print("Prescription Records – REST API Server")
    print("=" * 60)

    app = create_app()

    try:
        server = make_server(API_HOST, API_PORT, app, threaded=True)
    except OSError as e:
        print(f"[FATAL] Could not listen on {API_HOST}:{API_PORT}: {e}", file=sys.stderr)
        app.extensions["record_store"].close()
        sys.exit(1)

    stop = threading.Event()

    def request_stop(signum, frame):
        stop.set()

    signal.signal(signal.SIGINT, request_stop)
    signal.signal(signal.SIGTERM, request_stop)

    print(f"\n[server] Starting API on {API_HOST}:{API_PORT}")
    print(f"[server] Session expiry: {SESSION_EXPIRY_HOURS} hours")
    print(f"[server] Graceful timeout: {args.graceful_timeout}s")
    print("\nAPI Endpoints:")
    print(f"  - POST   http://{API_HOST}:{API_PORT}/register")
    print(f"  - POST   http://{API_HOST}:{API_PORT}/login")
    print(f"  - POST   http://{API_HOST}:{API_PORT}/prescription")
    print(f"  - GET    http://{API_HOST}:{API_PORT}/prescription/<id>")
    print(f"  - PUT    http://{API_HOST}:{API_PORT}/prescription/<id>")
    print(f"  - DELETE http://{API_HOST}:{API_PORT}/prescription/<id>")
    print(f"  - GET    http://{API_HOST}:{API_PORT}/prescriptions")
    print("\n" + "=" * 60)

    worker = threading.Thread(target=server.serve_forever, name="http-server", daemon=True)
    worker.start()

    stop.wait()
    print("[server] Shutdown requested, draining in-flight requests...")
    if not graceful_shutdown(app, server, args.graceful_timeout):
        print("[server] Graceful timeout reached with requests still in flight", file=sys.stderr)
    print("[server] Server got shutdown")
    return 0


if __name__ == "__main__":
    sys.exit(main())
