"""
DNI Lookup - HTTP service

Endpoints:
  GET      /healthz      liveness + configured target
  GET|POST /api/buscar   nombres, apellido_paterno, apellido_materno (+ company honeypot)

Run:
  python -m dnl.server --config config/example.yaml
"""
from __future__ import annotations

import argparse
import asyncio
import atexit
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from dnilookup.config import ConfigError, Settings, load_settings
from dnilookup.pipeline.query import ERROR_MESSAGES, QueryPipeline, build_pipeline
from dnilookup.schemas import QueryError, SearchQuery, SearchResponse


STATUS_BY_ERROR = {
    QueryError.INVALID_INPUT: 400,
    QueryError.UPSTREAM_UNAVAILABLE: 502,
    QueryError.BLOCKED_BY_DEFENSES: 429,
    QueryError.INTERNAL_ERROR: 500,
}


class LoopRunner:
    """Owns one asyncio loop on a daemon thread.

    Flask handlers are synchronous; every pipeline coroutine is submitted to
    this single loop so the shared browser stays bound to it.
    """

    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._serve, name="dnl-loop", daemon=True)
        self._thread.start()

    def _serve(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def run(self, coro, timeout: Optional[float] = None):
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def stop(self) -> None:
        if self.loop.is_closed():
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)
        if not self._thread.is_alive():
            self.loop.close()


def read_search_input() -> SearchQuery:
    """Merge query string, form body and JSON body (body wins)."""
    data = dict(request.args.items())
    data.update(request.form.items())
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        data.update(body)
    return SearchQuery(
        nombres=data.get("nombres"),
        apellido_paterno=data.get("apellido_paterno"),
        apellido_materno=data.get("apellido_materno"),
        company=data.get("company"),
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    pipeline: Optional[QueryPipeline] = None,
    runner: Optional[LoopRunner] = None,
) -> Flask:
    settings = settings or load_settings()
    pipeline = pipeline or build_pipeline(settings)
    runner = runner or LoopRunner()

    app = Flask(__name__)
    CORS(app)
    app.config["DNL_SETTINGS"] = settings
    app.extensions["dnl_pipeline"] = pipeline
    app.extensions["dnl_runner"] = runner

    @app.get("/healthz")
    def healthz():
        return jsonify({
            "ok": True,
            "target": settings.target_url,
            "ts": datetime.now(timezone.utc).isoformat(),
        })

    @app.route("/api/buscar", methods=["GET", "POST"])
    def buscar():
        try:
            query = read_search_input()
            result = runner.run(pipeline.run(query))
        except Exception as e:
            print(f"Error /api/buscar: {e}", file=sys.stderr)
            return jsonify({"ok": False, "error": ERROR_MESSAGES[QueryError.INTERNAL_ERROR]}), 500

        if result.ok:
            return jsonify(SearchResponse.from_items(result.items).to_wire())
        if result.error == QueryError.INTERNAL_ERROR:
            print(f"Error /api/buscar: {result.message}", file=sys.stderr)
        return jsonify({"ok": False, "error": ERROR_MESSAGES[result.error]}), STATUS_BY_ERROR[result.error]

    return app


def shutdown(app: Flask) -> None:
    """Close the shared browser and stop the loop thread."""
    runner: LoopRunner = app.extensions["dnl_runner"]
    pipeline: QueryPipeline = app.extensions["dnl_pipeline"]
    if runner.loop.is_closed():
        return
    try:
        runner.run(pipeline.close(), timeout=15)
    except Exception as e:
        print(f"shutdown: browser close failed: {e}", file=sys.stderr)
    runner.stop()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="dnl.server", description="DNI lookup HTTP service")
    parser.add_argument("--config", "-c", default=None, help="Path to YAML config file")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address (default 0.0.0.0)")
    args = parser.parse_args(argv)

    try:
        settings = load_settings(Path(args.config) if args.config else None)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1

    app = create_app(settings)
    atexit.register(shutdown, app)
    print(f"Listening on http://localhost:{settings.port}")
    print(f"Target: {settings.target_url}")
    app.run(host=args.host, port=settings.port, debug=False, use_reloader=False)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
