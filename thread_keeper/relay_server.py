"""
Loopback HTTP relay that receives tab snapshots from the browser extension.

Endpoints:
    GET  /ping   liveness, no auth
    GET  /token  current bearer token (origin-filtered only)
    POST /tabs   replace the latest tab snapshot (bearer required, 1 MiB cap)
    GET  /tabs   read the latest tab snapshot (bearer required)

Requests carrying an ``Origin`` header that is not a browser-extension origin
are rejected with 403 before authentication is looked at.
"""

import hmac
import json
import logging
import os
import re
import secrets
import threading
from pathlib import Path
from typing import Any, Optional, Tuple

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.serving import make_server

from .models import RelayTab
from .utils.urls import is_http_url

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 1024 * 1024
TOKEN_BYTES = 32
_ALLOWED_ORIGIN = re.compile(r"^(chrome-extension|moz-extension|extension)://")


def is_allowed_origin(origin: Optional[str]) -> bool:
    """No Origin header means a non-browser client; otherwise only extension schemes."""
    if not origin:
        return True
    return bool(_ALLOWED_ORIGIN.match(origin))


def parse_relay_tabs(payload: Any) -> Optional[Tuple[RelayTab, ...]]:
    """
    Validate a pushed payload.

    Returns None when the payload is not a JSON array; otherwise the entries
    with an http(s) URL, everything else dropped.
    """
    if not isinstance(payload, list):
        return None
    tabs = []
    for item in payload:
        if not isinstance(item, dict) or not is_http_url(item.get("url")):
            continue
        window_id = item.get("windowId")
        tabs.append(RelayTab(
            url=item["url"],
            title=str(item.get("title") or ""),
            active=bool(item.get("active", False)),
            window_id=window_id if isinstance(window_id, int) and not isinstance(window_id, bool) else None,
        ))
    return tuple(tabs)


def _text(body: str, status: int) -> Response:
    return Response(body, status=status, mimetype="text/plain")


class TabRelayService:
    """
    Owns the relay HTTP app and the latest tab snapshot.

    The snapshot is an immutable tuple replaced by reference on every accepted
    push, so readers always see a complete array.
    """

    def __init__(self, port: int = 9224, host: str = "127.0.0.1", token_file: Optional[Path] = None):
        self.port = port
        self.host = host
        self.token_file = Path(token_file) if token_file else None
        self._tabs: Tuple[RelayTab, ...] = ()
        self._token = secrets.token_hex(TOKEN_BYTES)
        self._server = None
        self._thread: Optional[threading.Thread] = None
        self.app = self._create_app()

    # -- snapshot access -------------------------------------------------

    def latest_tabs(self) -> Tuple[RelayTab, ...]:
        """Most recent snapshot pushed by the extension."""
        return self._tabs

    def has_tabs(self) -> bool:
        return len(self._tabs) > 0

    @property
    def token(self) -> str:
        return self._token

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -- HTTP app ----------------------------------------------------------

    def _is_authorized(self) -> bool:
        header = request.headers.get("Authorization", "")
        scheme, _, value = header.partition(" ")
        if scheme != "Bearer" or not value:
            return False
        return hmac.compare_digest(value.strip(), self._token)

    def _create_app(self) -> Flask:
        app = Flask("thread_keeper_relay")
        app.config["MAX_CONTENT_LENGTH"] = MAX_BODY_BYTES

        @app.before_request
        def reject_foreign_origins():
            if not is_allowed_origin(request.headers.get("Origin")):
                return _text("Forbidden", 403)
            if request.method == "OPTIONS":
                return ("", 204)
            return None

        @app.after_request
        def add_cors_headers(response):
            origin = request.headers.get("Origin")
            if origin and is_allowed_origin(origin):
                response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
            response.headers["Vary"] = "Origin"
            return response

        @app.errorhandler(RequestEntityTooLarge)
        def too_large(_error):
            response = _text("Request entity too large", 413)
            response.headers["Connection"] = "close"
            return response

        @app.errorhandler(404)
        @app.errorhandler(405)
        def not_found(_error):
            return _text("Not Found", 404)

        @app.get("/ping")
        def ping():
            return _text("ThreadKeeper relay OK", 200)

        @app.get("/token")
        def token():
            return _text(self._token, 200)

        @app.post("/tabs")
        def push_tabs():
            if not self._is_authorized():
                return _text("Unauthorized", 401)
            body = request.get_data(cache=False)
            try:
                payload = json.loads(body or b"null")
            except ValueError:
                logger.warning("Relay: ignoring malformed tab payload")
                return _text("ok", 200)
            tabs = parse_relay_tabs(payload)
            if tabs is None:
                logger.warning("Relay: ignoring non-array tab payload")
                return _text("ok", 200)
            self._tabs = tabs
            logger.info("Relay: %d tabs received from extension", len(tabs))
            return _text("ok", 200)

        @app.get("/tabs")
        def read_tabs():
            if not self._is_authorized():
                return _text("Unauthorized", 401)
            return jsonify([tab.to_dict() for tab in self._tabs])

        return app

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> bool:
        """
        Start serving on the loopback interface in a background thread.

        A fresh token is generated on every start. Returns False when the port
        is unavailable; capture then falls back to the other tab sources.
        """
        if self.is_running():
            return True
        self._token = secrets.token_hex(TOKEN_BYTES)
        try:
            self._server = make_server(self.host, self.port, self.app, threaded=True)
        except OSError as e:
            logger.warning("Tab relay port %d unavailable, relay disabled: %s", self.port, e)
            self._server = None
            return False

        self._write_token_file()
        self._thread = threading.Thread(target=self._server.serve_forever, name="tab-relay", daemon=True)
        self._thread.start()
        logger.info("Tab relay server started on %s:%d", self.host, self.port)
        return True

    def stop(self) -> None:
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
        if self.token_file is not None:
            try:
                self.token_file.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Could not remove relay token file: %s", e)

    def _write_token_file(self) -> None:
        """Expose the token to the extension's native side with owner-only permissions."""
        if self.token_file is None:
            return
        try:
            self.token_file.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.token_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(self._token)
            os.chmod(self.token_file, 0o600)
        except OSError as e:
            logger.warning("Failed to write relay token file: %s", e)
