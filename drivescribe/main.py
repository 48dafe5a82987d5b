"""
HTTP entrypoints for the Drive transcription pipeline.

This module exposes:

* ``app`` – a Flask application serving ``/`` and ``/process-drive``, for
  Cloud Run or ``python -m drivescribe.main``.
* ``http_trigger`` – the same handler as a Cloud Functions HTTP entrypoint.

``GET`` and ``POST`` both start a run over the input folder; Cloud Scheduler
can simply hit the URL.  ``OPTIONS`` answers CORS preflight requests.
"""

import json
import logging
import os
import traceback

from flask import Flask, Response, request

from . import auth
from .config import env_flag, get_settings
from .errors import ConfigurationError, CredentialFormatError
from .tasks import process_folder

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

app = Flask(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,OPTIONS,POST",
    "Access-Control-Allow-Headers": "Content-Type",
}
ROUTE_METHODS = ["GET", "POST", "OPTIONS", "PUT", "PATCH", "DELETE"]


def _json(body, status: int = 200) -> Response:
    return Response(json.dumps(body), status=status, mimetype="application/json", headers=CORS_HEADERS)


def _debug_enabled() -> bool:
    try:
        return get_settings().debug
    except (ConfigurationError, CredentialFormatError):
        return env_flag(os.environ.get("DEBUG"))


def build_services(settings):
    """Return ``(drive, docs, credentials)`` built from the cached credentials."""
    credentials = auth.get_credentials(settings)
    return auth.get_drive_client(settings), auth.get_docs_client(settings), credentials


def handle(req) -> Response:
    """Serve one request: CORS preflight, method check, then a full run."""
    if req.method == "OPTIONS":
        return Response("", status=200, headers=CORS_HEADERS)
    if req.method not in ("GET", "POST"):
        return _json({"error": "Method not allowed"}, 405)

    try:
        settings = get_settings()
        logger.info(json.dumps({"event": "request", "method": req.method, "folder": settings.input_folder_id}))
        drive, docs, credentials = build_services(settings)
        report = process_folder(settings, drive, docs, credentials)
        return _json(report.to_dict())
    except Exception as exc:
        logger.exception("Handler error")
        body = {"error": str(exc)}
        if _debug_enabled():
            body["stack"] = traceback.format_exc()
        return _json(body, 500)


@app.route("/", methods=ROUTE_METHODS)
@app.route("/process-drive", methods=ROUTE_METHODS)
def process_drive():
    return handle(request)


def http_trigger(req):
    """Cloud Functions HTTP entrypoint."""
    return handle(req)


if __name__ == "__main__":
    # Refuse to serve with a broken configuration.
    auth.get_credentials(get_settings())
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port)
