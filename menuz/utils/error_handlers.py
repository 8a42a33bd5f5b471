"""
HTTP Error Handlers
-------------------
Every error leaves the API as ``{"error": "<code>"}``, plus ``"detail"``
when there is something a client can show or log.

Usage:
    from menuz.utils.error_handlers import ApiError, json_body, register_error_handlers

    register_error_handlers(app)

    raise ApiError("job_not_found", 404)
"""

from __future__ import annotations

import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

logger = logging.getLogger("menuz.errors")


class ApiError(Exception):
    """An error with a machine-readable code and the HTTP status to answer with."""

    def __init__(self, code: str, status: int = 400, detail: str | None = None, extra: dict | None = None):
        super().__init__(f"{code} ({status}){': ' + detail if detail else ''}")
        self.code = code
        self.status = status
        self.detail = detail
        self.extra = extra or {}

    def to_dict(self) -> dict:
        body = {"error": self.code}
        if self.detail:
            body["detail"] = self.detail
        body.update(self.extra)
        return body


def json_body() -> dict:
    """The request's JSON object, {} when absent. Arrays and scalars are a 400."""
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ApiError("bad_request", 400, "expected a JSON object")
    return body


def make_error_response(code: str, status: int, detail: str | None = None):
    body = {"error": code}
    if detail:
        body["detail"] = detail
    return jsonify(body), status


def handle_api_error(e: ApiError):
    if e.status >= 500:
        logger.warning("[API] %s -> %s %s", e.code, e.status, e.detail or "")
    return jsonify(e.to_dict()), e.status


def handle_http_exception(e: HTTPException):
    codes = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        413: "payload_too_large",
    }
    return make_error_response(codes.get(e.code, "http_error"), e.code or 500)


def handle_internal_error(e: Exception):
    logger.exception("[API] Unhandled error: %s", e)
    return make_error_response("internal_error", 500)


def register_error_handlers(app) -> None:
    app.register_error_handler(ApiError, handle_api_error)
    app.register_error_handler(HTTPException, handle_http_exception)
    app.register_error_handler(Exception, handle_internal_error)
