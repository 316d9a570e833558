"""
API error taxonomy.

Every error raised out of a view is an ApiError subclass; the handlers registered by
register_error_handlers() turn it into a JSON body with the matching HTTP status.
"""

from __future__ import annotations

from typing import Any

from flask import Flask, g, jsonify
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    status_code = 500
    default_message = "Request failed"

    def __init__(self, message: str | None = None, *, errors: list[Any] | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.errors = errors

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class AuthenticationRequired(ApiError):
    status_code = 401
    default_message = "Not authenticated"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class ValidationFailed(ApiError):
    status_code = 400
    default_message = "Invalid request data"


class TransitionRejected(ValidationFailed):
    status_code = 409
    default_message = "Transition not allowed"


class UploadRejected(ApiError):
    status_code = 400
    default_message = "Upload rejected"


class UploadTooLarge(UploadRejected):
    status_code = 413
    default_message = "File too large. Maximum size is 10MB."


class RateLimited(ApiError):
    status_code = 429
    default_message = "Too many attempts"


class InternalFailure(ApiError):
    status_code = 500
    default_message = "Internal server error"


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):  # type: ignore[no-redef]
        if e.status_code >= 500:
            app.logger.error("%s (request_id=%s)", e.message, getattr(g, "request_id", None))
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        return jsonify(UploadTooLarge().to_dict()), 413

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):  # type: ignore[no-redef]
        return jsonify({"message": e.description or e.name}), e.code or 500

    @app.errorhandler(Exception)
    def _err_500(e: Exception):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify(InternalFailure().to_dict()), 500
