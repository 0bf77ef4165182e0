# Overview: Domain error taxonomy shared by services and routes.

from __future__ import annotations

from flask import current_app, jsonify


class BackofficeError(Exception):
    """
    Base class for every failure the back-office reports to a caller.

    Each subclass carries a machine-readable `kind` and the HTTP status the
    routes answer with. `details` is optional structured context (e.g. the
    allowed statuses) and is safe to expose.
    """
    kind = "InternalError"
    http_status = 500

    def __init__(self, message: str, *, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"kind": self.kind, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class InvalidStatusError(BackofficeError):
    kind = "InvalidStatus"
    http_status = 400


class NotFoundError(BackofficeError):
    kind = "NotFound"
    http_status = 404


class IllegalTransitionError(BackofficeError):
    kind = "IllegalTransition"
    http_status = 400


class StaleOrderModificationError(BackofficeError):
    kind = "StaleOrderModification"
    http_status = 400


class DeletionRestrictedError(BackofficeError):
    kind = "DeletionRestricted"
    http_status = 400


class InternalError(BackofficeError):
    """Store or infrastructure failure. The message is generic by default."""
    kind = "InternalError"
    http_status = 500


class ValidationError(BackofficeError):
    """400-level input problem on intake and inventory endpoints."""
    kind = "ValidationError"
    http_status = 400


class InsufficientStockError(ValidationError):
    pass


class UnauthorizedError(BackofficeError):
    kind = "Unauthorized"
    http_status = 401


def error_response(exc: BackofficeError):
    """(body, status) pair in the shape every route answers failures with."""
    return jsonify({"error": exc.to_dict()}), exc.http_status


def internal_error_response(exc: Exception | None = None):
    """Generic 500 body. Exception text is only included in development mode."""
    err = InternalError("Internal server error")
    if exc is not None and current_app.config.get("EXPOSE_ERROR_DETAILS"):
        err.details = {"exception": f"{type(exc).__name__}: {exc}"}
    return jsonify({"error": err.to_dict()}), err.http_status
