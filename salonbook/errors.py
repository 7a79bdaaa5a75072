"""Error kinds raised by the scheduling core and the store layer."""
from __future__ import annotations

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException


class SchedulingError(Exception):
    """Base class; subclasses carry a stable code, HTTP status and message."""

    code = "scheduling_error"
    status = 400
    default_message = "Request could not be processed."

    def __init__(self, message: str | None = None, **details: object) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"error": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidInput(SchedulingError):
    code = "invalid_input"
    status = 400
    default_message = "Invalid input."


class OutOfSalonHours(SchedulingError):
    code = "out_of_salon_hours"
    status = 422
    default_message = "The requested time is outside salon opening hours."


class OutsideShift(SchedulingError):
    code = "outside_shift"
    status = 422
    default_message = "The requested time is outside the employee's shift."


class SlotTaken(SchedulingError):
    """Retriable: the caller should reload availability and pick again."""

    code = "slot_taken"
    status = 409
    default_message = "This time slot was just taken. Please choose another one."


class StoreUnavailable(SchedulingError):
    code = "store_unavailable"
    status = 503
    default_message = "Something went wrong. Please try again."


class NotFound(SchedulingError):
    code = "not_found"
    status = 404
    default_message = "Resource not found."


class InvalidTransition(SchedulingError):
    code = "invalid_transition"
    status = 400
    default_message = "This status change is not allowed."


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(SchedulingError)
    def handle_scheduling_error(exc: SchedulingError):
        if isinstance(exc, StoreUnavailable):
            app.logger.error("Store unavailable: %s", exc.details or exc.message)
        return jsonify(exc.to_dict()), exc.status

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        code = (exc.name or "error").lower().replace(" ", "_")
        return jsonify({"error": code, "message": exc.description}), exc.code
