"""
Base utilities for the geyser API blueprint.

Provides the geyser lookup, the response envelope shared by every endpoint
and the mapping from geyser exceptions to HTTP status codes.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Dict, Optional, Tuple, Type

from flask import current_app, jsonify, request
from pydantic import BaseModel, ValidationError

from geyser.core.geyser_exceptions import (
    AuthorizationError,
    GeyserError,
    InputValidationError,
    StateError,
    TokenError,
    get_error_context,
)

logger = logging.getLogger(__name__)

GEYSER_CONFIG_KEY = "GEYSER"


def get_geyser() -> Any:
    """Get the TokenGeyser served by the current app."""
    return current_app.config[GEYSER_CONFIG_KEY]


def success_response(payload: Dict[str, Any], status: int = 200) -> Tuple[Any, int]:
    """Return a success payload with consistent structure."""
    body = {"success": True, **payload}
    return jsonify(body), status


def error_response(
    message: str,
    status: int = 400,
    code: str = "bad_request",
    context: Optional[Dict[str, Any]] = None,
) -> Tuple[Any, int]:
    """Return an error payload and log it."""
    level = logging.ERROR if status >= 500 else logging.WARNING
    logger.log(
        level,
        "Geyser API error",
        extra={"event": "geyser.api_error", "code": code, "status": status, **(context or {})},
    )
    return jsonify({"success": False, "error": message, "code": code}), status


def handle_geyser_error(error: GeyserError) -> Tuple[Any, int]:
    """Map a geyser exception to its HTTP status."""
    if isinstance(error, AuthorizationError):
        status, code = 403, "unauthorized"
    elif isinstance(error, StateError):
        status, code = 409, "invalid_state"
    elif isinstance(error, TokenError):
        status, code = 400, "token_error"
    elif isinstance(error, InputValidationError):
        status, code = 400, "invalid_input"
    else:
        status, code = 400, "bad_request"
    return error_response(error.message, status=status, code=code, context=get_error_context(error))


def validate_body(model: Type[BaseModel]) -> Callable:
    """
    Decorator parsing the JSON body into `model`.

    The parsed model is passed to the handler as its first argument; invalid
    bodies get a 400 before the handler runs.
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            payload = request.get_json(silent=True)
            if not isinstance(payload, dict):
                return error_response("Request body must be a JSON object", code="invalid_json")
            try:
                parsed = model.model_validate(payload)
            except ValidationError as exc:
                first = exc.errors()[0]
                field_name = ".".join(str(part) for part in first.get("loc", ()))
                return error_response(
                    f"Invalid {field_name}: {first.get('msg')}", code="validation_error"
                )
            return f(parsed, *args, **kwargs)

        return decorated_function

    return decorator
