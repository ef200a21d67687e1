"""
Domain error taxonomy and the JSON error envelope.

Services raise the classes below for every anticipated business-rule
violation. The handlers registered by ``register_exception_handlers`` map
them by class to ``{"error": CODE, "message": ..., "details"?: ...}``.
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred"


class LarderError(Exception):
    """Base class for every error the API knows how to render."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_SERVER_ERROR"
    default_message: str = GENERIC_ERROR_MESSAGE

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


# 404 -----------------------------------------------------------------------

class NotFoundError(LarderError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_message = "Resource not found"


class HouseholdNotFoundError(NotFoundError):
    default_message = "Household not found"


class InvitationNotFoundError(NotFoundError):
    default_message = "Invitation not found"


class PantryNotFoundError(NotFoundError):
    default_message = "Pantry not found"


class ItemNotFoundError(NotFoundError):
    default_message = "Item not found"


class ShoppingListNotFoundError(NotFoundError):
    default_message = "Shopping list not found"


class RecipeNotFoundError(NotFoundError):
    default_message = "Recipe not found"


# 401 / 403 -----------------------------------------------------------------

class UnauthorizedError(LarderError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"
    default_message = "Authentication required"


class InvalidCredentialsError(UnauthorizedError):
    default_message = "Invalid email or password"


class NotOwnerError(LarderError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    default_message = "Only the household owner can perform this action"


class EmailMismatchError(LarderError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    default_message = "This invitation was sent to a different email address"


class NoHouseholdError(LarderError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "NO_HOUSEHOLD"
    default_message = "You must belong to a household to manage recipes"


# 409 -----------------------------------------------------------------------

class ConflictError(LarderError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    default_message = "Request conflicts with the current state"


class AlreadyOwnerError(ConflictError):
    default_message = "You already own a household"


class AlreadyMemberError(ConflictError):
    default_message = "User is already a member of this household"


class InvitationAlreadyExistsError(ConflictError):
    default_message = "A pending invitation already exists for this email"


class HasOtherMembersError(ConflictError):
    default_message = "Household still has other members"


class EmailAlreadyRegisteredError(ConflictError):
    default_message = "An account with this email already exists."


# 400 -----------------------------------------------------------------------

class ValidationError(LarderError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"


class InvitationExpiredError(LarderError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "EXPIRED_TOKEN"
    default_message = "Invitation has expired"


class InvitationAlreadyUsedError(LarderError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_TOKEN"
    default_message = "Invitation has already been used"


class DuplicateItemError(LarderError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "DUPLICATE_ITEM"
    default_message = "Some items already exist"

    def __init__(self, duplicate_names, message: Optional[str] = None):
        self.duplicate_names = list(duplicate_names)
        super().__init__(
            message or f"Items already exist: {', '.join(self.duplicate_names)}",
            details={"duplicateNames": self.duplicate_names},
        )


class EmptyUpdateError(LarderError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "EMPTY_UPDATE"
    default_message = "At least one field must be provided"


# 500 -----------------------------------------------------------------------

class ServiceError(LarderError):
    """Store or provisioning failure. The message is logged, never rendered."""


class HouseholdCreationError(ServiceError):
    default_message = "Failed to create household"


class InvitationAcceptanceError(ServiceError):
    default_message = "Failed to accept invitation"


class TransferToPantryError(ServiceError):
    default_message = "Failed to transfer item to pantry"


class AIGenerationError(LarderError):
    """Base for text-generation provider failures; all render as 500."""

    code = "AI_PROVIDER_ERROR"
    public_message = "Recipe generation failed. Please try again later."
    default_message = "Text generation provider error"


class RecipeSchemaViolationError(AIGenerationError):
    """The provider returned valid JSON that is not a usable recipe."""

    code = "AI_SCHEMA_VIOLATION"
    default_message = "Generated recipe does not match the recipe schema"


def _envelope(code: str, message: str, details: Any = None) -> dict:
    body = {"error": code, "message": message}
    if details is not None:
        body["details"] = details
    return body


async def larder_error_handler(request: Request, exc: LarderError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        message = getattr(exc, "public_message", GENERIC_ERROR_MESSAGE)
        return JSONResponse(status_code=exc.status_code, content=_envelope(exc.code, message))
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(exc.code, exc.message, exc.details),
    )


async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_envelope("VALIDATION_ERROR", "Validation failed", details),
    )


_HTTP_STATUS_CODES = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code = _HTTP_STATUS_CODES.get(exc.status_code, "INTERNAL_SERVER_ERROR" if exc.status_code >= 500 else "ERROR")
    message = exc.detail if isinstance(exc.detail, str) else GENERIC_ERROR_MESSAGE
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(code, message),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_envelope("INTERNAL_SERVER_ERROR", GENERIC_ERROR_MESSAGE),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LarderError, larder_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
