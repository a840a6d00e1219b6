"""
Domain error taxonomy

Services raise these instead of HTTPException so the same rules hold for HTTP
handlers, the Stripe callback and the background worker. main.py maps every
AppError onto a structured JSON payload using status_code/code/details.
"""

from typing import Any, Optional


class AppError(Exception):
    """Base class for all expected failures"""

    status_code = 500
    code = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        details: Optional[list[dict[str, Any]]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or []
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return {"error": payload}


class ValidationError(AppError):
    """Malformed or out-of-policy input, rejected before any external call"""

    status_code = 400
    code = "validation_error"


class AuthorizationError(AppError):
    status_code = 403
    code = "forbidden"


class AuthenticationError(AuthorizationError):
    status_code = 401
    code = "unauthenticated"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class ConflictError(AppError):
    """State-guard violation (already signed, already refunded, ...)"""

    status_code = 409
    code = "conflict"


class OrderCreationError(AppError):
    status_code = 400
    code = "order_creation_failed"


class RefundError(AppError):
    """Refund rejected by a precondition; no gateway call was made"""

    status_code = 400
    code = "refund_rejected"


class GatewayError(AppError):
    """Payment processor call failed or timed out"""

    status_code = 502
    code = "gateway_error"

    def __init__(
        self,
        message: str,
        *,
        request_id: Optional[str] = None,
        retryable: bool = False,
        details: Optional[list[dict[str, Any]]] = None,
    ):
        super().__init__(message, details=details)
        self.request_id = request_id
        self.retryable = retryable

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["error"]["retryable"] = self.retryable
        if self.request_id:
            payload["error"]["gateway_request_id"] = self.request_id
        return payload


class PersistenceError(AppError):
    """Database write or transaction failure; the transition was rolled back"""

    status_code = 500
    code = "persistence_error"
