"""Unified error codes and custom exceptions.

Every caller-facing failure carries a stable integer code so client UIs can
branch on it without parsing messages. `kind` groups codes into the taxonomy
clients care about (NOT_FOUND, FORBIDDEN, INVALID_STATE, ...).

Error code ranges:
  1xxx: Auth/Identity
  2xxx: Order/Postulation
  3xxx: Chat
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    kind: str = "INTERNAL"

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


class NotFoundError(AppError):
    kind = "NOT_FOUND"


class UnauthorizedError(AppError):
    kind = "UNAUTHORIZED"


class ForbiddenError(AppError):
    kind = "FORBIDDEN"


class InvalidStateError(AppError):
    kind = "INVALID_STATE"


class InvalidReferenceError(AppError):
    kind = "INVALID_REFERENCE"


class CapacityExceededError(AppError):
    kind = "CAPACITY_EXCEEDED"


class DuplicateError(AppError):
    kind = "DUPLICATE"


class ValidationError(AppError):
    kind = "VALIDATION"


# --- 1xxx: Auth/Identity ---

class InvalidCredentialsError(AppError):
    kind = "UNAUTHENTICATED"

    def __init__(self) -> None:
        super().__init__(1001, "Invalid or expired token", 401)


class MissingIdentityError(AppError):
    kind = "UNAUTHENTICATED"

    def __init__(self) -> None:
        super().__init__(1002, "Token does not identify a user", 401)


class AdminRequiredError(ForbiddenError):
    def __init__(self) -> None:
        super().__init__(1003, "Admin role required", 403)


# --- 2xxx: Order/Postulation ---

class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str) -> None:
        super().__init__(2001, f"Order not found: {order_id}", 404)


class PostulationNotFoundError(NotFoundError):
    def __init__(self, postulation_id: str) -> None:
        super().__init__(2002, f"Postulation not found: {postulation_id}", 404)


class NotOrderOwnerError(UnauthorizedError):
    def __init__(self, order_id: str) -> None:
        super().__init__(2003, f"Order {order_id} does not belong to the caller", 403)


class ProviderRequiredError(ForbiddenError):
    def __init__(self) -> None:
        super().__init__(2004, "Only registered providers can perform this action", 403)


class InvalidOrderStateError(InvalidStateError):
    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(2005, f"Order {order_id} in status {status} cannot be accepted", 409)


class PostulationOrderMismatchError(InvalidReferenceError):
    def __init__(self, postulation_id: str, order_id: str) -> None:
        super().__init__(
            2006, f"Postulation {postulation_id} does not belong to order {order_id}", 422
        )


class PostulationLimitExceededError(CapacityExceededError):
    def __init__(self, limit: int) -> None:
        super().__init__(
            2007,
            f"Postulation limit reached: {limit} active postulations. "
            "Wait for clients to respond or for orders to expire.",
            429,
        )


class DuplicatePostulationError(DuplicateError):
    def __init__(self, order_id: str) -> None:
        super().__init__(2008, f"Already postulated to order {order_id}", 409)


class MissingLocationError(ValidationError):
    def __init__(self) -> None:
        super().__init__(2009, "Exact location (lat, lng) is required", 422)


class OrderNotOpenError(InvalidStateError):
    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(2010, f"Order {order_id} in status {status} is not taking postulations", 409)


class ProviderNotFoundError(NotFoundError):
    def __init__(self, provider_id: str) -> None:
        super().__init__(2011, f"Provider not found: {provider_id}", 404)


# --- 3xxx: Chat ---

class ConversationNotFoundError(NotFoundError):
    def __init__(self, conversation_id: str) -> None:
        super().__init__(3001, f"Conversation not found: {conversation_id}", 404)


class MessageNotFoundError(NotFoundError):
    def __init__(self, message_id: str) -> None:
        super().__init__(3002, f"Message not found: {message_id}", 404)


class ConversationAccessDeniedError(ForbiddenError):
    def __init__(self, conversation_id: str) -> None:
        super().__init__(3003, f"Access denied to conversation {conversation_id}", 403)


class NotMessageRecipientError(ForbiddenError):
    def __init__(self, message_id: str) -> None:
        super().__init__(3004, f"Only the recipient can update message {message_id}", 403)


class EmptyMessageError(ValidationError):
    def __init__(self) -> None:
        super().__init__(3005, "Content cannot be empty", 422)


class InvalidPayloadError(ValidationError):
    def __init__(self, detail: str) -> None:
        super().__init__(3006, f"Invalid payload: {detail}", 422)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class ServiceUnavailableError(AppError):
    kind = "UNAVAILABLE"

    def __init__(self, detail: str = "Service temporarily unavailable") -> None:
        super().__init__(9001, detail, 503)
