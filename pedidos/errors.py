"""Error taxonomy of the order engine.

Every error carries a stable ``kind`` (used by clients to branch) and the HTTP
status the service answers with. Nothing here is retried automatically.
"""


class OrderError(Exception):
    kind = "order_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"kind": self.kind, "detail": self.message}


class ValidationError(OrderError):
    """Malformed input, rejected before any transaction opens."""

    kind = "validation_error"
    status_code = 400


class NotFoundError(OrderError):
    kind = "not_found"
    status_code = 404


class AvailabilityError(OrderError):
    """Restaurant inactive, or menu item unavailable / not part of the menu."""

    kind = "availability_error"
    status_code = 400


class InvalidItemError(AvailabilityError):
    """A cart line that cannot be priced against the catalog."""

    def __init__(self, message: str, menu_item_id=None, reason: str = "missing"):
        super().__init__(message)
        self.menu_item_id = menu_item_id
        self.reason = reason


class AuthorizationError(OrderError):
    kind = "authorization_error"
    status_code = 403


class AuthenticationError(AuthorizationError):
    """No caller identity could be established."""

    kind = "unauthenticated"
    status_code = 401


class StateError(OrderError):
    """Illegal or stale status transition."""

    kind = "state_error"
    status_code = 409

    def __init__(self, message: str, current=None, requested=None):
        super().__init__(message)
        self.current = current
        self.requested = requested


class ConflictError(OrderError):
    kind = "conflict"
    status_code = 409


class PersistenceError(OrderError):
    """Storage failure mid-transaction. Fatal for the request."""

    kind = "persistence_error"
    status_code = 500
