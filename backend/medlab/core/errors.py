"""
Domain errors raised by the service layer.
The API layer turns each of them into an ``{"error": ..., "code": ...}`` body.
"""


class MedLabError(Exception):
    code = "error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(MedLabError):
    code = "not_found"
    status_code = 404

    def __init__(self, resource: str, resource_id: str = None):
        message = f"{resource} not found"
        super().__init__(message)
        self.resource = resource
        self.resource_id = resource_id


class ValidationError(MedLabError):
    code = "validation_error"
    status_code = 400


class InsufficientInventoryError(MedLabError):
    code = "insufficient_inventory"
    status_code = 409

    def __init__(self, message: str = "Insufficient inventory", available: int = None, requested: int = None):
        super().__init__(message)
        self.available = available
        self.requested = requested


class InvalidTransitionError(MedLabError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(f"Cannot change {entity} status from {current} to {target}")
        self.entity = entity
        self.current = current
        self.target = target


class ConflictError(MedLabError):
    code = "conflict"
    status_code = 409


class PermissionDeniedError(MedLabError):
    code = "permission_denied"
    status_code = 403
