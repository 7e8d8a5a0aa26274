"""Custom exceptions for django-lifesignal."""


class LifeSignalError(Exception):
    """Base exception for lifesignal errors."""
    pass


class Unauthenticated(LifeSignalError):
    """Raised when an operation needs a signed-in user and there is none."""

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


class NotFound(LifeSignalError):
    """Raised when a user, document or local contact edge does not exist."""

    def __init__(self, kind: str, identifier: str = ""):
        self.kind = kind
        self.identifier = identifier
        if identifier:
            super().__init__(f"{kind} '{identifier}' not found")
        else:
            super().__init__(f"{kind} not found")


class AlreadyExists(LifeSignalError):
    """Raised when adding a contact that is already in the contact list."""

    def __init__(self, contact_id: str):
        self.contact_id = contact_id
        super().__init__(f"Contact '{contact_id}' already exists")


class InvalidInput(LifeSignalError):
    """Raised for input rejected before any remote call is made."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class RemoteFailure(LifeSignalError):
    """Network or server error from a remote operation."""

    def __init__(self, operation: str, message: str = "", original_error: Exception = None):
        self.operation = operation
        self.original_error = original_error
        detail = message or (str(original_error) if original_error else "remote call failed")
        super().__init__(f"[{operation}] {detail}")


class DocumentDecodeError(RemoteFailure):
    """A remote document did not match the expected schema."""

    def __init__(self, document: str, errors: list[str]):
        self.document = document
        self.errors = errors
        super().__init__("decode", f"{document}: " + "; ".join(errors))


class SinkLoadError(LifeSignalError):
    """Raised when a configured event sink cannot be loaded."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load event sink '{path}': {reason}")
