"""Domain exceptions raised by the service layer.

They carry no transport knowledge: ``conduit.main`` decides which status
code each kind maps to.  ``errors`` is a field -> messages mapping suitable
for rendering as ``{"errors": {...}}``.
"""


class ConduitError(Exception):
    """Base class for every error the core surfaces to its caller."""

    field = "body"

    def __init__(self, message: str, errors: dict[str, list[str]] | None = None):
        self.message = message
        self.errors = errors if errors is not None else {self.field: [message]}
        super().__init__(message)


class ValidationError(ConduitError):
    """Malformed or conflicting input (blank fields, taken username, self-follow)."""

    def __init__(self, errors: dict[str, list[str]]):
        message = "; ".join(
            f"{field} {msg}" for field, msgs in errors.items() for msg in msgs
        )
        super().__init__(message, errors)


class AuthenticationError(ConduitError):
    """Missing, invalid or expired token, or wrong credentials."""

    field = "credentials"


class AuthorizationError(ConduitError):
    """Authenticated, but not the owner of the resource being mutated."""

    field = "permission"


class NotFoundError(ConduitError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity_type: str, key: int | str):
        self.entity_type = entity_type
        self.key = key
        super().__init__(
            f"{entity_type} '{key}' not found",
            {entity_type: ["not found"]},
        )


class ConflictError(ConduitError):
    """A storage constraint race that no other kind describes."""

    field = "conflict"
