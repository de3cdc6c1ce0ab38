"""Ownership rules shared by the article and comment services."""
from conduit.exceptions import AuthenticationError, AuthorizationError


def require_viewer(viewer_id: int | None) -> int:
    """Return *viewer_id*, refusing anonymous viewers."""
    if viewer_id is None:
        raise AuthenticationError("Authentication required")
    return viewer_id


def ensure_owner(owner_id: int, viewer_id: int | None, resource: str) -> None:
    """Allow the mutation only when the viewer owns the resource."""
    viewer_id = require_viewer(viewer_id)
    if owner_id != viewer_id:
        raise AuthorizationError(f"Only the author may modify this {resource}")
