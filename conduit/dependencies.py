from fastapi import Header, Query, Request

from conduit.cache import CacheManager
from conduit.config import settings
from conduit.exceptions import AuthenticationError
from conduit.security import decode_access_token

_TOKEN_SCHEMES = ("token", "bearer")


class PaginationParams:
    """
    Reusable FastAPI dependency that parses ``limit`` / ``offset`` query
    parameters.

    Usage in a router::

        @router.get("/articles")
        async def list_articles(pagination: PaginationParams = Depends()):
            ...

    Negative values and the ``MAX_PAGE_SIZE`` ceiling are handled by the
    feed service, so direct service callers get the same behaviour.
    """

    def __init__(
        self,
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            description="Maximum number of articles to return.",
        ),
        offset: int = Query(
            0,
            description="Number of articles to skip.",
        ),
    ) -> None:
        self.limit = limit
        self.offset = offset


async def get_viewer_id(authorization: str | None = Header(None)) -> int | None:
    """
    Resolve the ``Authorization`` header to a viewer id.

    No header means an anonymous viewer (``None``); a header that is
    present but malformed, expired or wrongly signed is an error, never a
    silent downgrade to anonymous.
    """
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() not in _TOKEN_SCHEMES or not token.strip():
        raise AuthenticationError("Malformed Authorization header")
    return decode_access_token(token.strip())


def get_cache(request: Request) -> CacheManager:
    return request.app.state.cache
