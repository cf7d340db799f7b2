from fastapi import Query, Request

from conduit.config import settings


class PaginationParams:
    """
    Reusable FastAPI dependency for ``limit`` / ``offset`` query parameters.

    Attributes
    ----------
    limit:
        Maximum number of items returned, clamped to ``settings.MAX_LIMIT``
        regardless of the value supplied by the caller.
    offset:
        Number of items skipped from the start of the filtered result set.
    """

    def __init__(
        self,
        limit: int | None = Query(
            None,
            ge=1,
            description="Number of items to return (default 20).",
        ),
        offset: int = Query(
            0,
            ge=0,
            description="Number of items to skip.",
        ),
    ) -> None:
        if limit is None:
            limit = settings.DEFAULT_LIMIT
        self.limit = min(limit, settings.MAX_LIMIT)
        self.offset = offset


def get_current_username(request: Request) -> str | None:
    """
    Return the already-authenticated username forwarded by the gateway,
    or None for anonymous requests.  No authentication happens here.
    """
    username = request.headers.get(settings.IDENTITY_HEADER)
    if username is None:
        return None
    return username.strip() or None
