from fastapi import Query

from marketplace.config import settings


class CursorPaginationParams:
    """
    Reusable FastAPI dependency that parses the cursor-pagination query
    parameters shared by every list endpoint.

    Usage in a router::

        @router.get("/services")
        async def list_services(pagination: CursorPaginationParams = Depends()):
            ...

    Attributes
    ----------
    cursor:
        Opaque token from a previous response's ``meta.nextCursor``.
        Absent on the first page.
    limit:
        Maximum number of items, clamped to ``settings.MAX_PAGE_SIZE``.
    sort_by:
        Public field name (``sortBy``).  ``None`` selects the entity's
        default; the service layer validates it against an allow-list.
    sort_order:
        ``"ASC"`` or ``"DESC"``, case-insensitive on input.
    """

    def __init__(
        self,
        cursor: str | None = Query(
            None,
            max_length=1024,
            description="Opaque pagination cursor from a previous page.",
        ),
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=100,
            description="Maximum number of items returned (max 100).",
        ),
        sort_by: str | None = Query(
            None,
            alias="sortBy",
            description="Field to sort and paginate by.",
        ),
        sort_order: str = Query(
            "ASC",
            alias="sortOrder",
            pattern="^(ASC|DESC|asc|desc)$",
            description="Sort direction: 'ASC' or 'DESC'.",
        ),
    ) -> None:
        self.cursor = cursor
        # Respect the application-level hard ceiling even if the schema
        # already validates le=100, so a settings change is sufficient.
        self.limit = min(limit, settings.MAX_PAGE_SIZE)
        self.sort_by = sort_by
        self.sort_order = sort_order.upper()

    def as_kwargs(self) -> dict:
        """Keyword arguments accepted by every ``get_*`` list service."""
        return {
            "cursor": self.cursor,
            "limit": self.limit,
            "sort_by": self.sort_by,
            "sort_order": self.sort_order,
        }
