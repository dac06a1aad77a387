from datetime import datetime
from typing import Optional

from fastapi import Query

from sensornet.database import to_naive_utc

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 1000

class QueryFilters:
    """Query string shared by the readings and events routes.

    One of: ?limit=N, ?startDate=&endDate=, or ?page=&pageSize= with an
    optional date range. Pagination wins when page or pageSize is given.
    """

    def __init__(
        self,
        limit: Optional[int] = Query(None, ge=1),
        start_date: Optional[datetime] = Query(None, alias="startDate"),
        end_date: Optional[datetime] = Query(None, alias="endDate"),
        page: Optional[int] = Query(None, ge=1),
        page_size: Optional[int] = Query(None, alias="pageSize", ge=1, le=MAX_PAGE_SIZE),
    ):
        self.limit = limit
        self.start = to_naive_utc(start_date) if start_date else None
        self.end = to_naive_utc(end_date) if end_date else None
        self.paginated = page is not None or page_size is not None
        self.page = page or 1
        self.page_size = page_size or DEFAULT_PAGE_SIZE

    @property
    def has_range(self) -> bool:
        return self.start is not None or self.end is not None
