"""Utility modules."""

from backoffice.utils.datetime_utils import as_utc, utcnow
from backoffice.utils.normalization import (
    first_word,
    format_phone,
    normalize_email,
    normalize_name,
    normalize_phone,
    normalize_search_text,
)
from backoffice.utils.pagination import (
    PaginatedResponse,
    PaginationParams,
    get_pagination,
    paginate_query,
)

__all__ = [
    # Datetime
    "as_utc",
    "utcnow",
    # Normalization
    "first_word",
    "format_phone",
    "normalize_email",
    "normalize_name",
    "normalize_phone",
    "normalize_search_text",
    # Pagination
    "PaginationParams",
    "PaginatedResponse",
    "get_pagination",
    "paginate_query",
]
