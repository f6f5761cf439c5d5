"""Page-number pagination helpers for token listings."""
import math
from dataclasses import dataclass

DEFAULT_PER_PAGE = 25
MAX_PER_PAGE = 100
DEFAULT_PAGE = 1


@dataclass(frozen=True)
class PageRequest:
    """A normalised page request."""

    page: int = DEFAULT_PAGE
    per_page: int = DEFAULT_PER_PAGE

    @property
    def skip(self) -> int:
        """Number of records before the first record of this page."""
        return (self.page - 1) * self.per_page


def normalise_page_request(page: int | None, per_page: int | None) -> PageRequest:
    """
    Clamp client-supplied paging values into the supported ranges.

    Missing or non-positive values fall back to the defaults; per_page above the
    maximum is capped.
    """
    if per_page is None or per_page < 1:
        per_page = DEFAULT_PER_PAGE
    per_page = min(per_page, MAX_PER_PAGE)

    if page is None or page < 1:
        page = DEFAULT_PAGE

    return PageRequest(page=page, per_page=per_page)


def count_pages(total: int, per_page: int) -> int:
    """Number of pages needed to show ``total`` records."""
    if total <= 0:
        return 0
    return math.ceil(total / per_page)


def is_page_out_of_range(page: int, total_pages: int) -> bool:
    """
    True when a page lies past the last non-empty page.

    Page 1 of an empty listing is always in range.
    """
    if total_pages == 0:
        return page > 1
    return page > total_pages
