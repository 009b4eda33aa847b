# page windowing shared by every list view
import math
from typing import Generic, List, Sequence, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


def total_pages(item_count: int, page_size: int) -> int:
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return max(1, math.ceil(item_count / page_size))


def clamp_page(requested: int, total: int) -> int:
    return min(max(requested, 1), max(total, 1))


def page_slice(items: Sequence[T], page: int, page_size: int) -> List[T]:
    start = (page - 1) * page_size
    return list(items[start:start + page_size])


def nearby_pages(page: int, total: int, width: int = 5) -> List[int]:
    """
    Sliding window of page numbers centred on `page`, shifted to stay inside
    [1, total]. Page 1 and the last page are added as shortcuts when they fall
    outside the window. Even widths are rounded up to the next odd width.
    """
    if width < 1:
        raise ValueError("width must be at least 1")
    if width % 2 == 0:
        width += 1

    total = max(total, 1)
    page = clamp_page(page, total)

    start = max(1, page - width // 2)
    end = min(total, start + width - 1)
    start = max(1, end - width + 1)

    pages = list(range(start, end + 1))
    if start > 1:
        pages.insert(0, 1)
    if end < total:
        pages.append(total)
    return pages


class Page(BaseModel, Generic[T]):
    items: List[T]
    page: int
    page_size: int
    total_pages: int
    total_items: int
    nearby: List[int]


def paginate(items: Sequence[T], requested: int, page_size: int, width: int = 5) -> Page:
    pages = total_pages(len(items), page_size)
    page = clamp_page(requested, pages)
    return Page(
        items=page_slice(items, page, page_size),
        page=page,
        page_size=page_size,
        total_pages=pages,
        total_items=len(items),
        nearby=nearby_pages(page, pages, width),
    )
