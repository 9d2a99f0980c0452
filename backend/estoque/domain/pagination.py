from dataclasses import dataclass, field
from math import ceil
from typing import Any, Callable, Dict, Generic, List, TypeVar

T = TypeVar("T")


def total_pages_for(total: int, page_size: int) -> int:
    if page_size <= 0:
        return 0
    return ceil(total / page_size)


@dataclass
class PaginatedResult(Generic[T]):
    """A page of domain objects plus the numbers clients need to navigate."""

    items: List[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 15
    # item id -> {relation name: related entity or list}, filled by $expand
    expanded: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        return total_pages_for(self.total, self.page_size)

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1

    def pagination_dict(self) -> Dict[str, Any]:
        return {
            "currentPage": self.page,
            "pageSize": self.page_size,
            "totalItems": self.total,
            "totalPages": self.total_pages,
            "hasNextPage": self.has_next_page,
            "hasPreviousPage": self.has_previous_page,
        }

    def to_dict(self, serializer: Callable[[T], Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "items": [serializer(item) for item in self.items],
            "pagination": self.pagination_dict(),
        }
