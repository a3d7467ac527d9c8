# app/core/pagination.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from app.core.config import get_settings


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def build(cls, page: Optional[int] = None, limit: Optional[int] = None) -> "PageRequest":
        """
        Clamps caller-supplied paging to configured bounds.
        """
        settings = get_settings()
        p = page if page and page > 0 else 1
        lim = limit if limit and limit > 0 else settings.default_page_limit
        return cls(page=p, limit=min(lim, settings.max_page_limit))

    def meta(self, total: int) -> Dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": total,
            "totalPages": math.ceil(total / self.limit) if self.limit else 0,
        }
