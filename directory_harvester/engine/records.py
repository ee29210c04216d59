"""Record types flowing through the extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


@dataclass(slots=True)
class BusinessRecord:
    """One directory entry."""

    name: str
    address: str = ""
    phone: str = ""
    image_url: str | None = None
    verified: bool = False
    source_page: int = 1
    date_scraped: datetime = field(default_factory=utcnow)
    category: str | None = None

    def is_acceptable(self) -> bool:
        return bool(self.name) and bool(self.address or self.phone)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "imageUrl": self.image_url,
            "verified": self.verified,
            "sourcePage": self.source_page,
            "dateScraped": self.date_scraped.isoformat(),
        }
        if self.category is not None:
            payload["category"] = self.category
        return payload


@dataclass(slots=True)
class ScrapeError:
    """One page-level failure."""

    page: int
    url: str
    error: str
    kind: str = "http_error"

    def to_payload(self) -> dict[str, Any]:
        return {"page": self.page, "url": self.url, "error": self.error, "kind": self.kind}


__all__ = ["BusinessRecord", "ScrapeError", "utcnow"]
