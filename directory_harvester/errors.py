"""Exception taxonomy shared by the harvesting pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING
from pathlib import Path

if TYPE_CHECKING:  # pragma: no cover
    from .orchestrator import ScrapeResult


EMPTY_RESULT_GUIDANCE = (
    "The website is blocking our requests. Consider: 1) Using a proxy service, "
    "2) Trying during off-peak hours, 3) Narrowing the page range."
)


class HarvesterError(Exception):
    """Base class for every error raised by directory_harvester."""


class ValidationError(HarvesterError):
    """Request parameters rejected before any work begins."""

    def __init__(self, error: str, details: str) -> None:
        super().__init__(f"{error}: {details}")
        self.error = error
        self.details = details


class FetchError(HarvesterError):
    """A page could not be retrieved by any fetch strategy."""

    def __init__(self, page: int, url: str, message: str, kind: str = "http_error") -> None:
        super().__init__(message)
        self.page = page
        self.url = url
        self.message = message
        self.kind = kind


class ExtractionItemError(HarvesterError):
    """One listing node failed structural extraction."""

    def __init__(self, page: int, index: int, field: str, message: str) -> None:
        super().__init__(f"listing {index} on page {page}: {field}: {message}")
        self.page = page
        self.index = index
        self.field = field
        self.message = message

    def as_dict(self) -> dict[str, object]:
        return {
            "page": self.page,
            "index": self.index,
            "field": self.field,
            "error": self.message,
        }


class PersistenceError(HarvesterError):
    """Reading or writing a persisted dataset failed."""

    def __init__(self, identifier: str, path: Path, operation: str, message: str) -> None:
        super().__init__(f"Dataset {operation} failed for {identifier} ({path}): {message}")
        self.identifier = identifier
        self.path = path
        self.operation = operation
        self.message = message


class EmptyResultError(HarvesterError):
    """The run produced nothing usable across the whole page range."""

    def __init__(self, result: "ScrapeResult", solution: str = EMPTY_RESULT_GUIDANCE) -> None:
        super().__init__("No businesses were scraped. All attempts failed.")
        self.result = result
        self.solution = solution


__all__ = [
    "EMPTY_RESULT_GUIDANCE",
    "EmptyResultError",
    "ExtractionItemError",
    "FetchError",
    "HarvesterError",
    "PersistenceError",
    "ValidationError",
]
