"""Structural extraction of business listings from directory markup."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Sequence
from urllib.parse import urljoin, urlparse

import structlog
from selectolax.parser import HTMLParser, Node

from ..errors import ExtractionItemError
from .dedup import DedupIndex, record_key
from .records import BusinessRecord, utcnow

LISTING_SELECTOR = ".company.with_img"
AD_CLASS = "company_ad"
NAME_SELECTOR = ".company_header h3 a"
ADDRESS_SELECTOR = ".company_header .address"
CONTACT_SELECTOR = ".cont .s"
PHONE_ICON_SELECTOR = ".fa-phone"
LOGO_SELECTOR = ".logo.lazy-img"
BADGE_SELECTOR = ".cont u.v"
BADGE_ICON_SELECTOR = ".fa-check-circle"

_BACKGROUND_URL = re.compile(r"background-image\s*:\s*url\(\s*(['\"]?)(.*?)\1\s*\)", re.I)


class OutcomeStatus(str, Enum):
    FOUND = "found"
    ABSENT = "absent"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class FieldOutcome:
    """Result of applying one field rule to one listing node."""

    status: OutcomeStatus
    value: Any = None
    error: str | None = None

    @classmethod
    def found(cls, value: Any) -> "FieldOutcome":
        return cls(OutcomeStatus.FOUND, value)

    @classmethod
    def absent(cls) -> "FieldOutcome":
        return cls(OutcomeStatus.ABSENT)

    @classmethod
    def failed(cls, message: str) -> "FieldOutcome":
        return cls(OutcomeStatus.ERROR, error=message)

    def value_or(self, default: Any) -> Any:
        return self.value if self.status is OutcomeStatus.FOUND else default


@dataclass(frozen=True, slots=True)
class FieldRule:
    """Named extraction step; ``extract`` returns the raw value or None."""

    name: str
    extract: Callable[[Node, str], Any]

    def apply(self, node: Node, origin: str) -> FieldOutcome:
        try:
            value = self.extract(node, origin)
        except Exception as exc:  # noqa: BLE001
            return FieldOutcome.failed(str(exc) or exc.__class__.__name__)
        if value is None or value == "":
            return FieldOutcome.absent()
        return FieldOutcome.found(value)


def _clean(text: str | None) -> str:
    return " ".join((text or "").split())


def _has_class(node: Node, name: str) -> bool:
    return name in (node.attributes.get("class") or "").split()


def extract_name(node: Node, _origin: str) -> str:
    target = node.css_first(NAME_SELECTOR)
    return _clean(target.text()) if target is not None else ""


def extract_address(node: Node, _origin: str) -> str:
    target = node.css_first(ADDRESS_SELECTOR)
    return _clean(target.text()) if target is not None else ""


def extract_phone(node: Node, _origin: str) -> str:
    # span texts are joined as-is; sites split one number across spans
    text = "".join(
        span.text()
        for contact in node.css(CONTACT_SELECTOR)
        if contact.css_first(PHONE_ICON_SELECTOR) is not None
        for span in contact.css("span")
    )
    return _clean(text)


def extract_image_url(node: Node, origin: str) -> str | None:
    logo = node.css_first(LOGO_SELECTOR)
    if logo is None:
        return None
    raw = (logo.attributes.get("data-bg") or "").strip()
    if not raw:
        match = _BACKGROUND_URL.search(logo.attributes.get("style") or "")
        raw = match.group(2).strip() if match else ""
    if not raw:
        return None
    return urljoin(origin, raw)


def extract_verified(node: Node, _origin: str) -> bool:
    return any(
        badge.css_first(BADGE_ICON_SELECTOR) is not None for badge in node.css(BADGE_SELECTOR)
    )


DEFAULT_RULES: tuple[FieldRule, ...] = (
    FieldRule("name", extract_name),
    FieldRule("address", extract_address),
    FieldRule("phone", extract_phone),
    FieldRule("image_url", extract_image_url),
    FieldRule("verified", extract_verified),
)


@dataclass
class ExtractionResult:
    records: list[BusinessRecord] = field(default_factory=list)
    item_errors: list[ExtractionItemError] = field(default_factory=list)
    candidates: int = 0
    duplicates: int = 0
    dropped: int = 0


def site_origin(url: str) -> str:
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return url
    return f"{parsed.scheme}://{parsed.netloc}"


class ListingExtractor:
    """Turn one directory page into business records.

    Each listing node is processed independently: a failing field rule
    records an item error for that node and extraction moves on. Records
    whose dedup key is already known are skipped without error.
    """

    def __init__(
        self,
        origin: str,
        rules: Sequence[FieldRule] = DEFAULT_RULES,
        logger: structlog.BoundLogger | None = None,
        clock: Callable[[], Any] = utcnow,
    ) -> None:
        self.origin = site_origin(origin)
        self.rules = tuple(rules)
        self.logger = logger or structlog.get_logger("directory_harvester.extractor")
        self.clock = clock

    def listing_nodes(self, markup: str) -> list[Node]:
        document = HTMLParser(markup)
        return [node for node in document.css(LISTING_SELECTOR) if not _has_class(node, AD_CLASS)]

    def extract(
        self,
        markup: str,
        page_number: int,
        existing_keys: DedupIndex,
        *,
        category: str | None = None,
    ) -> ExtractionResult:
        result = ExtractionResult()
        seen_on_page: set = set()
        scraped_at = self.clock()
        for index, node in enumerate(self.listing_nodes(markup)):
            result.candidates += 1
            outcomes: dict[str, FieldOutcome] = {}
            failure: ExtractionItemError | None = None
            for rule in self.rules:
                outcome = rule.apply(node, self.origin)
                if outcome.status is OutcomeStatus.ERROR:
                    failure = ExtractionItemError(page_number, index, rule.name, outcome.error or "")
                    break
                outcomes[rule.name] = outcome
            if failure is not None:
                self.logger.warning(
                    "extraction_item_failed",
                    page=page_number,
                    index=index,
                    field=failure.field,
                    error=failure.message,
                )
                result.item_errors.append(failure)
                continue

            record = self._build_record(outcomes, page_number, scraped_at, category)
            if not record.is_acceptable():
                result.dropped += 1
                continue
            key = record_key(record)
            if key in existing_keys or key in seen_on_page:
                result.duplicates += 1
                continue
            seen_on_page.add(key)
            result.records.append(record)
        return result

    @staticmethod
    def _build_record(
        outcomes: dict[str, FieldOutcome],
        page_number: int,
        scraped_at: Any,
        category: str | None,
    ) -> BusinessRecord:
        def value(name: str, default: Any) -> Any:
            outcome = outcomes.get(name)
            return outcome.value_or(default) if outcome is not None else default

        return BusinessRecord(
            name=value("name", ""),
            address=value("address", ""),
            phone=value("phone", ""),
            image_url=value("image_url", None),
            verified=bool(value("verified", False)),
            source_page=page_number,
            date_scraped=scraped_at,
            category=category,
        )


__all__ = [
    "DEFAULT_RULES",
    "ExtractionResult",
    "FieldOutcome",
    "FieldRule",
    "ListingExtractor",
    "OutcomeStatus",
    "site_origin",
]
