"""Page-range orchestrator wiring fetching, extraction, dedup and persistence."""

from __future__ import annotations

import random
import time
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Deque
from urllib.parse import urlsplit, urlunsplit

import httpx
import structlog

from .config import HarvesterConfig, ScrapeMode
from .engine import DatasetStore, Fetcher, ListingExtractor
from .engine.antibot import RequestDisguisePolicy, build_policy
from .engine.fetcher import BrowserRenderer, Sleeper
from .engine.records import BusinessRecord, ScrapeError
from .errors import EmptyResultError, ExtractionItemError, FetchError, ValidationError
from .infra import OutputDirectory
from .ui import ProgressReporter

CATEGORY_SEGMENT = "category"


def validate_range(base_url: Any, start_page: Any, end_page: Any) -> tuple[str, int, int]:
    """Check request parameters before any network activity."""

    if not base_url or start_page is None or end_page is None:
        raise ValidationError("Missing parameters", "Provide baseUrl, startPage, and endPage")
    if not isinstance(base_url, str):
        raise ValidationError("Invalid baseUrl", "baseUrl must be a string URL")
    try:
        parts = urlsplit(base_url.strip())
    except ValueError as exc:
        raise ValidationError("Invalid baseUrl", f"baseUrl could not be parsed: {exc}") from exc
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise ValidationError("Invalid baseUrl", "baseUrl must be an absolute http(s) URL")
    for value in (start_page, end_page):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError("Invalid page range", "startPage and endPage must be integers")
    if start_page < 1 or end_page < 1 or start_page > end_page:
        raise ValidationError(
            "Invalid page range", "Page numbers must be positive and startPage ≤ endPage"
        )
    return base_url.strip(), start_page, end_page


def normalise_base_url(base_url: str) -> str:
    return base_url if base_url.endswith("/") else f"{base_url}/"


def category_from_url(base_url: str) -> str | None:
    segments = [segment for segment in urlsplit(base_url).path.split("/") if segment]
    for index, segment in enumerate(segments[:-1]):
        if segment.lower() == CATEGORY_SEGMENT:
            return segments[index + 1]
    return None


def category_page_url(base_url: str, page: int) -> str:
    """Insert the page number ahead of the first location qualifier.

    ``/category/hotels/city:lagos`` becomes ``/category/hotels/2/city:lagos``;
    without a ``name:value`` segment the number is appended.
    """
    parts = urlsplit(base_url)
    segments = [segment for segment in parts.path.split("/") if segment]
    insert_at = next(
        (index for index, segment in enumerate(segments) if ":" in segment), len(segments)
    )
    segments.insert(insert_at, str(page))
    return urlunsplit((parts.scheme, parts.netloc, "/" + "/".join(segments), parts.query, ""))


@dataclass(frozen=True, slots=True)
class RunPlan:
    """Where pages come from and which dataset they land in."""

    base_url: str
    mode: ScrapeMode
    identifier: str
    category: str | None = None

    def page_url(self, page: int) -> str:
        if self.mode is ScrapeMode.CATEGORY:
            return category_page_url(self.base_url, page)
        return f"{normalise_base_url(self.base_url)}{page}"


@dataclass
class ScrapeStats:
    pages_attempted: int = 0
    pages_succeeded: int = 0
    pages_failed: int = 0
    new_records: int = 0
    duplicates_skipped: int = 0
    dropped_listings: int = 0
    total_saved: int = 0
    output_file: str = ""
    stopped_early: bool = False
    cancelled: bool = False
    category: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "totalPagesAttempted": self.pages_attempted,
            "successfulPages": self.pages_succeeded,
            "failedPages": self.pages_failed,
            "newBusinessesScraped": self.new_records,
            "businessesScraped": self.new_records,
            "duplicatesSkipped": self.duplicates_skipped,
            "droppedListings": self.dropped_listings,
            "totalBusinessesSaved": self.total_saved,
            "csvFile": self.output_file,
            "stoppedEarly": self.stopped_early,
            "cancelled": self.cancelled,
        }
        if self.category is not None:
            payload["category"] = self.category
        return payload


@dataclass
class ScrapeResult:
    identifier: str
    businesses: list[BusinessRecord] = field(default_factory=list)
    errors: list[ScrapeError] = field(default_factory=list)
    item_errors: list[ExtractionItemError] = field(default_factory=list)
    stats: ScrapeStats = field(default_factory=ScrapeStats)

    def to_payload(self) -> dict[str, Any]:
        return {
            "businesses": [record.to_payload() for record in self.businesses],
            "errors": [error.to_payload() for error in self.errors],
            "itemErrors": [error.as_dict() for error in self.item_errors],
            "stats": self.stats.to_payload(),
        }


class PageRangeOrchestrator:
    """Drive one sequential run over a page range.

    Pages are processed strictly in order; pacing delays run between
    pages. Per-page and per-item failures are collected, only validation,
    empty-result and dataset-write failures end the run abnormally.
    """

    def __init__(
        self,
        config: HarvesterConfig,
        fetcher: Fetcher,
        extractor: ListingExtractor,
        store: DatasetStore,
        policy: RequestDisguisePolicy,
        sleeper: Sleeper = time.sleep,
        logger: structlog.BoundLogger | None = None,
        progress: ProgressReporter | None = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.extractor = extractor
        self.store = store
        self.policy = policy
        self.sleeper = sleeper
        self.logger = logger or structlog.get_logger("directory_harvester.orchestrator")
        self.progress = progress

    def __enter__(self) -> "PageRangeOrchestrator":
        return self

    def __exit__(self, *_exc) -> None:
        self.close()

    def close(self) -> None:
        self.fetcher.close()

    def plan(self, base_url: str, mode: ScrapeMode) -> RunPlan:
        if mode is ScrapeMode.CATEGORY:
            category = category_from_url(base_url)
            if not category:
                raise ValidationError(
                    "Invalid category URL",
                    "baseUrl must contain a /category/<name>/ path segment",
                )
            return RunPlan(base_url, mode, f"category_{category}", category)
        return RunPlan(base_url, mode, self.config.default_dataset)

    def run(
        self,
        base_url: Any,
        start_page: Any,
        end_page: Any,
        mode: ScrapeMode = ScrapeMode.DIRECTORY,
        should_cancel: Callable[[], bool] | None = None,
    ) -> ScrapeResult:
        base_url, start_page, end_page = validate_range(base_url, start_page, end_page)
        plan = self.plan(base_url, mode)
        log = self.logger.bind(dataset=plan.identifier)

        existing, keys = self.store.load_dataset(plan.identifier)
        log.info(
            "run_started",
            base_url=base_url,
            start_page=start_page,
            end_page=end_page,
            mode=mode.value,
            existing=len(existing),
        )

        result = ScrapeResult(identifier=plan.identifier)
        stats = result.stats
        stats.category = plan.category
        stats.output_file = self.store.path_for(plan.identifier).name
        recent_kinds: Deque[str | None] = deque(maxlen=max(self.config.early_stop_window, 1))

        if self.progress is not None:
            self.progress.set_label(plan.identifier)
            self.progress.start(end_page - start_page + 1)
        try:
            for page in range(start_page, end_page + 1):
                if should_cancel is not None and should_cancel():
                    stats.cancelled = True
                    log.info("run_cancelled", next_page=page)
                    break
                stats.pages_attempted += 1
                url = plan.page_url(page)
                error = self._process_page(plan, page, url, keys, result)
                last_page = page == end_page
                if error is None:
                    recent_kinds.append(None)
                    if not last_page:
                        self.sleeper(self.policy.pacing_delay(mode))
                    continue

                result.errors.append(error)
                stats.pages_failed += 1
                recent_kinds.append(error.kind)
                log.warning("page_failed", page=page, url=url, kind=error.kind, error=error.error)
                if self._should_stop_early(recent_kinds):
                    stats.stopped_early = True
                    log.info("early_stop", page=page, kind=error.kind)
                    break
                if not last_page:
                    self.sleeper(self.policy.failure_delay())
        finally:
            if self.progress is not None:
                self.progress.close()

        stats.new_records = len(result.businesses)
        if not result.businesses:
            stats.total_saved = len(existing)
            if stats.duplicates_skipped == 0:
                log.error("run_empty", errors=len(result.errors))
                raise EmptyResultError(result)
            log.info("run_no_new_records", duplicates=stats.duplicates_skipped)
            return result

        combined = self.store.merge_and_persist(plan.identifier, existing, result.businesses)
        stats.total_saved = len(combined)
        log.info(
            "run_finished",
            new=stats.new_records,
            total=stats.total_saved,
            failed_pages=stats.pages_failed,
        )
        return result

    def _process_page(
        self, plan: RunPlan, page: int, url: str, keys, result: ScrapeResult
    ) -> ScrapeError | None:
        try:
            response = self.fetcher.fetch_page(url, page)
        except FetchError as exc:
            self._advance_progress(page, succeeded=False)
            return ScrapeError(page=page, url=url, error=exc.message, kind=exc.kind)
        try:
            extraction = self.extractor.extract(
                response.text, page, keys, category=plan.category
            )
        except Exception as exc:  # noqa: BLE001
            self._advance_progress(page, succeeded=False)
            return ScrapeError(page=page, url=url, error=str(exc), kind="processing")

        result.businesses.extend(extraction.records)
        result.item_errors.extend(extraction.item_errors)
        keys.update(extraction.records)
        stats = result.stats
        stats.pages_succeeded += 1
        stats.duplicates_skipped += extraction.duplicates
        stats.dropped_listings += extraction.dropped
        self.logger.info(
            "page_scraped",
            page=page,
            via=response.via,
            new=len(extraction.records),
            duplicates=extraction.duplicates,
            dropped=extraction.dropped,
        )
        self._advance_progress(page, succeeded=True, new_records=len(extraction.records))
        return None

    def _advance_progress(self, page: int, succeeded: bool, new_records: int = 0) -> None:
        if self.progress is not None:
            self.progress.advance(page, succeeded=succeeded, new_records=new_records)

    def _should_stop_early(self, recent_kinds: Deque[str | None]) -> bool:
        window = self.config.early_stop_window
        if window <= 0 or len(recent_kinds) < window:
            return False
        kinds = set(recent_kinds)
        if len(kinds) != 1:
            return False
        (kind,) = kinds
        return kind is not None and kind in self.config.early_stop_kinds


def build_orchestrator(
    config: HarvesterConfig,
    outputs_dir: Path,
    *,
    logger: structlog.BoundLogger | None = None,
    progress: ProgressReporter | None = None,
    transport: httpx.BaseTransport | None = None,
    renderer: BrowserRenderer | None = None,
    sleeper: Sleeper = time.sleep,
    rng: random.Random | None = None,
) -> PageRangeOrchestrator:
    """Assemble an orchestrator from configuration."""

    policy = build_policy(config, rng=rng)
    fetcher = Fetcher(
        config, policy, renderer=renderer, transport=transport, sleeper=sleeper, logger=logger
    )
    extractor = ListingExtractor(config.site_origin, logger=logger)
    store = DatasetStore(OutputDirectory(outputs_dir), logger=logger)
    return PageRangeOrchestrator(
        config,
        fetcher,
        extractor,
        store,
        policy,
        sleeper=sleeper,
        logger=logger,
        progress=progress,
    )


__all__ = [
    "PageRangeOrchestrator",
    "RunPlan",
    "ScrapeResult",
    "ScrapeStats",
    "build_orchestrator",
    "category_from_url",
    "category_page_url",
    "normalise_base_url",
    "validate_range",
]
