"""Page fetching: lightweight HTTP attempts escalating to a browser render."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Callable, Dict, Protocol

import httpx
import structlog

from ..config import BrowserSettings, FetchSettings, HarvesterConfig
from ..errors import FetchError
from .antibot import RequestDisguisePolicy, RequestProfile

Sleeper = Callable[[float], None]


class FetchState(str, Enum):
    ATTEMPT = "attempt"
    BROWSER_FALLBACK = "browser_fallback"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = frozenset({FetchState.DONE, FetchState.FAILED})


@dataclass(frozen=True, slots=True)
class FetchStep:
    """Position in the per-page fetch state machine."""

    state: FetchState
    attempt: int = 1


def advance(
    step: FetchStep, succeeded: bool, settings: FetchSettings, browser_enabled: bool = True
) -> FetchStep:
    """Transition function for the per-page fetch state machine.

    Retry delays are not decided here; the request profile for the next
    attempt carries them.
    """

    if step.state in TERMINAL_STATES:
        raise ValueError(f"Cannot advance from terminal state {step.state.value}")
    if succeeded:
        return FetchStep(FetchState.DONE, step.attempt)
    if step.state is FetchState.ATTEMPT:
        if step.attempt < settings.max_lightweight_attempts:
            return FetchStep(FetchState.ATTEMPT, step.attempt + 1)
        if browser_enabled:
            return FetchStep(FetchState.BROWSER_FALLBACK, step.attempt)
    return FetchStep(FetchState.FAILED, step.attempt)


@dataclass(slots=True)
class FetchResponse:
    """Markup obtained for one page."""

    url: str
    status_code: int
    text: str
    via: str
    attempts: int


@dataclass
class BrowserResponse:
    url: str
    status_code: int
    text: str


class BrowserRenderer(Protocol):
    def render(self, url: str, profile: RequestProfile) -> BrowserResponse:
        """Render ``url`` in a full browser and return the final markup."""


def classify_status(status_code: int) -> str:
    if status_code in {404, 410}:
        return "not_found"
    if status_code in {401, 403, 429}:
        return "blocked"
    if status_code >= 500:
        return "server_error"
    return "http_error"


STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {get: () => undefined});
Object.defineProperty(navigator, 'languages', {get: () => ['en-US', 'en']});
Object.defineProperty(navigator, 'plugins', {get: () => [1, 2, 3, 4, 5]});
window.chrome = window.chrome || {runtime: {}};
"""

BROWSER_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--disable-blink-features=AutomationControlled",
)


class BrowserUnavailable(RuntimeError):
    """Playwright is not installed or cannot launch a browser."""


class PlaywrightRenderer:
    """One short-lived Chromium session per render; always torn down."""

    def __init__(
        self,
        settings: BrowserSettings,
        policy: RequestDisguisePolicy,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.settings = settings
        self.policy = policy
        self.logger = logger or structlog.get_logger("directory_harvester.browser")

    def _launch_options(self, profile: RequestProfile) -> dict:
        options: dict = {"headless": self.settings.headless, "args": list(BROWSER_ARGS)}
        if self.settings.executable_path:
            options["executable_path"] = self.settings.executable_path
        if profile.proxy:
            options["proxy"] = {"server": profile.proxy}
        return options

    def render(self, url: str, profile: RequestProfile) -> BrowserResponse:
        try:
            from playwright.sync_api import sync_playwright
        except ImportError as exc:  # pragma: no cover
            raise BrowserUnavailable(
                "Browser fallback requires installing the 'playwright' package."
            ) from exc

        headers = profile.request_headers()
        extra_headers = {
            key: value
            for key, value in headers.items()
            if key in {"Accept-Language", "Referer"}
        }
        width, height = self.settings.viewport
        timeout_ms = int(self.settings.navigation_timeout * 1000)
        with sync_playwright() as playwright:
            browser = playwright.chromium.launch(**self._launch_options(profile))
            try:
                context = browser.new_context(
                    user_agent=headers.get("User-Agent"),
                    viewport={"width": width, "height": height},
                    locale="en-US",
                    extra_http_headers=extra_headers,
                )
                if self.settings.stealth:
                    context.add_init_script(STEALTH_SCRIPT)
                page = context.new_page()
                page.wait_for_timeout(int(self.policy.pre_navigation_delay() * 1000))
                self.logger.info("browser_navigate", url=url)
                response = page.goto(url, wait_until="networkidle", timeout=timeout_ms)
                page.wait_for_timeout(int(self.policy.settle_delay() * 1000))
                content = page.content()
                final_url = page.url
            finally:
                browser.close()
        status_code = response.status if response is not None else 200
        return BrowserResponse(url=final_url, status_code=status_code, text=content)


class Fetcher:
    """Obtain raw markup for one page, escalating on failure.

    Up to ``max_lightweight_attempts`` plain GETs with exponential backoff,
    then a single browser render. ``FetchError`` carries the last cause.
    """

    def __init__(
        self,
        config: HarvesterConfig,
        policy: RequestDisguisePolicy,
        renderer: BrowserRenderer | None = None,
        transport: httpx.BaseTransport | None = None,
        sleeper: Sleeper = time.sleep,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.policy = policy
        self.logger = logger or structlog.get_logger("directory_harvester.fetcher")
        self.renderer = renderer or PlaywrightRenderer(config.browser, policy, logger=self.logger)
        self.sleeper = sleeper
        self._transport = transport
        self._clients: Dict[str | None, httpx.Client] = {}
        self._lock = Lock()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, *_exc) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            for client in self._clients.values():
                client.close()
            self._clients.clear()

    def fetch_page(self, url: str, page_number: int) -> FetchResponse:
        step = FetchStep(FetchState.ATTEMPT, 1)
        last_error: FetchError | None = None
        response: FetchResponse | None = None
        while step.state not in TERMINAL_STATES:
            if step.state is FetchState.ATTEMPT:
                profile = self.policy.next_profile(page_number, step.attempt)
                if profile.delay:
                    self.logger.info(
                        "fetch_backoff", url=url, attempt=step.attempt, delay=round(profile.delay, 2)
                    )
                    self.sleeper(profile.delay)
                try:
                    response = self._lightweight(url, page_number, step.attempt, profile)
                except FetchError as exc:
                    last_error = exc
                    self.policy.notify_failure(page_number, step.attempt, exc)
                    self.logger.warning(
                        "fetch_attempt_failed",
                        url=url,
                        page=page_number,
                        attempt=step.attempt,
                        kind=exc.kind,
                        error=exc.message,
                    )
            else:
                self.logger.info("browser_fallback", url=url, page=page_number)
                profile = self.policy.next_profile(page_number, step.attempt + 1)
                try:
                    response = self._browser(url, page_number, step.attempt + 1, profile)
                except FetchError as exc:
                    last_error = exc
                    self.logger.warning(
                        "browser_fallback_failed",
                        url=url,
                        page=page_number,
                        kind=exc.kind,
                        error=exc.message,
                    )
            step = advance(
                step,
                succeeded=response is not None,
                settings=self.config.fetch,
                browser_enabled=self.config.browser.enabled,
            )

        if step.state is FetchState.DONE and response is not None:
            return response
        assert last_error is not None
        raise FetchError(
            page_number,
            url,
            f"All fetch strategies failed: {last_error.message}",
            kind=last_error.kind,
        ) from last_error

    # ------------------------------------------------------------------
    def _client_for(self, proxy: str | None) -> httpx.Client:
        key = None if self._transport is not None else proxy
        with self._lock:
            client = self._clients.get(key)
            if client is None:
                kwargs: dict = {
                    "follow_redirects": True,
                    "verify": self.config.fetch.verify_ssl,
                    "timeout": self.config.fetch.request_timeout,
                }
                if self._transport is not None:
                    kwargs["transport"] = self._transport
                elif proxy:
                    kwargs["proxy"] = proxy
                client = httpx.Client(**kwargs)
                self._clients[key] = client
            return client

    def _lightweight(
        self, url: str, page_number: int, attempt: int, profile: RequestProfile
    ) -> FetchResponse:
        client = self._client_for(profile.proxy)
        try:
            response = client.get(url, headers=profile.request_headers(), timeout=profile.timeout)
        except httpx.TimeoutException as exc:
            raise FetchError(page_number, url, f"Timeout: {exc}", kind="timeout") from exc
        except httpx.HTTPError as exc:
            raise FetchError(page_number, url, f"Network error: {exc}", kind="network") from exc
        if not response.is_success:
            raise FetchError(
                page_number,
                url,
                f"Unexpected status {response.status_code}",
                kind=classify_status(response.status_code),
            )
        if not response.text.strip():
            raise FetchError(page_number, url, "Empty response body", kind="empty_body")
        return FetchResponse(
            url=str(response.url),
            status_code=response.status_code,
            text=response.text,
            via="http",
            attempts=attempt,
        )

    def _browser(
        self, url: str, page_number: int, attempt: int, profile: RequestProfile
    ) -> FetchResponse:
        try:
            rendered = self.renderer.render(url, profile)
        except BrowserUnavailable as exc:
            raise FetchError(page_number, url, str(exc), kind="browser_unavailable") from exc
        except Exception as exc:  # noqa: BLE001
            raise FetchError(page_number, url, f"Browser render failed: {exc}", kind="network") from exc
        if rendered.status_code >= 400:
            raise FetchError(
                page_number,
                url,
                f"Unexpected status {rendered.status_code} (browser)",
                kind=classify_status(rendered.status_code),
            )
        if not rendered.text.strip():
            raise FetchError(page_number, url, "Empty rendered document", kind="empty_body")
        return FetchResponse(
            url=rendered.url,
            status_code=rendered.status_code,
            text=rendered.text,
            via="browser",
            attempts=attempt,
        )


__all__ = [
    "BrowserRenderer",
    "BrowserResponse",
    "BrowserUnavailable",
    "FetchResponse",
    "FetchState",
    "FetchStep",
    "Fetcher",
    "PlaywrightRenderer",
    "advance",
    "classify_status",
]
