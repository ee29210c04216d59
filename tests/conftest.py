"""Shared fixtures: isolated home, fake site, fake browser and recorded sleeps."""

from __future__ import annotations

import random
from pathlib import Path
from typing import Callable, Iterable

import httpx
import pytest

from directory_harvester.config import ConfigLocator, ConfigRepository, HarvesterConfig
from directory_harvester.engine.antibot import RequestProfile
from directory_harvester.engine.fetcher import BrowserResponse
from directory_harvester.orchestrator import PageRangeOrchestrator, build_orchestrator

SITE = "https://www.businesslist.com.ng"
DIRECTORY_URL = f"{SITE}/location/lagos"


def listing_html(
    name: str,
    address: str = "",
    phone: str = "",
    image: str | None = None,
    style_image: str | None = None,
    verified: bool = False,
    ad: bool = False,
) -> str:
    """Markup for one listing node as the directory renders it."""

    classes = "company with_img" + (" company_ad" if ad else "")
    logo = ""
    if image:
        logo = f'<div class="logo lazy-img" data-bg="{image}"></div>'
    elif style_image:
        logo = f"<div class=\"logo lazy-img\" style=\"background-image: url('{style_image}')\"></div>"
    address_html = f'<div class="address">{address}</div>' if address else ""
    phone_html = (
        f'<div class="s"><i class="fa fa-phone"></i><span>{phone}</span></div>' if phone else ""
    )
    badge = '<u class="v"><i class="fa fa-check-circle"></i> Verified</u>' if verified else ""
    return (
        f'<div class="{classes}">{logo}'
        f'<div class="company_header"><h3><a href="/company/1">{name}</a></h3>{address_html}</div>'
        f'<div class="cont">{phone_html}{badge}</div>'
        "</div>"
    )


def page_html(*listings: str) -> str:
    return (
        "<html><head><title>Directory</title></head><body>"
        f'<div id="listings">{"".join(listings)}</div>'
        "</body></html>"
    )


class FakeSite:
    """Routes for ``httpx.MockTransport``; unknown URLs answer 404."""

    def __init__(self) -> None:
        self.routes: dict[str, list[tuple[int, str]]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url: str, *responses: tuple[int, str]) -> None:
        self.routes[url] = list(responses)

    def page(self, url: str, *listings: str) -> None:
        self.add(url, (200, page_html(*listings)))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get(str(request.url))
        if not queue:
            return httpx.Response(404, text="")
        status, body = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(status, text=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def calls_for(self, url: str) -> int:
        return sum(1 for request in self.requests if str(request.url) == url)


class FakeRenderer:
    """Stand-in for the browser fallback."""

    def __init__(self) -> None:
        self.pages: dict[str, tuple[int, str]] = {}
        self.calls: list[tuple[str, RequestProfile]] = []
        self.error: Exception | None = None

    def render(self, url: str, profile: RequestProfile) -> BrowserResponse:
        self.calls.append((url, profile))
        if self.error is not None:
            raise self.error
        status, text = self.pages.get(url, (404, ""))
        return BrowserResponse(url=url, status_code=status, text=text)


class RecordingSleeper:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("DIRECTORY_HARVESTER_HOME", str(tmp_path))
    for name in ("PORT", "PROXY_URL", "PROXY_PORT", "BROWSER_EXECUTABLE_PATH"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def outputs_dir(tmp_path: Path) -> Path:
    path = tmp_path / "outputs"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def harvester_config(outputs_dir: Path) -> HarvesterConfig:
    return HarvesterConfig(outputs_dir=outputs_dir)


@pytest.fixture
def temp_config_repository(tmp_path: Path) -> Iterable[ConfigRepository]:
    locator = ConfigLocator(project_root=tmp_path)
    yield ConfigRepository(locator)


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def build_harvester(
    harvester_config: HarvesterConfig,
    outputs_dir: Path,
    site: FakeSite,
    renderer: FakeRenderer,
    sleeper: RecordingSleeper,
    rng: random.Random,
) -> Callable[..., PageRangeOrchestrator]:
    def _build(config: HarvesterConfig | None = None) -> PageRangeOrchestrator:
        return build_orchestrator(
            config or harvester_config,
            outputs_dir,
            transport=site.transport,
            renderer=renderer,
            sleeper=sleeper,
            rng=rng,
        )

    return _build


@pytest.fixture
def listing() -> Callable[..., str]:
    return listing_html


@pytest.fixture
def page() -> Callable[..., str]:
    return page_html
