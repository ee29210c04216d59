from __future__ import annotations

import sys
import types
from contextlib import contextmanager

import pytest

from directory_harvester.config import HarvesterConfig
from directory_harvester.engine.antibot import RequestDisguisePolicy
from directory_harvester.engine.fetcher import STEALTH_SCRIPT, Fetcher, PlaywrightRenderer
from directory_harvester.errors import FetchError


class FakePage:
    def __init__(self, log: dict) -> None:
        self.log = log
        self.url = ""

    def wait_for_timeout(self, ms: int) -> None:
        self.log.setdefault("waits", []).append(ms)

    def goto(self, url: str, wait_until: str, timeout: int):
        self.log["goto"] = (url, wait_until, timeout)
        if self.log.get("fail_goto"):
            raise TimeoutError(f"Timeout {timeout}ms exceeded navigating to {url}")
        self.url = url
        return types.SimpleNamespace(status=200)

    def content(self) -> str:
        return "<html><body>rendered</body></html>"


class FakeContext:
    def __init__(self, log: dict) -> None:
        self.log = log

    def add_init_script(self, script: str) -> None:
        self.log["init_script"] = script

    def new_page(self) -> FakePage:
        return FakePage(self.log)


class FakeBrowser:
    def __init__(self, log: dict) -> None:
        self.log = log

    def new_context(self, **kwargs) -> FakeContext:
        self.log["context"] = kwargs
        return FakeContext(self.log)

    def close(self) -> None:
        self.log["closed"] = True


def install_fake_playwright(monkeypatch, log: dict) -> None:
    def launch(**kwargs):
        log["launch"] = kwargs
        return FakeBrowser(log)

    @contextmanager
    def sync_playwright():
        yield types.SimpleNamespace(chromium=types.SimpleNamespace(launch=launch))

    module = types.ModuleType("playwright.sync_api")
    module.sync_playwright = sync_playwright
    monkeypatch.setitem(sys.modules, "playwright.sync_api", module)


def test_render_applies_profile_and_closes_browser(monkeypatch, outputs_dir, rng) -> None:
    log: dict = {}
    install_fake_playwright(monkeypatch, log)
    config = HarvesterConfig(
        outputs_dir=outputs_dir,
        browser={"executable_path": "/usr/bin/chromium", "pre_navigation_delay": [1, 1], "settle_delay": [2, 2]},
    )
    policy = RequestDisguisePolicy(config, rng=rng)
    profile = policy.next_profile(2)
    profile.proxy = "http://proxy.local:8080"

    response = PlaywrightRenderer(config.browser, policy).render("https://example.com/2", profile)

    assert response.status_code == 200
    assert "rendered" in response.text
    assert log["closed"] is True
    assert log["launch"]["executable_path"] == "/usr/bin/chromium"
    assert log["launch"]["proxy"] == {"server": "http://proxy.local:8080"}
    assert log["context"]["user_agent"] == profile.headers["User-Agent"]
    assert set(log["context"]["extra_http_headers"]) == {"Accept-Language", "Referer"}
    assert log["init_script"] == STEALTH_SCRIPT
    assert log["goto"] == ("https://example.com/2", "networkidle", 30000)
    assert log["waits"] == [1000, 2000]


def test_navigation_failure_still_closes_browser(monkeypatch, harvester_config, rng) -> None:
    log: dict = {"fail_goto": True}
    install_fake_playwright(monkeypatch, log)
    policy = RequestDisguisePolicy(harvester_config, rng=rng)
    renderer = PlaywrightRenderer(harvester_config.browser, policy)

    with pytest.raises(TimeoutError):
        renderer.render("https://example.com/4", policy.next_profile(4))

    assert log["closed"] is True
    assert "launch" in log


def test_fetcher_reports_render_crash_as_network_error(
    monkeypatch, harvester_config, site, sleeper, rng
) -> None:
    log: dict = {"fail_goto": True}
    install_fake_playwright(monkeypatch, log)
    url = "https://www.businesslist.com.ng/location/lagos/4"
    policy = RequestDisguisePolicy(harvester_config, rng=rng)
    renderer = PlaywrightRenderer(harvester_config.browser, policy)

    with Fetcher(
        harvester_config, policy, renderer=renderer, transport=site.transport, sleeper=sleeper
    ) as fetcher:
        with pytest.raises(FetchError) as excinfo:
            fetcher.fetch_page(url, 4)

    assert excinfo.value.kind == "network"
    assert "Browser render failed" in excinfo.value.message
    assert log["closed"] is True
    assert site.calls_for(url) == 3
