"""Request disguise policy: identity, referer and pacing per attempt."""

from __future__ import annotations

import random

from ...config import HarvesterConfig, ScrapeMode
from ...infra import ProxyPool, SignaturePool
from .chain import DisguiseChain, DisguiseContext, RequestProfile
from .strategies import (
    BackoffStrategy,
    ProxyStrategy,
    RefererStrategy,
    SignatureStrategy,
)


class RequestDisguisePolicy:
    """Produce request profiles and delays; pure computation plus randomness.

    The random source is injected so delays and picks are reproducible
    under a seed. Nothing here sleeps.
    """

    def __init__(
        self,
        config: HarvesterConfig,
        signatures: SignaturePool | None = None,
        proxies: ProxyPool | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self.rng = rng or random.Random()
        self.signatures = signatures or SignaturePool(
            config.user_agent_list if isinstance(config.user_agent_list, list) else None
        )
        self.proxies = proxies
        self.chain = DisguiseChain(
            [
                SignatureStrategy(self.signatures, by_page=config.rotate_by_page),
                RefererStrategy(by_page=config.rotate_by_page),
                BackoffStrategy(),
                ProxyStrategy(proxies),
            ]
        )

    def _context(self, page_number: int, attempt: int) -> DisguiseContext:
        return DisguiseContext(
            config=self.config, rng=self.rng, page_number=page_number, attempt=attempt
        )

    def next_profile(self, page_number: int, attempt: int = 1) -> RequestProfile:
        return self.chain.prepare(self._context(page_number, attempt))

    def notify_failure(self, page_number: int, attempt: int, error: Exception | None) -> None:
        self.chain.notify_failure(self._context(page_number, attempt), error)

    def pacing_delay(self, mode: ScrapeMode = ScrapeMode.DIRECTORY) -> float:
        return self._draw(self.config.pacing.success_range(mode))

    def failure_delay(self) -> float:
        return self._draw(self.config.pacing.failure_delay)

    def pre_navigation_delay(self) -> float:
        return self._draw(self.config.browser.pre_navigation_delay)

    def settle_delay(self) -> float:
        return self._draw(self.config.browser.settle_delay)

    def _draw(self, bounds: tuple[float, float]) -> float:
        low, high = bounds
        if high <= 0:
            return 0.0
        return self.rng.uniform(low, high)


def build_policy(config: HarvesterConfig, rng: random.Random | None = None) -> RequestDisguisePolicy:
    """Utility to build a ready-to-use policy from config."""

    rng = rng or random.Random()
    upstream = config.proxy.upstream_urls()
    proxies = ProxyPool(upstream) if upstream else None
    return RequestDisguisePolicy(config, proxies=proxies, rng=rng)


__all__ = ["RequestDisguisePolicy", "build_policy"]
