"""Strategy chain assembling per-attempt request disguises."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from ...config import HarvesterConfig


@dataclass
class RequestProfile:
    """Identity headers, referer and pacing for one outgoing attempt."""

    headers: dict[str, str] = field(default_factory=dict)
    referer: str | None = None
    delay: float = 0.0
    proxy: str | None = None
    timeout: float | None = None

    def request_headers(self) -> dict[str, str]:
        headers = dict(self.headers)
        if self.referer:
            headers["Referer"] = self.referer
        return headers


@dataclass
class DisguiseContext:
    """Shared state for all strategies in the chain."""

    config: HarvesterConfig
    rng: random.Random
    page_number: int = 1
    attempt: int = 1


class Strategy(Protocol):
    """Strategy behaviour expected by the chain."""

    def before_request(self, context: DisguiseContext, profile: RequestProfile) -> None:
        """Mutate profile ahead of an attempt."""

    def after_failure(self, context: DisguiseContext, error: Exception | None) -> None:
        """React when an attempt fails."""


class DisguiseChain:
    """Compose multiple strategies behind one ``prepare`` call."""

    def __init__(self, strategies: Optional[List[Strategy]] = None) -> None:
        self.strategies = strategies or []

    def prepare(self, context: DisguiseContext) -> RequestProfile:
        profile = RequestProfile(timeout=context.config.fetch.request_timeout)
        for strategy in self.strategies:
            strategy.before_request(context, profile)
        return profile

    def notify_failure(self, context: DisguiseContext, error: Exception | None) -> None:
        for strategy in self.strategies:
            strategy.after_failure(context, error)


__all__ = ["DisguiseChain", "DisguiseContext", "RequestProfile", "Strategy"]
