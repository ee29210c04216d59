"""Concrete disguise strategies used by the chain."""

from __future__ import annotations

from ...config import FetchSettings
from ...infra import ProxyPool, SignaturePool
from .chain import DisguiseContext, RequestProfile, Strategy

SEARCH_REFERERS: tuple[str, ...] = (
    "https://www.google.com/",
    "https://www.bing.com/",
    "https://search.yahoo.com/",
    "https://duckduckgo.com/",
)


def backoff_delay(failed_attempts: int, settings: FetchSettings) -> float:
    """Seconds to wait after ``failed_attempts`` consecutive failures."""
    if failed_attempts <= 0:
        return 0.0
    return min(settings.backoff_base * (2**failed_attempts), settings.backoff_cap)


class SignatureStrategy(Strategy):
    """Pick a browser signature: by page index or at random."""

    def __init__(self, pool: SignaturePool, by_page: bool = True) -> None:
        self.pool = pool
        self.by_page = by_page

    def before_request(self, context: DisguiseContext, profile: RequestProfile) -> None:
        if self.by_page:
            signature = self.pool.at(context.page_number + context.attempt - 1)
        else:
            signature = self.pool.at(context.rng.randrange(len(self.pool)))
        profile.headers.update(signature.headers())

    def after_failure(self, context: DisguiseContext, error: Exception | None) -> None:
        return


class RefererStrategy(Strategy):
    """Pretend the visit came from a search engine."""

    def __init__(self, referers: tuple[str, ...] = SEARCH_REFERERS, by_page: bool = True) -> None:
        self.referers = referers
        self.by_page = by_page

    def before_request(self, context: DisguiseContext, profile: RequestProfile) -> None:
        if not self.referers:
            return
        if self.by_page:
            profile.referer = self.referers[context.page_number % len(self.referers)]
        else:
            profile.referer = context.rng.choice(self.referers)

    def after_failure(self, context: DisguiseContext, error: Exception | None) -> None:
        return


class BackoffStrategy(Strategy):
    """Delay retries exponentially; the first attempt goes out at once."""

    def before_request(self, context: DisguiseContext, profile: RequestProfile) -> None:
        profile.delay = backoff_delay(context.attempt - 1, context.config.fetch)

    def after_failure(self, context: DisguiseContext, error: Exception | None) -> None:
        return


class ProxyStrategy(Strategy):
    """Route through the current upstream proxy; move on after failures."""

    def __init__(self, pool: ProxyPool | None) -> None:
        self.pool = pool

    def before_request(self, context: DisguiseContext, profile: RequestProfile) -> None:
        if self.pool and not self.pool.empty:
            profile.proxy = self.pool.current()

    def after_failure(self, context: DisguiseContext, error: Exception | None) -> None:
        if self.pool and not self.pool.empty:
            self.pool.rotate()


__all__ = [
    "BackoffStrategy",
    "ProxyStrategy",
    "RefererStrategy",
    "SEARCH_REFERERS",
    "SignatureStrategy",
    "backoff_delay",
]
