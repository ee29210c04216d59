"""Lightweight upstream proxy rotation."""

from __future__ import annotations

from threading import Lock
from typing import Iterable, List, Optional


class ProxyPool:
    """Circular proxy provider; ``rotate`` moves on after a failure."""

    def __init__(self, proxies: Iterable[str] | None = None) -> None:
        self._lock = Lock()
        self._index = 0
        self._proxies: List[str] = [p.strip() for p in proxies or () if p.strip()]

    @property
    def empty(self) -> bool:
        return not self._proxies

    def current(self) -> Optional[str]:
        with self._lock:
            if not self._proxies:
                return None
            return self._proxies[self._index % len(self._proxies)]

    def rotate(self) -> Optional[str]:
        """Move to the next proxy and return it."""
        with self._lock:
            if not self._proxies:
                return None
            self._index += 1
            return self._proxies[self._index % len(self._proxies)]


__all__ = ["ProxyPool"]
