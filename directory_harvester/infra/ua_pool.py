"""Browser signature pool used to disguise outgoing requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable


@dataclass(frozen=True, slots=True)
class BrowserSignature:
    """Headers that together look like one real browser install."""

    user_agent: str
    accept_language: str = "en-US,en;q=0.5"
    client_hints: dict[str, str] = field(default_factory=dict)

    def headers(self) -> dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": self.accept_language,
            "Accept-Encoding": "gzip, deflate, br",
            "DNT": "1",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "cross-site",
            "Sec-Fetch-User": "?1",
        }
        headers.update(self.client_hints)
        return headers


def _chromium_hints(brand: str, platform: str) -> dict[str, str]:
    return {
        "Sec-CH-UA": f'"Not_A Brand";v="8", "Chromium";v="120", "{brand}";v="120"',
        "Sec-CH-UA-Mobile": "?0",
        "Sec-CH-UA-Platform": f'"{platform}"',
    }


DEFAULT_SIGNATURES: tuple[BrowserSignature, ...] = (
    BrowserSignature(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36",
        "en-US,en;q=0.9",
        _chromium_hints("Google Chrome", "Windows"),
    ),
    BrowserSignature(
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36",
        "en-GB,en;q=0.9",
        _chromium_hints("Google Chrome", "macOS"),
    ),
    BrowserSignature(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/115.0",
        "en-US,en;q=0.5",
    ),
    BrowserSignature(
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:109.0) Gecko/20100101 Firefox/115.0",
        "en-US,en;q=0.7",
    ),
    BrowserSignature(
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) "
        "Version/16.6 Safari/605.1.15",
        "en-US,en;q=0.9",
    ),
    BrowserSignature(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
        "en-US,en;q=0.9",
        _chromium_hints("Microsoft Edge", "Windows"),
    ),
)


class SignaturePool:
    """Hand out browser signatures by rotation index.

    Custom user agents replace the built-in signatures entirely; random
    picks are made by the caller through ``at(rng.randrange(len(pool)))``.
    """

    def __init__(self, user_agents: Iterable[str] | None = None) -> None:
        custom = tuple(BrowserSignature(ua.strip()) for ua in user_agents or () if ua.strip())
        self._signatures: tuple[BrowserSignature, ...] = custom or DEFAULT_SIGNATURES

    def __len__(self) -> int:
        return len(self._signatures)

    def at(self, index: int) -> BrowserSignature:
        return self._signatures[index % len(self._signatures)]


__all__ = ["BrowserSignature", "DEFAULT_SIGNATURES", "SignaturePool"]
