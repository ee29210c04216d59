"""Pydantic models describing harvester configuration."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class ScrapeMode(str, Enum):
    """Supported directory URL shapes."""

    DIRECTORY = "directory"
    CATEGORY = "category"


def _coerce_range(value: Any, label: str) -> tuple[float, float]:
    if isinstance(value, (list, tuple)) and len(value) == 2:
        low, high = float(value[0]), float(value[1])
        if low < 0 or high < 0:
            raise ValueError(f"{label} values must be non-negative")
        if high < low:
            raise ValueError(f"{label} upper bound must be >= lower bound")
        return (low, high)
    raise ValueError(f"{label} expects a two-item list or tuple")


class FetchSettings(BaseModel):
    """Lightweight HTTP attempt budget and backoff."""

    max_lightweight_attempts: int = 3
    backoff_base: float = 1.0
    backoff_cap: float = 30.0
    request_timeout: float = 20.0
    verify_ssl: bool = True

    @model_validator(mode="after")
    def _validate_budget(self) -> "FetchSettings":
        if self.max_lightweight_attempts < 1:
            raise ValueError("max_lightweight_attempts must be >= 1")
        if self.backoff_base < 0 or self.backoff_cap < 0:
            raise ValueError("backoff values must be non-negative")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        return self


class BrowserSettings(BaseModel):
    """Headless browser fallback options."""

    enabled: bool = True
    headless: bool = True
    executable_path: str | None = None
    navigation_timeout: float = 30.0
    viewport: tuple[int, int] = (1366, 768)
    pre_navigation_delay: tuple[float, float] = (2.0, 5.0)
    settle_delay: tuple[float, float] = (2.0, 7.0)
    stealth: bool = True

    @field_validator("pre_navigation_delay", "settle_delay", mode="before")
    @classmethod
    def _coerce_delay(cls, value: Any) -> tuple[float, float]:
        return _coerce_range(value, "browser delay")


class PacingSettings(BaseModel):
    """Inter-request delays, in seconds."""

    directory_delay: tuple[float, float] = (5.0, 10.0)
    category_delay: tuple[float, float] = (2.0, 5.0)
    failure_delay: tuple[float, float] = (10.0, 15.0)

    @field_validator("directory_delay", "category_delay", "failure_delay", mode="before")
    @classmethod
    def _coerce_delay(cls, value: Any) -> tuple[float, float]:
        return _coerce_range(value, "delay range")

    def success_range(self, mode: ScrapeMode) -> tuple[float, float]:
        if mode is ScrapeMode.CATEGORY:
            return self.category_delay
        return self.directory_delay


class ProxySettings(BaseModel):
    """Upstream proxy; a single host/port or a rotation list."""

    enabled: bool = False
    host: str | None = None
    port: int = 80
    protocol: str = "http"
    rotation: list[str] = Field(default_factory=list)

    def upstream_urls(self) -> list[str]:
        if not self.enabled:
            return []
        urls = [item.strip() for item in self.rotation if item.strip()]
        if self.host:
            host = self.host
            if "://" not in host:
                host = f"{self.protocol}://{host}"
            urls.insert(0, f"{host}:{self.port}")
        return urls


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class HarvesterConfig(BaseModel):
    """Top level configuration shared by CLI and HTTP server."""

    fetch: FetchSettings = Field(default_factory=FetchSettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    pacing: PacingSettings = Field(default_factory=PacingSettings)
    proxy: ProxySettings = Field(default_factory=ProxySettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    user_agent_list: list[str] | Path | None = None
    rotate_by_page: bool = True
    early_stop_window: int = 5
    early_stop_kinds: list[str] = Field(default_factory=lambda: ["not_found"])
    site_origin: str = "https://www.businesslist.com.ng"
    default_dataset: str = "businesses"
    outputs_dir: Path = Field(default=Path("data/outputs"))

    @field_validator("outputs_dir", mode="before")
    @classmethod
    def _coerce_dir(cls, value: Any) -> Path:
        return Path(value)

    @model_validator(mode="after")
    def _apply_user_agents(self) -> "HarvesterConfig":
        if isinstance(self.user_agent_list, Path):
            if not self.user_agent_list.exists():
                raise ValueError(f"UA file not found: {self.user_agent_list}")
            content = self.user_agent_list.read_text(encoding="utf-8").splitlines()
            self.user_agent_list = [line.strip() for line in content if line.strip()]
        if self.early_stop_window < 0:
            raise ValueError("early_stop_window must be >= 0")
        return self

    def resolved_outputs_dir(self, base_dir: Path) -> Path:
        if not self.outputs_dir.is_absolute():
            return (base_dir / self.outputs_dir).resolve()
        return self.outputs_dir


__all__ = [
    "BrowserSettings",
    "FetchSettings",
    "HarvesterConfig",
    "PacingSettings",
    "ProxySettings",
    "ScrapeMode",
    "ServerSettings",
]
