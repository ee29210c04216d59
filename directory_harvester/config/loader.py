"""Configuration loading helpers for directory_harvester."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml

from .models import HarvesterConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
CONFIG_FILENAME = "harvester_config.yaml"
HOME_ENV = "DIRECTORY_HARVESTER_HOME"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ValueError(f"Configuration file is malformed: {path}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    outputs_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.outputs_dir = (self.data_dir / "outputs").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.outputs_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILENAME


def apply_env_overrides(config: HarvesterConfig, environ: Mapping[str, str]) -> HarvesterConfig:
    """Layer process environment on top of file configuration."""

    update: dict = {}
    port = environ.get("PORT", "").strip()
    if port:
        try:
            update["server"] = config.server.model_copy(update={"port": int(port)})
        except ValueError as exc:
            raise ValueError(f"PORT must be an integer, got {port!r}") from exc

    proxy_host = environ.get("PROXY_URL", "").strip()
    if proxy_host:
        proxy_update: dict = {"enabled": True, "host": proxy_host}
        proxy_port = environ.get("PROXY_PORT", "").strip()
        if proxy_port:
            try:
                proxy_update["port"] = int(proxy_port)
            except ValueError as exc:
                raise ValueError(f"PROXY_PORT must be an integer, got {proxy_port!r}") from exc
        update["proxy"] = config.proxy.model_copy(update=proxy_update)

    executable = environ.get("BROWSER_EXECUTABLE_PATH", "").strip()
    if executable:
        update["browser"] = config.browser.model_copy(update={"executable_path": executable})

    if not update:
        return config
    return config.model_copy(update=update)


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._cache: HarvesterConfig | None = None

    def load_config(self, environ: Mapping[str, str] | None = None) -> HarvesterConfig:
        if self._cache is not None:
            return self._cache
        path = self.locator.config_path()
        if path.exists():
            config = HarvesterConfig.model_validate(_read_file(path))
        else:
            config = HarvesterConfig()
            self.save_config(config)
        config = apply_env_overrides(config, os.environ if environ is None else environ)
        self._cache = config
        return config

    def save_config(self, config: HarvesterConfig) -> None:
        path = self.locator.config_path()
        _write_file(path, config.model_dump(mode="json"))
        self._cache = None

    def outputs_dir(self, config: HarvesterConfig) -> Path:
        return config.resolved_outputs_dir(self.locator.project_root)


__all__ = ["ConfigLocator", "ConfigRepository", "CONFIG_EXTENSIONS", "apply_env_overrides"]
