from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError as SchemaError

from directory_harvester.config import (
    ConfigLocator,
    ConfigRepository,
    HarvesterConfig,
    PacingSettings,
    ProxySettings,
    ScrapeMode,
    apply_env_overrides,
)


def test_defaults_match_documented_behaviour() -> None:
    config = HarvesterConfig()
    assert config.fetch.max_lightweight_attempts == 3
    assert (config.fetch.backoff_base, config.fetch.backoff_cap) == (1.0, 30.0)
    assert config.pacing.success_range(ScrapeMode.DIRECTORY) == (5.0, 10.0)
    assert config.pacing.success_range(ScrapeMode.CATEGORY) == (2.0, 5.0)
    assert config.pacing.failure_delay == (10.0, 15.0)
    assert config.server.port == 3000
    assert config.early_stop_kinds == ["not_found"]


def test_delay_ranges_are_validated() -> None:
    with pytest.raises(SchemaError):
        PacingSettings(directory_delay=[10, 5])
    with pytest.raises(SchemaError):
        PacingSettings(failure_delay=[-1, 2])
    with pytest.raises(SchemaError):
        HarvesterConfig(fetch={"max_lightweight_attempts": 0})


def test_user_agent_file_is_expanded(tmp_path: Path) -> None:
    ua_file = tmp_path / "agents.txt"
    ua_file.write_text("agent-one\n\n agent-two \n", encoding="utf-8")
    config = HarvesterConfig(user_agent_list=ua_file)
    assert config.user_agent_list == ["agent-one", "agent-two"]


def test_proxy_upstream_urls() -> None:
    assert ProxySettings().upstream_urls() == []
    settings = ProxySettings(enabled=True, host="10.0.0.1", port=8080, rotation=["http://spare:1"])
    assert settings.upstream_urls() == ["http://10.0.0.1:8080", "http://spare:1"]


def test_first_load_writes_default_file(temp_config_repository: ConfigRepository) -> None:
    config = temp_config_repository.load_config(environ={})
    path = temp_config_repository.locator.config_path()
    assert path.exists()
    stored = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert stored["server"]["port"] == config.server.port
    assert temp_config_repository.load_config(environ={}) is config


def test_file_values_are_read(tmp_path: Path) -> None:
    locator = ConfigLocator(project_root=tmp_path)
    locator.config_path().write_text(
        yaml.safe_dump({"default_dataset": "lagos", "pacing": {"directory_delay": [1, 2]}}),
        encoding="utf-8",
    )
    config = ConfigRepository(locator).load_config(environ={})
    assert config.default_dataset == "lagos"
    assert config.pacing.directory_delay == (1.0, 2.0)


def test_malformed_file_is_reported(tmp_path: Path) -> None:
    locator = ConfigLocator(project_root=tmp_path)
    locator.config_path().write_text("pacing: [unclosed", encoding="utf-8")
    with pytest.raises(ValueError, match="malformed"):
        ConfigRepository(locator).load_config(environ={})


def test_environment_overrides() -> None:
    config = apply_env_overrides(
        HarvesterConfig(),
        {
            "PORT": "8081",
            "PROXY_URL": "proxy.example.com",
            "PROXY_PORT": "3128",
            "BROWSER_EXECUTABLE_PATH": "/usr/bin/chromium",
        },
    )
    assert config.server.port == 8081
    assert config.proxy.upstream_urls() == ["http://proxy.example.com:3128"]
    assert config.browser.executable_path == "/usr/bin/chromium"


def test_bad_port_override() -> None:
    with pytest.raises(ValueError, match="PORT"):
        apply_env_overrides(HarvesterConfig(), {"PORT": "eighty"})


def test_home_environment_relocates_paths(tmp_path: Path) -> None:
    locator = ConfigLocator()
    assert locator.project_root == tmp_path.resolve()
    assert locator.outputs_dir.is_dir()
    repository = ConfigRepository(locator)
    config = repository.load_config(environ={})
    assert repository.outputs_dir(config) == (tmp_path / "data" / "outputs").resolve()
