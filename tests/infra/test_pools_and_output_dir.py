from __future__ import annotations

from pathlib import Path

import pytest

from directory_harvester.infra import OutputDirectory, ProxyPool, SignaturePool
from directory_harvester.infra.storage import slugify
from directory_harvester.infra.ua_pool import DEFAULT_SIGNATURES


def test_proxy_pool_rotation() -> None:
    pool = ProxyPool(["http://a:1", " ", "http://b:2 "])

    assert not pool.empty
    assert pool.current() == "http://a:1"
    assert pool.rotate() == "http://b:2"
    assert pool.rotate() == "http://a:1"

    blank = ProxyPool([" "])
    assert blank.empty
    assert blank.current() is None
    assert blank.rotate() is None


def test_signature_pool_defaults_and_custom_agents() -> None:
    default_pool = SignaturePool()
    assert len(default_pool) == len(DEFAULT_SIGNATURES)
    headers = default_pool.at(0).headers()
    assert headers["Sec-CH-UA-Platform"] == '"Windows"'
    assert headers["Upgrade-Insecure-Requests"] == "1"

    custom = SignaturePool(["ua-1", " ua-2 "])
    assert len(custom) == 2
    assert custom.at(5).user_agent == "ua-2"
    assert custom.at(5).headers()["User-Agent"] == "ua-2"

    assert len(SignaturePool([" "])) == len(DEFAULT_SIGNATURES)


def test_output_directory_paths(tmp_path: Path) -> None:
    output = OutputDirectory(tmp_path / "out")
    assert output.base_path.is_dir()
    assert output.filename_for("category_hotels") == "category_hotels.csv"
    assert output.filename_for("real estate/lagos") == "real_estate_lagos.csv"
    assert slugify("///") == "dataset"


def test_resolve_download(tmp_path: Path) -> None:
    output = OutputDirectory(tmp_path / "out")
    (output.base_path / "businesses.csv").write_text("x", encoding="utf-8")
    (tmp_path / "outside.csv").write_text("x", encoding="utf-8")

    assert output.resolve_download("businesses.csv") == output.base_path / "businesses.csv"
    assert output.resolve_download("missing.csv") is None
    assert output.resolve_download("../outside.csv") is None
    assert output.resolve_download("") is None
    assert [path.name for path in output.list_files()] == ["businesses.csv"]


def test_atomic_writer_replaces_only_on_success(tmp_path: Path) -> None:
    output = OutputDirectory(tmp_path / "out")
    target = output.path_for("businesses")
    target.write_text("old", encoding="utf-8")

    with pytest.raises(RuntimeError):
        with output.atomic_writer(target) as stream:
            stream.write("partial")
            raise RuntimeError("interrupted")

    assert target.read_text(encoding="utf-8") == "old"
    assert list(output.base_path.iterdir()) == [target]

    with output.atomic_writer(target) as stream:
        stream.write("new")
    assert target.read_text(encoding="utf-8") == "new"
