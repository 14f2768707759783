import json
from pathlib import Path

import pytest

from apiscout.config import ScanConfig, load_config
from apiscout.errors import ConfigError


def test_defaults_without_file(monkeypatch):
    monkeypatch.delenv("POSTMAN_API_KEY", raising=False)
    monkeypatch.delenv("POSTMAN_WORKSPACE_ID", raising=False)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)

    cfg = load_config(None)

    assert cfg.directory_to_scan == "./"
    assert cfg.framework == "express"
    assert cfg.object_instance == "app"
    assert cfg.base_url == "http://localhost:3000"
    assert cfg.postman_collection_file == "./postman_collection.json"
    assert cfg.postman_api_key is None
    assert "node_modules" in cfg.ignore_dirs
    assert cfg.skip_unreadable_dirs is False


def test_camel_case_file_and_env_fallback(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("POSTMAN_API_KEY", "from-env")
    monkeypatch.delenv("POSTMAN_WORKSPACE_ID", raising=False)
    p = tmp_path / "config.json"
    p.write_text(
        json.dumps(
            {
                "directoryToScan": "./src",
                "framework": "Fastify",
                "objectInstance": "server",
                "workspaceId": "ws-1",
                "ignoreDirs": [],
                "unknownKey": 1,
            }
        ),
        encoding="utf-8",
    )

    cfg = load_config(p)

    assert cfg.directory_to_scan == "./src"
    assert cfg.framework == "fastify"
    assert cfg.object_instance == "server"
    assert cfg.workspace_id == "ws-1"
    assert cfg.postman_api_key == "from-env"
    assert cfg.ignore_dirs == []


def test_file_values_beat_environment(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "env-token")
    p = tmp_path / "config.json"
    p.write_text('{"github_token": "file-token"}', encoding="utf-8")
    assert load_config(p).github_token == "file-token"


@pytest.mark.parametrize(
    "content",
    ["{not json", "[1, 2]", '{"framework": "koa"}', '{"objectInstance": "  "}'],
)
def test_invalid_config_raises(tmp_path: Path, content: str):
    p = tmp_path / "config.json"
    p.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(p)


def test_missing_config_file_raises(tmp_path: Path):
    with pytest.raises(ConfigError) as exc:
        load_config(tmp_path / "nope.json")
    assert "nope.json" in str(exc.value)


def test_overrides_skip_none_and_revalidate():
    cfg = ScanConfig().with_overrides(framework="nest", object_instance=None, base_url="http://api")
    assert cfg.framework == "nest"
    assert cfg.object_instance == "app"
    assert cfg.base_url == "http://api"

    with pytest.raises(ConfigError):
        ScanConfig().with_overrides(framework="hapi")
