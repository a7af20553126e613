"""
Pytest configuration and shared fixtures for micloud tests.

This module provides reusable fixtures and test utilities used across
the test suite: temporary files of exact sizes, a DriveSession pointed at
fake hosts, and canned drive responses.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from urllib.parse import parse_qs

import pytest
import yaml

from micloud.config import DEFAULT_CONFIG
from micloud.io.session import DriveSession, make_session
from micloud.logging import SilentLogger, set_global_logger

BASE_URL = "https://drive.test"
NODE_URL = "https://node.test"
CREATE_URL = f"{BASE_URL}/drive/user/files/create"
COMMIT_URL = f"{BASE_URL}/drive/user/files"
BLOCK_URL = f"{NODE_URL}/upload_block_chunk"
SERVICE_TOKEN = "service-token"


def pattern_bytes(size: int, seed: int = 0) -> bytes:
    """Deterministic content of the given size."""
    block = bytes((i * 7 + seed) % 251 for i in range(251))
    return (block * (size // len(block) + 1))[:size]


def form_fields(request) -> dict[str, str]:
    """Decode the form-encoded body of a recorded request."""
    return {k: v[0] for k, v in parse_qs(request.text).items()}


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """
    Keep tests away from the real user config, token and .env files, and
    reset the global logger after each test.
    """
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MICLOUD_CONFIG", str(tmp_path / "no-user-config.yaml"))
    monkeypatch.delenv("MICLOUD_SERVICE_TOKEN", raising=False)
    yield
    set_global_logger(SilentLogger())


@pytest.fixture
def tmp_test_dir(tmp_path: Path) -> Path:
    """
    Provide a temporary directory for test artifacts.

    Automatically cleaned up after test completion.
    """
    return tmp_path


@pytest.fixture
def make_file(tmp_test_dir: Path):
    """
    Factory fixture for creating files of an exact size.

    Usage:
        path = make_file("data.bin", 10 * 1024 * 1024)
    """

    def _create(name: str, size: int, seed: int = 0) -> Path:
        path = tmp_test_dir / name
        path.write_bytes(pattern_bytes(size, seed))
        return path

    return _create


@pytest.fixture
def create_yaml_file(tmp_test_dir: Path):
    """
    Factory fixture for creating temporary YAML files.

    Usage:
        yaml_path = create_yaml_file("micloud.yaml", {"key": "value"})
    """

    def _create(filename: str, data: dict[str, Any]) -> Path:
        path = tmp_test_dir / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            yaml.dump(data, f)
        return path

    return _create


@pytest.fixture
def drive():
    """Provide a DriveSession pointed at the fake drive host."""
    session = DriveSession(
        make_session({"Origin": "https://i.mi.com"}),
        base_url=BASE_URL,
        endpoints=DEFAULT_CONFIG["api"]["endpoints"],
        service_token=SERVICE_TOKEN,
        timeout=5,
        block_timeout=10,
    )
    yield session
    session.close()


@pytest.fixture
def blocks_needed_response():
    """
    Factory for a negotiation response that asks for blocks.

    Usage:
        doc = blocks_needed_response(["bm-0", None, "bm-2"])
        # None marks a block the drive already holds
    """

    def _build(block_metas: list[str | None], node_urls: list[str] | None = None):
        entries = []
        for i, meta in enumerate(block_metas):
            if meta is None:
                entries.append({"is_existed": 1, "commit_meta": f"existing-{i}"})
            else:
                entries.append({"block_meta": meta})
        return {
            "result": "ok",
            "data": {
                "storage": {
                    "exists": False,
                    "uploadId": "upload-1",
                    "kss": {
                        "node_urls": [NODE_URL] if node_urls is None else node_urls,
                        "file_meta": "fm-token",
                        "secure_key": "secure-key",
                        "contentCacheKey": "cache-key",
                        "block_metas": entries,
                    },
                }
            },
        }

    return _build
