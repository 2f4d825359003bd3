from pathlib import Path

import pytest

import config


@pytest.fixture(autouse=True)
def isolated_constants(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the project root, audit log and cache at the test's tmp_path."""
    logs_dir = tmp_path / "_logs"
    monkeypatch.setitem(config.CONSTANTS, "REPO_DIR", tmp_path)
    monkeypatch.setitem(config.CONSTANTS, "LOGS_DIR", logs_dir)
    monkeypatch.setitem(config.CONSTANTS, "CACHE_DIR", tmp_path / "_cache")
    monkeypatch.setitem(config.CONSTANTS, "LOG_FILE", logs_dir / "file_log.json")
    monkeypatch.setitem(config.CONSTANTS, "LOG_FILE_APP", logs_dir / "app.log")
    monkeypatch.setitem(config.CONSTANTS, "TOOL_LOG_FILE", logs_dir / "tool.log")
    return tmp_path
