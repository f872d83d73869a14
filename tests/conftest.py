import os
import time
from pathlib import Path

import pytest

from app import create_app
from settings import Settings


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    d = tmp_path / "files"
    d.mkdir()
    return d


@pytest.fixture
def make_file():
    """Create a file whose mtime lies ``age`` seconds in the past."""
    def _make(path: Path, content: bytes = b"data", age: float = 0, now: float = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        if now is None:
            now = time.time()
        mtime = now - age
        os.utime(path, (mtime, mtime))
        return path
    return _make


@pytest.fixture
def settings(work_dir: Path) -> Settings:
    return Settings(work_dir=work_dir, upload_dir=work_dir, config_file="")


@pytest.fixture
def client(settings: Settings):
    app = create_app(settings)
    app.config["TESTING"] = True
    return app.test_client()
