import os
import stat
import sys
import tempfile
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Keep tests away from any local .env and the project workspace
os.environ["MCP_API_KEYS"] = ""
os.environ.setdefault("SQLITE_BABEL_DATA_DIR", tempfile.mkdtemp(prefix="sqlite-babel-tests-"))

from sqlite_babel.app import app  # noqa: E402
from sqlite_babel.tools.sqlite_babel import sqlite_babel as sqlite_babel_module  # noqa: E402

FAKE_SQLITE3 = """#!/bin/sh
here="$(dirname "$0")"
printf '%s\\n' "$@" > "$here/argv.txt"
cat > "$here/stdin.txt"
printf '%s' "$FAKE_SQLITE_STDOUT"
if [ -n "$FAKE_SQLITE_STDERR" ]; then
    printf '%s' "$FAKE_SQLITE_STDERR" >&2
fi
exit "${FAKE_SQLITE_EXIT:-0}"
"""


class FakeSqlite3:
    """A stand-in sqlite3 executable that records its argv and stdin."""

    def __init__(self, directory: Path, monkeypatch: pytest.MonkeyPatch):
        self.directory = directory
        self.path = directory / "fake-sqlite3"
        self.path.write_text(FAKE_SQLITE3)
        self.path.chmod(self.path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        self._monkeypatch = monkeypatch
        self.respond()

    def respond(self, stdout: str = "", stderr: str = "", exit_code: int = 0) -> None:
        self._monkeypatch.setenv("FAKE_SQLITE_STDOUT", stdout)
        self._monkeypatch.setenv("FAKE_SQLITE_STDERR", stderr)
        self._monkeypatch.setenv("FAKE_SQLITE_EXIT", str(exit_code))

    @property
    def argv(self) -> list[str]:
        return (self.directory / "argv.txt").read_text().splitlines()

    @property
    def stdin(self) -> str:
        return (self.directory / "stdin.txt").read_text()


@pytest.fixture
def fake_sqlite3(tmp_path, monkeypatch):
    if sys.platform == "win32":
        pytest.skip("fake sqlite3 is a POSIX shell script")
    fake = FakeSqlite3(tmp_path, monkeypatch)
    monkeypatch.setattr(sqlite_babel_module, "SQLITE3_COMMAND", str(fake.path))
    monkeypatch.setattr(sqlite_babel_module, "DATA_DIR", tmp_path / "data")
    return fake


@pytest_asyncio.fixture(scope="function")
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
