import logging
import sys
import time

import pytest

from apps.archiver.dispatcher import SPAWN_FAILED_STATUS, TIMEOUT_STATUS, ArchivalDispatcher
from tests.conftest import make_bookmark

WRITE_OUTPUT = "import sys; open(sys.argv[2], 'w').write(sys.argv[1])"


def python_renderer(script: str) -> list[str]:
    return [sys.executable, "-c", script, "{url}", "{output}"]


@pytest.fixture
def bookmark():
    return make_bookmark(1)


def test_output_path_uses_hash_and_format(tmp_path, bookmark):
    dispatcher = ArchivalDispatcher("render {url} {output}", tmp_path, archive_format=".html")
    assert dispatcher.output_path(bookmark) == tmp_path / "hash0001.html"


def test_build_command_substitutes_placeholders(tmp_path, bookmark):
    dispatcher = ArchivalDispatcher("wkhtmltopdf --quiet {url} {output}", tmp_path)
    assert dispatcher.build_command(bookmark) == [
        "wkhtmltopdf",
        "--quiet",
        "https://example.com/page-1",
        str(tmp_path / "hash0001.pdf"),
    ]


def test_empty_command_rejected(tmp_path):
    with pytest.raises(ValueError):
        ArchivalDispatcher("", tmp_path)


@pytest.mark.asyncio
async def test_success_returns_zero_and_artifact_exists(tmp_path, bookmark):
    dispatcher = ArchivalDispatcher(python_renderer(WRITE_OUTPUT), tmp_path, timeout=30)

    status = await dispatcher.archive(bookmark)

    assert status == 0
    assert (tmp_path / "hash0001.pdf").read_text() == bookmark.url


@pytest.mark.asyncio
async def test_nonzero_exit_is_returned(tmp_path, bookmark, caplog):
    dispatcher = ArchivalDispatcher(python_renderer("import sys; sys.exit(3)"), tmp_path, timeout=30)

    with caplog.at_level(logging.ERROR, logger="apps.archiver.dispatcher"):
        status = await dispatcher.archive(bookmark)

    assert status == 3
    assert "exited with code 3" in caplog.text
    assert bookmark.url in caplog.text
    assert "hash0001.pdf" in caplog.text


@pytest.mark.asyncio
async def test_timeout_kills_renderer(tmp_path, bookmark, caplog):
    dispatcher = ArchivalDispatcher(python_renderer("import time; time.sleep(30)"), tmp_path, timeout=0.5)

    started = time.monotonic()
    with caplog.at_level(logging.ERROR, logger="apps.archiver.dispatcher"):
        status = await dispatcher.archive(bookmark)

    assert status == TIMEOUT_STATUS
    assert time.monotonic() - started < 10
    assert "timed out" in caplog.text
    assert bookmark.url in caplog.text


@pytest.mark.asyncio
@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
async def test_signal_termination_is_failure(tmp_path, bookmark, caplog):
    script = "import os, signal; os.kill(os.getpid(), signal.SIGKILL)"
    dispatcher = ArchivalDispatcher(python_renderer(script), tmp_path, timeout=30)

    with caplog.at_level(logging.ERROR, logger="apps.archiver.dispatcher"):
        status = await dispatcher.archive(bookmark)

    assert status != 0
    assert status < 0
    assert "killed by signal" in caplog.text


@pytest.mark.asyncio
async def test_missing_renderer_is_failure(tmp_path, bookmark):
    dispatcher = ArchivalDispatcher([str(tmp_path / "no-such-renderer"), "{url}", "{output}"], tmp_path)
    assert await dispatcher.archive(bookmark) == SPAWN_FAILED_STATUS
