"""Shared test fixtures for the RampForge test suite."""

from __future__ import annotations

import asyncio
import socket
import threading
from typing import TYPE_CHECKING

import pytest
from aiohttp import web

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator
    from pathlib import Path


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


# =============================================================================
# Target server handlers
# =============================================================================


async def _ok_handler(request: web.Request) -> web.Response:
    """Always 200 with a small JSON body."""
    return web.json_response({"status": "ok"})


async def _echo_handler(request: web.Request) -> web.Response:
    """Echo back request details as JSON."""
    body = await request.read()
    return web.json_response(
        {
            "method": request.method,
            "path": str(request.path),
            "query": dict(request.query),
            "headers": dict(request.headers),
            "body": body.decode("utf-8", errors="replace"),
        },
    )


async def _delay_handler(request: web.Request) -> web.Response:
    """Respond after a configurable delay (query param: ?delay=0.5)."""
    delay = float(request.query.get("delay", "0.1"))
    await asyncio.sleep(delay)
    return web.json_response({"delayed_by": delay})


async def _error_handler(request: web.Request) -> web.Response:
    """Return a configurable error status (query param: ?status=500)."""
    status = int(request.query.get("status", "500"))
    return web.json_response({"error": True}, status=status)


def _create_target_app() -> web.Application:
    """Build the target app with all test routes."""
    app = web.Application()
    app.router.add_route("*", "/ok", _ok_handler)
    app.router.add_route("*", "/echo{path:.*}", _echo_handler)
    app.router.add_get("/delay", _delay_handler)
    app.router.add_route("*", "/error", _error_handler)
    return app


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def target_server() -> AsyncIterator[str]:
    """Aiohttp target server running on the test's event loop.

    Returns the base URL (e.g., 'http://127.0.0.1:54321').
    """
    runner = web.AppRunner(_create_target_app())
    await runner.setup()
    port = _get_free_port()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    yield f"http://127.0.0.1:{port}"
    await runner.cleanup()


@pytest.fixture
def sync_target_server() -> Iterator[str]:
    """Target server running in a background thread.

    For tests where the code under test owns the event loop
    (``LoadTestRunner.run`` and the CLI call ``asyncio.run``).
    """
    port = _get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(_create_target_app())
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield f"http://127.0.0.1:{port}"

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)


@pytest.fixture
def write_script(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper that writes a short staged script to ``tmp_path``.

    The helper takes the target URL and optional overrides for the stage
    list, checks and pacing, as Python source snippets.
    """

    def _write(
        url: str,
        *,
        filename: str = "load_script.py",
        stages: str = '[Stage("1s", 1)]',
        checks: str = '{"status was 200": status_is(200)}',
        pacing: str = "0.05",
        name: str = "Script Test",
    ) -> Path:
        code = f'''\
from __future__ import annotations

from rampforge import LoadTestConfig, Stage, status_is

test = LoadTestConfig(
    name="{name}",
    url="{url}",
    stages={stages},
    checks={checks},
    pacing={pacing},
    request_timeout=2.0,
)
'''
        path = tmp_path / filename
        path.write_text(code)
        return path

    return _write
