"""
Live-server tests for startup, draining and shutdown of the server loop
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from app.config import ServerConfig
from app.factory import create_app
from app.services.server_loop import ServerLoop, ServerState, bind_socket
import asyncio
import os
import signal
import socket
import sys
import pytest
import requests

TEST_CONFIG = ServerConfig(port=0)


async def wait_for_state(server_loop: ServerLoop, state: ServerState, timeout: float = 5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while server_loop.state is not state:
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError(f"server never reached {state.value} (stuck in {server_loop.state.value})")
        await asyncio.sleep(0.01)


def build_slow_app(entered: asyncio.Event, delay: float) -> FastAPI:
    app = create_app(TEST_CONFIG)

    @app.get("/slow", response_class=PlainTextResponse)
    async def slow():
        entered.set()
        await asyncio.sleep(delay)
        return "slow done"

    return app


def try_connect(host: str, port: int) -> bool:
    try:
        with socket.create_connection((host, port), timeout=1):
            return True
    except OSError:
        return False


def test_serves_requests_until_stopped():
    async def scenario():
        stop = asyncio.Event()
        server_loop = ServerLoop(TEST_CONFIG, shutdown_trigger=stop.wait)
        task = asyncio.ensure_future(server_loop.serve())
        await wait_for_state(server_loop, ServerState.SERVING)
        host, port = server_loop.bound_address

        response = await asyncio.to_thread(requests.get, f"http://{host}:{port}/", timeout=5)
        missing = await asyncio.to_thread(requests.get, f"http://{host}:{port}/nope", timeout=5)

        stop.set()
        exit_code = await asyncio.wait_for(task, timeout=10)
        return server_loop, exit_code, response, missing, (host, port)

    server_loop, exit_code, response, missing, (host, port) = asyncio.run(scenario())
    assert response.status_code == 200
    assert response.text == "hello wrold from landing page"
    assert missing.status_code == 404
    assert "unfound url" in missing.text
    assert exit_code == 0
    assert server_loop.state is ServerState.STOPPED
    assert not try_connect(host, port)


def test_in_flight_request_completes_during_drain():
    async def scenario():
        stop = asyncio.Event()
        entered = asyncio.Event()
        server_loop = ServerLoop(TEST_CONFIG, app=build_slow_app(entered, 1.0), shutdown_trigger=stop.wait)
        task = asyncio.ensure_future(server_loop.serve())
        await wait_for_state(server_loop, ServerState.SERVING)
        host, port = server_loop.bound_address

        in_flight = asyncio.ensure_future(
            asyncio.to_thread(requests.get, f"http://{host}:{port}/slow", timeout=10)
        )
        await asyncio.wait_for(entered.wait(), timeout=5)

        stop.set()
        await wait_for_state(server_loop, ServerState.DRAINING)
        # Give uvicorn a tick to close its listener while /slow is still running
        await asyncio.sleep(0.3)
        accepted_while_draining = await asyncio.to_thread(try_connect, host, port)
        still_draining = server_loop.state is ServerState.DRAINING

        exit_code = await asyncio.wait_for(task, timeout=10)
        response = await in_flight
        return server_loop, exit_code, response, accepted_while_draining, still_draining

    server_loop, exit_code, response, accepted_while_draining, still_draining = asyncio.run(scenario())
    assert still_draining
    assert not accepted_while_draining
    assert response.status_code == 200
    assert response.text == "slow done"
    assert exit_code == 0
    assert server_loop.state is ServerState.STOPPED


def test_drain_timeout_bounds_shutdown():
    async def scenario():
        stop = asyncio.Event()
        entered = asyncio.Event()
        config = ServerConfig(port=0, drain_timeout=0.5)
        app = build_slow_app(entered, 30.0)
        server_loop = ServerLoop(config, app=app, shutdown_trigger=stop.wait)
        task = asyncio.ensure_future(server_loop.serve())
        await wait_for_state(server_loop, ServerState.SERVING)
        host, port = server_loop.bound_address

        in_flight = asyncio.ensure_future(
            asyncio.to_thread(requests.get, f"http://{host}:{port}/slow", timeout=5)
        )
        await asyncio.wait_for(entered.wait(), timeout=5)
        stop.set()
        exit_code = await asyncio.wait_for(task, timeout=10)
        await asyncio.gather(in_flight, return_exceptions=True)
        return server_loop, exit_code

    server_loop, exit_code = asyncio.run(scenario())
    assert exit_code == 0
    assert server_loop.state is ServerState.STOPPED


@pytest.mark.skipif(sys.platform == "win32", reason="needs POSIX signals")
def test_sigterm_triggers_graceful_shutdown():
    async def scenario():
        server_loop = ServerLoop(TEST_CONFIG)
        task = asyncio.ensure_future(server_loop.serve())
        await wait_for_state(server_loop, ServerState.SERVING)
        host, port = server_loop.bound_address
        response = await asyncio.to_thread(requests.get, f"http://{host}:{port}/", timeout=5)

        os.kill(os.getpid(), signal.SIGTERM)
        exit_code = await asyncio.wait_for(task, timeout=10)
        return server_loop, exit_code, response

    server_loop, exit_code, response = asyncio.run(scenario())
    assert response.status_code == 200
    assert exit_code == 0
    assert server_loop.state is ServerState.STOPPED


def test_reduced_profile_serves_greeting():
    async def scenario():
        stop = asyncio.Event()
        config = ServerConfig(profile="reduced", port=0, serve_static=False, error_pages=False, request_tracing=False)
        server_loop = ServerLoop(config, shutdown_trigger=stop.wait)
        task = asyncio.ensure_future(server_loop.serve())
        await wait_for_state(server_loop, ServerState.SERVING)
        host, port = server_loop.bound_address
        response = await asyncio.to_thread(requests.get, f"http://{host}:{port}/", timeout=5)
        stop.set()
        return await asyncio.wait_for(task, timeout=10), response

    exit_code, response = asyncio.run(scenario())
    assert exit_code == 0
    assert response.text == "hello wrold from landing page"


def test_bind_failure_is_fatal():
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen(1)
    try:
        port = blocker.getsockname()[1]
        with pytest.raises(SystemExit) as exc_info:
            bind_socket("127.0.0.1", port)
        assert exc_info.value.code == 1
    finally:
        blocker.close()


def test_startup_failure_exits_non_zero():
    @asynccontextmanager
    async def broken_lifespan(app):
        raise RuntimeError("cannot start")
        yield

    async def scenario():
        stop = asyncio.Event()
        server_loop = ServerLoop(TEST_CONFIG, app=FastAPI(lifespan=broken_lifespan), shutdown_trigger=stop.wait)
        try:
            await server_loop.serve()
        except SystemExit as e:
            return server_loop, e.code
        return server_loop, None

    server_loop, code = asyncio.run(scenario())
    assert code == 1
    assert server_loop.state is ServerState.STOPPED


def test_early_shutdown_waits_for_startup(caplog):
    caplog.set_level("INFO", logger="app.services.server_loop")
    lifecycle = []

    @asynccontextmanager
    async def recording_lifespan(app):
        lifecycle.append("startup")
        yield
        lifecycle.append("shutdown")

    async def stop_immediately():
        return None

    async def scenario():
        server_loop = ServerLoop(TEST_CONFIG, app=FastAPI(lifespan=recording_lifespan), shutdown_trigger=stop_immediately)
        exit_code = await asyncio.wait_for(server_loop.serve(), timeout=10)
        return server_loop, exit_code

    server_loop, exit_code = asyncio.run(scenario())
    transitions = [
        r.getMessage() for r in caplog.records
        if r.name == "app.services.server_loop" and " -> " in r.getMessage()
    ]
    assert transitions == [
        "Server starting -> serving",
        "Server serving -> draining",
        "Server draining -> stopped",
    ]
    assert lifecycle == ["startup", "shutdown"]
    assert exit_code == 0
    assert server_loop.state is ServerState.STOPPED
