"""Tests for the language server session against the fake server."""

import asyncio

import pytest

from inlay_client.editor import FileChangeType, InMemoryEditorHost, OutputChannel
from inlay_client.lsp import LanguageClient, ServerProcessConfig, SessionState
from inlay_client.lsp import client as client_module
from inlay_client.util.error import LSPError, RequestFailure, StartupFailure, TransportFailure


@pytest.fixture
def make_client(fake_options, fake_environ):
    def make(mode: str = "", environ=None, **overrides) -> LanguageClient:
        options = fake_options(**overrides)
        config = ServerProcessConfig.from_options(options, environ if environ is not None else fake_environ(mode))
        return LanguageClient(config, options, OutputChannel(options.trace_channel))

    return make


@pytest.mark.asyncio
async def test_start_handshake_and_stop(make_client, eventually):
    client = make_client()
    try:
        await client.start()

        assert client.state is SessionState.RUNNING
        assert client.capabilities["textDocumentSync"] == 1
        await eventually(lambda: any("initialized!" in line for line in client.output.lines))
        await eventually(lambda: any("RUST_LOG=debug" in line for line in client.output.lines))
    finally:
        await client.stop()

    assert client.state is SessionState.STOPPED
    assert client.process.returncode == 0


@pytest.mark.asyncio
async def test_send_request_returns_hint_triples(make_client):
    client = make_client()
    await client.start()
    try:
        result = await client.send_request("custom/hints", {"path": "file:///a.txt"})
        assert result == [[0, 3, "x:"], [10, 12, "y:"]]

        assert await client.send_request("custom/hints", {"path": "file:///null.txt"}) is None
    finally:
        await client.stop()


@pytest.mark.asyncio
async def test_stop_before_start_does_not_touch_process(make_client, monkeypatch):
    def fail_launch(config):
        raise AssertionError("launch must not be called")

    monkeypatch.setattr(client_module, "launch", fail_launch)
    client = make_client()

    await client.stop()

    assert client.state is SessionState.NEW
    assert client.process is None


@pytest.mark.asyncio
async def test_stop_twice_and_concurrently(make_client):
    client = make_client()
    await client.start()

    await asyncio.gather(client.stop(), client.stop())
    await client.stop()

    assert client.state is SessionState.STOPPED


@pytest.mark.asyncio
async def test_session_is_not_restartable(make_client):
    client = make_client()
    await client.start()
    try:
        with pytest.raises(LSPError):
            await client.start()
    finally:
        await client.stop()

    with pytest.raises(LSPError):
        await client.start()


@pytest.mark.asyncio
async def test_send_request_before_start_is_rejected(make_client):
    client = make_client()

    with pytest.raises(LSPError) as exc_info:
        await client.send_request("custom/hints", {"path": "file:///a.txt"})

    assert not isinstance(exc_info.value, TransportFailure)
    assert exc_info.value.data["state"] == "new"


@pytest.mark.asyncio
async def test_missing_executable_is_a_startup_failure(make_client, fake_environ, tmp_path):
    client = make_client(environ=fake_environ(SERVER_PATH=str(tmp_path / "missing-ls")))

    with pytest.raises(StartupFailure):
        await client.start()

    assert client.state is SessionState.FAILED
    assert len(client.output.lines) == 1
    assert "missing-ls" in client.output.lines[0]
    await client.stop()
    assert client.state is SessionState.STOPPED


@pytest.mark.asyncio
@pytest.mark.parametrize("mode", ["reject-initialize", "crash-on-start"])
async def test_failed_handshake_is_a_startup_failure(make_client, mode):
    client = make_client(mode)
    try:
        with pytest.raises(StartupFailure):
            await client.start()
        assert client.state is SessionState.FAILED
    finally:
        await client.stop()

    assert client.process.poll() is not None


@pytest.mark.asyncio
async def test_server_error_fails_only_that_request(make_client):
    client = make_client()
    await client.start()
    try:
        with pytest.raises(RequestFailure) as exc_info:
            await client.send_request("custom/hints", {"path": "file:///error.txt"})

        assert exc_info.value.code == -32001
        assert exc_info.value.message == "no hints here"
        assert exc_info.value.data["method"] == "custom/hints"
        assert client.is_running
        assert await client.send_request("custom/hints", {"path": "file:///a.txt"})
    finally:
        await client.stop()


@pytest.mark.asyncio
async def test_server_death_is_a_transport_failure(make_client):
    client = make_client()
    await client.start()
    try:
        with pytest.raises(TransportFailure):
            await client.send_request("custom/hints", {"path": "file:///crash.txt"})

        assert client.state is SessionState.CLOSED
        with pytest.raises(TransportFailure):
            await client.send_request("custom/hints", {"path": "file:///a.txt"})

        reports = [line for line in client.output.lines if "exited unexpectedly" in line]
        assert len(reports) == 1
    finally:
        await client.stop()

    assert client.state is SessionState.STOPPED


@pytest.mark.asyncio
async def test_server_death_fails_every_in_flight_request(make_client):
    client = make_client()
    await client.start()
    try:
        hanging = [
            asyncio.ensure_future(client.send_request("custom/hints", {"path": "file:///hang.txt"}))
            for _ in range(3)
        ]
        await asyncio.sleep(0.1)
        crash = asyncio.ensure_future(client.send_request("custom/hints", {"path": "file:///crash.txt"}))

        results = await asyncio.wait_for(asyncio.gather(*hanging, crash, return_exceptions=True), timeout=5)

        assert all(isinstance(result, TransportFailure) for result in results)
        assert client.state is SessionState.CLOSED
        reports = [line for line in client.output.lines if "exited unexpectedly" in line]
        assert len(reports) == 1
    finally:
        await client.stop()


@pytest.mark.asyncio
async def test_in_flight_requests_fail_when_session_stops(make_client):
    client = make_client()
    await client.start()

    pending = asyncio.ensure_future(client.send_request("custom/hints", {"path": "file:///hang.txt"}))
    await asyncio.sleep(0.1)
    await client.stop()

    with pytest.raises(TransportFailure):
        await pending


@pytest.mark.asyncio
async def test_responses_are_correlated_out_of_order(make_client):
    client = make_client()
    await client.start()
    try:
        finished = []

        async def echo(tag, delay):
            result = await client.send_request("custom/request", {"tag": tag, "delay": delay})
            finished.append(tag)
            return result

        slow, fast = await asyncio.gather(echo("slow", 0.5), echo("fast", 0.0))

        assert slow == {"tag": "slow", "delay": 0.5}
        assert fast == {"tag": "fast", "delay": 0.0}
        assert finished == ["fast", "slow"]
    finally:
        await client.stop()


@pytest.mark.asyncio
async def test_abandoned_request_does_not_disturb_session(make_client):
    client = make_client()
    await client.start()
    try:
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(client.send_request("custom/request", {"delay": 0.3}), timeout=0.05)

        assert await client.send_request("custom/request", {"n": 1}) == {"n": 1}
        await asyncio.sleep(0.4)
        assert client.is_running
    finally:
        await client.stop()


@pytest.mark.asyncio
async def test_document_sync_and_diagnostics(make_client):
    host = InMemoryEditorHost()
    early = host.open_document("file:///early.txt", "opened before start")
    ignored = host.open_document("file:///script.py", "print()", language_id="python")

    client = make_client()
    attached = client.attach(host)
    await client.start()
    try:
        assert await client.send_request("custom/documentText", {"uri": early.uri}) == "opened before start"
        assert await client.send_request("custom/documentText", {"uri": ignored.uri}) is None

        late = host.open_document("file:///late.txt", "one")
        host.change_document(late.uri, "two")
        assert await client.send_request("custom/documentText", {"uri": late.uri}) == "two"
        assert client.opened_documents[late.uri] == 1

        diagnostics = client.diagnostics_for(early.uri)
        assert [d.message for d in diagnostics] == ["file opened!"]
        assert diagnostics[0].pretty() == "[INFO] (fake) Line 1:1 file opened!"

        host.close_document(late.uri)
        assert await client.send_request("custom/documentText", {"uri": late.uri}) is None
        assert late.uri not in client.opened_documents
    finally:
        attached.dispose()
        await client.stop()


@pytest.mark.asyncio
async def test_watched_file_changes_are_forwarded(make_client):
    host = InMemoryEditorHost()
    client = make_client()
    attached = client.attach(host)

    host.change_file("file:///repo/.clientrc")
    await client.start()
    try:
        host.change_file("file:///repo/.clientrc", FileChangeType.CREATED)
        host.change_file("file:///repo/notes.txt")
        host.change_file("file:///repo/sub/.clientrc", FileChangeType.DELETED)

        assert await client.send_request("custom/watchedFiles") == [
            {"uri": "file:///repo/.clientrc", "type": 1},
            {"uri": "file:///repo/sub/.clientrc", "type": 3},
        ]
    finally:
        attached.dispose()
        await client.stop()
