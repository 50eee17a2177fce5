"""Language server session over the server's stdio."""

import asyncio
import os
import threading
from fnmatch import fnmatch
from concurrent import futures
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from pylsp_jsonrpc import streams
from pylsp_jsonrpc.endpoint import Endpoint
from pylsp_jsonrpc.exceptions import JsonRpcException

from ..config import ClientOptions
from ..editor.host import EditorHost, OutputChannel
from ..editor.types import FileEvent, TextDocument, TextDocumentChangeEvent, selector_matches
from ..event import Disposable
from ..util.error import LSPError, RequestFailure, StartupFailure, TransportFailure
from ..util.log import Log
from .launcher import ServerProcessConfig, launch

_MESSAGE_TYPES = {1: "Error", 2: "Warn", 3: "Info", 4: "Log"}


class SessionState(str, Enum):
    NEW = "new"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    CLOSED = "closed"
    FAILED = "failed"


class LSPDiagnostic:
    """LSP diagnostic information."""

    def __init__(self, data: Dict[str, Any]):
        self.data = data

    @property
    def message(self) -> str:
        return self.data.get("message", "")

    @property
    def severity(self) -> int:
        return self.data.get("severity", 1)

    @property
    def line(self) -> int:
        return self.data.get("range", {}).get("start", {}).get("line", 0)

    @property
    def character(self) -> int:
        return self.data.get("range", {}).get("start", {}).get("character", 0)

    @property
    def source(self) -> Optional[str]:
        return self.data.get("source")

    def pretty(self) -> str:
        severity_names = {1: "ERROR", 2: "WARN", 3: "INFO", 4: "HINT"}
        severity = severity_names.get(self.severity, "UNKNOWN")

        parts = [f"[{severity}]"]
        if self.source:
            parts.append(f"({self.source})")
        parts.append(f"Line {self.line + 1}:{self.character + 1}")
        parts.append(self.message)

        return " ".join(parts)


def _discard_outcome(future: "asyncio.Future[Any]") -> None:
    if not future.cancelled():
        future.exception()


class LanguageClient:
    """One language server process and the JSON-RPC session on top of it.

    The session is single-use: ``start`` once, ``stop`` any number of times.
    Messages are read on a daemon thread and handed to the event loop that
    called ``start``; everything else runs on that loop.
    """

    def __init__(
        self,
        config: ServerProcessConfig,
        options: Optional[ClientOptions] = None,
        output: Optional[OutputChannel] = None,
        root_uri: Optional[str] = None,
    ):
        self.config = config
        self.options = options or ClientOptions()
        self.output = output or OutputChannel(self.options.trace_channel)
        self.root_uri = root_uri
        self.state = SessionState.NEW
        self.process = None
        self.capabilities: Dict[str, Any] = {}
        self.diagnostics: Dict[str, List[LSPDiagnostic]] = {}
        self.opened_documents: Dict[str, int] = {}  # uri -> version
        self._host: Optional[EditorHost] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._endpoint: Optional[Endpoint] = None
        self._reader: Optional[streams.JsonRpcStreamReader] = None
        self._writer: Optional[streams.JsonRpcStreamWriter] = None
        self._reader_thread: Optional[threading.Thread] = None
        self._stderr_thread: Optional[threading.Thread] = None
        self._pending: Set[futures.Future] = set()
        self._transport_closed = False
        self._stopping: Optional[asyncio.Future] = None
        self._log = Log.create({"service": "lsp.client"}).clone().tag("server", self.options.client_id)

    @property
    def is_running(self) -> bool:
        return self.state is SessionState.RUNNING and not self._transport_closed

    async def start(self) -> None:
        """Launch the server and complete the initialize handshake."""
        if self.state is not SessionState.NEW:
            raise LSPError({"state": self.state.value}, "Language client can only be started once")

        self.state = SessionState.STARTING
        self._loop = asyncio.get_running_loop()

        try:
            self.process = launch(self.config)
        except StartupFailure as e:
            self.state = SessionState.FAILED
            self._report(f"Couldn't start client {self.options.name}: {e.message}")
            raise

        self._open_transport()

        try:
            result = await self._request("initialize", self._initialize_params())
        except LSPError as e:
            if self.state is not SessionState.STARTING:
                raise LSPError({"state": self.state.value}, "Language client was stopped during startup", e) from e
            self.state = SessionState.FAILED
            self._report(f"Server initialization failed: {e.message}")
            raise StartupFailure({"command": self.config.command}, f"Server initialization failed: {e.message}", e) from e

        if self.state is not SessionState.STARTING:
            raise LSPError({"state": self.state.value}, "Language client was stopped during startup")

        self.capabilities = result.get("capabilities", {}) if isinstance(result, dict) else {}
        self._endpoint.notify("initialized", {})
        self.state = SessionState.RUNNING
        self._log.info("Language server started", {"pid": self.process.pid})

        if self._host is not None:
            for document in self._host.text_documents:
                self.did_open(document)

    async def stop(self) -> None:
        """Shut the server down; a never-started client returns immediately."""
        if self.state is SessionState.NEW:
            return

        if self._stopping is None:
            self._stopping = asyncio.ensure_future(self._shutdown())
        await asyncio.shield(self._stopping)

    async def send_request(self, method: str, params: Any = None) -> Any:
        """Send one request and wait for its result.

        Raises ``RequestFailure`` for a server error, ``TransportFailure`` when
        the connection is gone and ``LSPError`` when the client is not running.
        """
        if self.state is SessionState.CLOSED:
            raise TransportFailure({"method": method}, "Language server connection is closed")
        if self.state is not SessionState.RUNNING:
            raise LSPError({"method": method, "state": self.state.value}, "Language server is not running")
        return await self._request(method, params)

    def notify(self, method: str, params: Any = None) -> None:
        if not self.is_running:
            raise LSPError({"method": method, "state": self.state.value}, "Language server is not running")
        self._endpoint.notify(method, params)

    def diagnostics_for(self, uri: str) -> List[LSPDiagnostic]:
        return self.diagnostics.get(uri, [])

    # Document synchronization

    def attach(self, host: EditorHost) -> Disposable:
        """Mirror the host's matching documents to the server."""
        self._host = host
        return Disposable.from_(
            host.on_did_open_text_document(self.did_open),
            host.on_did_change_text_document(self._on_document_changed),
            host.on_did_close_text_document(self.did_close),
            host.on_did_change_watched_files(self.did_change_watched_files),
        )

    def did_open(self, document: TextDocument) -> None:
        if not self._should_sync(document) or document.uri in self.opened_documents:
            return

        self.notify("textDocument/didOpen", {
            "textDocument": {
                "uri": document.uri,
                "languageId": document.language_id,
                "version": document.version,
                "text": document.text,
            }
        })
        self.opened_documents[document.uri] = document.version

    def did_change(self, document: TextDocument) -> None:
        if not self._should_sync(document):
            return
        if document.uri not in self.opened_documents:
            self.did_open(document)
            return

        self.notify("textDocument/didChange", {
            "textDocument": {"uri": document.uri, "version": document.version},
            "contentChanges": [{"text": document.text}],
        })
        self.opened_documents[document.uri] = document.version

    def did_close(self, document: TextDocument) -> None:
        if document.uri not in self.opened_documents:
            return

        del self.opened_documents[document.uri]
        self.diagnostics.pop(document.uri, None)
        if self.is_running:
            self.notify("textDocument/didClose", {"textDocument": {"uri": document.uri}})

    def did_change_watched_files(self, events: List[FileEvent]) -> None:
        """Forward changes to files matching ``watched_files`` globs."""
        if not self.is_running:
            return

        changes = [
            {"uri": event.uri, "type": int(event.type)}
            for event in events
            if any(fnmatch(event.path, pattern) for pattern in self.options.watched_files)
        ]
        if changes:
            self.notify("workspace/didChangeWatchedFiles", {"changes": changes})

    def _on_document_changed(self, event: TextDocumentChangeEvent) -> None:
        self.did_change(event.document)

    def _should_sync(self, document: TextDocument) -> bool:
        if not self.is_running or not selector_matches(self.options.document_selector, document):
            return False
        sync = self.capabilities.get("textDocumentSync")
        if isinstance(sync, dict):
            return bool(sync.get("openClose") or sync.get("change"))
        return bool(sync)

    # Transport

    def _open_transport(self) -> None:
        self._writer = streams.JsonRpcStreamWriter(self.process.stdin)
        self._reader = streams.JsonRpcStreamReader(self.process.stdout)
        self._endpoint = Endpoint(self._dispatcher(), self._writer.write)

        name = self.options.client_id
        self._reader_thread = threading.Thread(target=self._listen, name=f"{name}-reader", daemon=True)
        self._stderr_thread = threading.Thread(target=self._pump_stderr, name=f"{name}-stderr", daemon=True)
        self._reader_thread.start()
        self._stderr_thread.start()

    def _listen(self) -> None:
        try:
            self._reader.listen(self._on_message)
        except (OSError, ValueError) as e:
            self._log.debug("Reader stopped", {"error": str(e)})
        finally:
            self._post(self._on_transport_closed)

    def _on_message(self, message: Dict[str, Any]) -> None:
        self._post(self._endpoint.consume, message)

    def _pump_stderr(self) -> None:
        try:
            for raw in iter(self.process.stderr.readline, b""):
                line = raw.decode("utf-8", errors="replace").rstrip()
                if line:
                    self._post(self._trace, line)
        except (OSError, ValueError) as e:
            self._log.debug("Stderr pump stopped", {"error": str(e)})

    def _post(self, callback: Callable[..., Any], *args: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            self._log.debug("Event loop closed, dropping callback", {"callback": getattr(callback, "__name__", callback)})

    def _on_transport_closed(self) -> None:
        if self._transport_closed:
            return

        self._transport_closed = True
        returncode = self.process.poll()
        self._fail_pending(returncode)

        if self.state is SessionState.RUNNING:
            self.state = SessionState.CLOSED
            self._report(f"{self.options.name} exited unexpectedly (code {returncode}); reload to restart it")

    def _fail_pending(self, returncode: Optional[int]) -> None:
        pending, self._pending = self._pending, set()
        for future in list(pending):
            if not future.done():
                future.set_exception(
                    TransportFailure({"returncode": returncode}, "Language server connection closed")
                )

    async def _request(self, method: str, params: Any = None) -> Any:
        if self._transport_closed:
            raise TransportFailure({"method": method}, "Language server connection is closed")

        future = self._endpoint.request(method, params)
        self._pending.add(future)
        future.add_done_callback(lambda done: self._pending.discard(done))

        waiter = asyncio.wrap_future(future)
        try:
            return await asyncio.shield(waiter)
        except JsonRpcException as e:
            raise RequestFailure(
                {"method": method, "code": e.code, "data": e.data}, e.message or f"Request {method} failed", e
            ) from e
        except asyncio.CancelledError:
            waiter.add_done_callback(_discard_outcome)
            raise

    # Shutdown

    async def _shutdown(self) -> None:
        previous = self.state
        self.state = SessionState.STOPPING

        if self.process is None:
            self.state = SessionState.STOPPED
            return

        graceful = previous is SessionState.RUNNING and not self._transport_closed
        if graceful:
            try:
                await asyncio.wait_for(self._request("shutdown"), timeout=self.options.shutdown_timeout)
                self._endpoint.notify("exit")
            except (LSPError, asyncio.TimeoutError) as e:
                graceful = False
                self._log.warn("Graceful shutdown failed", {"error": str(e) or type(e).__name__})

        try:
            self._writer.close()
        except (OSError, ValueError) as e:
            self._log.debug("Closing server stdin failed", {"error": str(e)})
        await self._wait_for_exit(graceful)
        await self._close_transport()

        self.state = SessionState.STOPPED
        self._log.info("Language server stopped", {"returncode": self.process.returncode})

    async def _wait_for_exit(self, graceful: bool) -> None:
        timeout = self.options.shutdown_timeout
        if graceful and await self._poll_exit(timeout):
            return

        self.process.terminate()
        if await self._poll_exit(timeout):
            return

        self._log.warn("Language server ignored terminate, killing it", {"pid": self.process.pid})
        self.process.kill()
        self.process.wait()

    async def _poll_exit(self, timeout: float) -> bool:
        deadline = self._loop.time() + timeout
        while self.process.poll() is None:
            if self._loop.time() >= deadline:
                return False
            await asyncio.sleep(0.02)
        return True

    async def _close_transport(self) -> None:
        deadline = self._loop.time() + self.options.shutdown_timeout
        for thread in (self._reader_thread, self._stderr_thread):
            while thread.is_alive() and self._loop.time() < deadline:
                await asyncio.sleep(0.02)

        if not self._reader_thread.is_alive():
            self.process.stdout.close()
        if not self._stderr_thread.is_alive():
            self.process.stderr.close()

        self._on_transport_closed()
        self._endpoint.shutdown()

    # Server to client traffic

    def _dispatcher(self) -> Dict[str, Callable[[Any], Any]]:
        return {
            "window/logMessage": self._handle_log_message,
            "window/showMessage": self._handle_log_message,
            "textDocument/publishDiagnostics": self._handle_diagnostics,
            "custom/notification": self._handle_custom_notification,
            "workspace/configuration": self._handle_configuration,
            "client/registerCapability": self._acknowledge,
            "client/unregisterCapability": self._acknowledge,
            "window/workDoneProgress/create": self._acknowledge,
            "$/progress": self._acknowledge,
        }

    def _handle_log_message(self, params: Dict[str, Any]) -> None:
        kind = _MESSAGE_TYPES.get(params.get("type"), "Info")
        stamp = datetime.now().strftime("%H:%M:%S")
        self._trace(f"[{kind:<5} - {stamp}] {params.get('message', '')}")

    def _handle_diagnostics(self, params: Dict[str, Any]) -> None:
        uri = params.get("uri", "")
        diagnostics_data = params.get("diagnostics", [])
        self.diagnostics[uri] = [LSPDiagnostic(diag) for diag in diagnostics_data]
        self._log.debug("Received diagnostics", {"uri": uri, "count": len(diagnostics_data)})

    def _handle_custom_notification(self, params: Any) -> None:
        self._trace(f"custom/notification {params}")

    def _handle_configuration(self, params: Dict[str, Any]) -> List[None]:
        return [None for _ in (params or {}).get("items", [])]

    def _acknowledge(self, params: Any) -> None:
        return None

    def _trace(self, line: str) -> None:
        self.output.append_line(line)

    def _report(self, message: str) -> None:
        self._log.error(message)
        self.output.append_line(message)

    def _initialize_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "processId": os.getpid(),
            "clientInfo": {"name": self.options.name},
            "rootUri": self.root_uri,
            "capabilities": {
                "textDocument": {
                    "synchronization": {"dynamicRegistration": False, "didSave": False},
                    "publishDiagnostics": {"versionSupport": True},
                    "inlayHint": {"dynamicRegistration": False},
                },
                "window": {"workDoneProgress": False},
                "workspace": {
                    "configuration": True,
                    "didChangeWatchedFiles": {"dynamicRegistration": False},
                },
            },
            "initializationOptions": self.options.initialization_options,
            "trace": "off",
        }
        if self.root_uri:
            params["workspaceFolders"] = [{"uri": self.root_uri, "name": os.path.basename(self.root_uri.rstrip("/"))}]
        return params
